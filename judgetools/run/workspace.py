"""
Per-invocation working directories for building and running submissions.
"""
import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path

from .errors import ProgramError

log = logging.getLogger(__name__)


class Workspace:
    """A freshly created directory that is removed again on exit.

    Use as a context manager; the directory only exists inside the with
    block and is never reused:

        with Workspace(prefix='python-') as ws:
            ws.add_file('solution.py', code)
    """

    def __init__(self, prefix: str = 'judge-', parent: str | None = None) -> None:
        self.prefix = prefix
        self.parent = parent
        self._path: Path | None = None

    @property
    def path(self) -> Path:
        if self._path is None:
            raise ProgramError('workspace is not open')
        return self._path

    def __enter__(self) -> 'Workspace':
        try:
            self._path = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.parent))
        except OSError as exc:
            raise ProgramError(f'could not create workspace: {exc.strerror}') from exc
        log.debug('created workspace %s', self._path)
        return self

    def __exit__(self, exc_type, exc_value, exc_traceback) -> None:
        path, self._path = self._path, None
        if path is None:
            return
        try:
            _remove_tree(path)
        except OSError as exc:
            log.error('could not remove workspace %s: %s', path, exc)
        else:
            log.debug('removed workspace %s', path)

    def add_file(self, name: str, content: str | bytes) -> Path:
        """Write a file into the workspace.

        Args:
            name (str): file name, relative to the workspace
            content (str or bytes): file contents; text is written as UTF-8

        Returns:
            Path of the written file.
        """
        target = self.path / name
        if os.path.basename(name) != name or name in ('', '.', '..'):
            raise ProgramError(f'refusing to write {name} outside the workspace')
        data = content.encode('utf-8') if isinstance(content, str) else content
        try:
            target.write_bytes(data)
        except OSError as exc:
            raise ProgramError(f'could not write {name}: {exc.strerror}') from exc
        return target

    def scrub(self, text: str) -> str:
        """Remove the workspace location from a text, such as compiler output."""
        if self._path is None or not text:
            return text
        for prefix in sorted({str(self._path), os.path.realpath(self._path)}, key=len, reverse=True):
            text = text.replace(prefix + os.sep, '').replace(prefix, '.')
        return text

    def __str__(self) -> str:
        return str(self._path)


def _remove_tree(root: Path) -> None:
    """Remove root and everything below it.

    Whatever ran in the workspace may have taken away our permissions
    on directories in it; those are given back (only below and at root)
    and the removal retried.
    """
    top = os.path.realpath(root)

    def inside(path: str) -> bool:
        return os.path.commonpath([top, os.path.realpath(path)]) == top

    def retry(function, path, exc):
        if not isinstance(exc, PermissionError):
            raise exc
        for directory in (os.path.dirname(path), path):
            if inside(directory) and os.path.isdir(directory) and not os.path.islink(directory):
                os.chmod(directory, stat.S_IRWXU)
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path, onexc=retry)
        else:
            os.unlink(path)

    shutil.rmtree(top, onexc=retry)
