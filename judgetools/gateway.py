"""
The data gateway: typed access to stored problems and submissions.

Storage itself is somebody else's business; the judge only relies on
DataGateway.  Two implementations are provided, MemoryGateway for tests
and single-process use, and DirectoryGateway keeping one YAML file per
record on disk.
"""
import logging
import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import Problem, Submission, SubmissionStatus, now

log = logging.getLogger(__name__)


class GatewayError(Exception):
    """Reading or writing the store failed."""
    pass


class ProblemNotFound(GatewayError):
    def __init__(self, problem_id: str) -> None:
        super().__init__(f'problem not found: {problem_id}')
        self.problem_id = problem_id


class SubmissionNotFound(GatewayError):
    def __init__(self, submission_id: str) -> None:
        super().__init__(f'submission not found: {submission_id}')
        self.submission_id = submission_id


class IllegalTransition(GatewayError):
    """A status update that would move a submission backwards.

    current is the status the submission has in the store.
    """

    def __init__(self, submission_id: str, current: SubmissionStatus, status: SubmissionStatus) -> None:
        super().__init__(f'submission {submission_id} cannot go from {current} to {status}')
        self.submission_id = submission_id
        self.current = current
        self.status = status


class DataGateway(ABC):
    """Keyed access to problems and submissions.

    All writes are keyed by id and overwrite what is there; nothing is
    ever appended.
    """

    @abstractmethod
    def get_problem(self, problem_id: str) -> Problem:
        """Raises ProblemNotFound if there is no such problem."""

    @abstractmethod
    def save_submission(self, submission: Submission) -> None:
        """Store submission, replacing any submission with the same id."""

    @abstractmethod
    def get_submission(self, submission_id: str) -> Submission:
        """Raises SubmissionNotFound if there is no such submission."""

    @abstractmethod
    def update_submission_status(self, submission_id: str, status: SubmissionStatus,
                                 result: str | None = None) -> Submission:
        """Set the status (and result, if given) of a submission.

        The status is checked against the stored one and written in one
        step, so a terminal status is never replaced by another status.
        updated_at is refreshed in the same write and never moves
        backwards.

        Returns:
            The submission as stored after the update.

        Raises:
            SubmissionNotFound: if there is no such submission.
            IllegalTransition: if the stored status cannot move to status.
        """


def _updated(submission: Submission, status: SubmissionStatus, result: str | None) -> Submission:
    status = SubmissionStatus(status)
    if not submission.status.can_transition_to(status):
        raise IllegalTransition(submission.id, submission.status, status)
    changes: dict = {'status': status,
                     'updated_at': max(now(), submission.updated_at)}
    if result is not None:
        changes['result'] = result
    return submission.model_copy(update=changes)


class MemoryGateway(DataGateway):
    """DataGateway keeping everything in dictionaries."""

    def __init__(self, problems: list[Problem] | None = None) -> None:
        self._lock = threading.Lock()
        self._problems: dict[str, Problem] = {}
        self._submissions: dict[str, Submission] = {}
        for problem in problems or []:
            self.add_problem(problem)

    def add_problem(self, problem: Problem) -> None:
        with self._lock:
            self._problems[problem.id] = problem

    def get_problem(self, problem_id):
        with self._lock:
            try:
                return self._problems[problem_id]
            except KeyError:
                raise ProblemNotFound(problem_id)

    def save_submission(self, submission):
        with self._lock:
            self._submissions[submission.id] = submission.model_copy()

    def get_submission(self, submission_id):
        with self._lock:
            try:
                return self._submissions[submission_id].model_copy()
            except KeyError:
                raise SubmissionNotFound(submission_id)

    def update_submission_status(self, submission_id, status, result=None):
        with self._lock:
            try:
                current = self._submissions[submission_id]
            except KeyError:
                raise SubmissionNotFound(submission_id)
            updated = _updated(current, status, result)
            self._submissions[submission_id] = updated
            return updated.model_copy()


_ID_RE = re.compile(r'^[A-Za-z0-9_-][A-Za-z0-9_.-]*$')


class DirectoryGateway(DataGateway):
    """DataGateway storing records as YAML files.

    Layout:
        <root>/problems/<problem id>.yaml
        <root>/submissions/<submission id>.yaml

    Files are replaced atomically, so a reader never sees a half
    written record.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self._lock = threading.Lock()
        try:
            (self.root / 'problems').mkdir(parents=True, exist_ok=True)
            (self.root / 'submissions').mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise GatewayError(f'could not create store in {self.root}: {e.strerror}')

    def _file(self, kind: str, record_id: str) -> Path:
        if not _ID_RE.match(record_id):
            raise GatewayError(f'invalid {kind} id {record_id!r}')
        return self.root / f'{kind}s' / f'{record_id}.yaml'

    def save_problem(self, problem: Problem) -> None:
        self._write(self._file('problem', problem.id), problem.model_dump(mode='json'))

    def get_problem(self, problem_id):
        if not _ID_RE.match(problem_id):
            raise ProblemNotFound(problem_id)
        path = self._file('problem', problem_id)
        if not path.is_file():
            raise ProblemNotFound(problem_id)
        return load_problem_file(path)

    def save_submission(self, submission):
        with self._lock:
            self._write(self._file('submission', submission.id),
                        submission.model_dump(mode='json', by_alias=True))

    def get_submission(self, submission_id):
        with self._lock:
            return self._read_submission(submission_id)

    def update_submission_status(self, submission_id, status, result=None):
        with self._lock:
            updated = _updated(self._read_submission(submission_id), status, result)
            self._write(self._file('submission', submission_id),
                        updated.model_dump(mode='json', by_alias=True))
            return updated

    def _read_submission(self, submission_id: str) -> Submission:
        if not _ID_RE.match(submission_id):
            raise SubmissionNotFound(submission_id)
        path = self._file('submission', submission_id)
        if not path.is_file():
            raise SubmissionNotFound(submission_id)
        try:
            return Submission.model_validate(_read_yaml(path))
        except ValidationError as e:
            raise GatewayError(f'{path}: invalid submission: {e}')

    @staticmethod
    def _write(path: Path, data: dict) -> None:
        try:
            fd, tmpname = tempfile.mkstemp(prefix='.' + path.stem + '-', suffix='.tmp', dir=path.parent)
            try:
                with os.fdopen(fd, 'w') as out:
                    yaml.safe_dump(data, out, sort_keys=False, allow_unicode=True)
                os.replace(tmpname, path)
            except BaseException:
                os.unlink(tmpname)
                raise
        except OSError as e:
            raise GatewayError(f'could not write {path}: {e.strerror}')
        log.debug('wrote %s', path)


def _read_yaml(path: Path) -> dict:
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise GatewayError(f'could not read {path}: {e.strerror}')
    except yaml.YAMLError as e:
        raise GatewayError(f'{path}: failed to parse: {e}')
    if not isinstance(data, dict):
        raise GatewayError(f'{path}: content must be a dictionary, but is {type(data)}')
    return data


def load_problem_file(path: str | Path) -> Problem:
    """Load a problem from a YAML file.

    If the file has no id, the file name (without extension) is used.

    Raises:
        GatewayError: if the file cannot be read or is not a valid problem.
    """
    path = Path(path)
    data = _read_yaml(path)
    data.setdefault('id', path.stem)
    try:
        return Problem.model_validate(data)
    except ValidationError as e:
        raise GatewayError(f'{path}: invalid problem: {e}')
