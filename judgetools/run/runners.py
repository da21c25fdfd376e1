"""
Runners: the per-language strategy for building and running a submission.

All runners share one contract, Runner.execute(), which takes source
code and the text to feed on stdin and returns an ExecutionOutcome.
What differs between languages is the language configuration (how to
build and run) and a few runtime quirks, handled by small overrides.
"""
import logging
import os
import signal
from abc import ABC
from typing import ClassVar

from ..languages import Language, LanguageId
from ..settings import JudgeSettings
from .errors import ProgramError
from .outcome import ExecutionOutcome
from .program import RunResult
from .source import SourceCode
from .workspace import Workspace

log = logging.getLogger(__name__)


class Runner(ABC):
    """Builds and runs source code of one language."""

    lang_id: ClassVar[LanguageId]

    def __init__(self, language: Language, settings: JudgeSettings | None = None,
                 workspace_parent: str | None = None) -> None:
        if language.lang_id != self.lang_id:
            raise ValueError(f'{type(self).__name__} cannot run {language.lang_id}')
        self.language = language
        self.settings = settings if settings is not None else JudgeSettings()
        self.workspace_parent = workspace_parent

    def execute(self, code: str, stdin: str, deadline: float | None = None) -> ExecutionOutcome:
        """Build (if needed) and run code with stdin as standard input.

        Args:
            code: the submitted source code
            stdin: text to feed the program on standard input
            deadline: wall clock budget in seconds for the run step;
                the build step is bounded by settings.compile_timeout

        Returns:
            ExecutionOutcome.  This method does not raise for problems
            with the code or the platform, those are reported as
            compile_error/runtime_error/timeout or infrastructure_error
            outcomes respectively.
        """
        if deadline is None:
            deadline = self.settings.deadline
        workspace = Workspace(prefix=f'{self.lang_id}-', parent=self.workspace_parent)
        try:
            with workspace:
                return self._execute_in(workspace, code, stdin, deadline)
        except ProgramError as e:
            log.error('%s runner failed: %s', self.language.name, e)
            return ExecutionOutcome.infrastructure_error(workspace.scrub(str(e)))
        except OSError as e:
            log.error('%s runner failed on workspace I/O: %s', self.language.name, e)
            return ExecutionOutcome.infrastructure_error('workspace I/O failure')

    def _execute_in(self, workspace: Workspace, code: str, stdin: str, deadline: float) -> ExecutionOutcome:
        program = SourceCode(workspace, self.language, code,
                             env=self.environment(workspace),
                             skip_memory_rlimit=self.should_skip_memory_rlimit())

        ok, msg = program.compile(self.settings.compile_timeout)
        if ok:
            msg = self.check_build(program)
            ok = msg is None
        if not ok:
            log.info('compile error for %s', program, extra={'additional_info': msg})
            return ExecutionOutcome.compile_error(workspace.scrub(msg or 'compilation failed'))

        infile = workspace.add_file('input.txt', stdin)
        outfile = os.path.join(workspace.path, 'output.txt')
        errfile = os.path.join(workspace.path, 'error.txt')
        result = program.run(infile=str(infile), outfile=outfile, errfile=errfile,
                             timelim=deadline, memlim=self.settings.memory_limit,
                             output_limit=self.settings.output_limit)
        log.debug('%s finished with status %d after %.2fs', program, result.status, result.runtime)
        return self.interpret(result, workspace)

    def interpret(self, result: RunResult, workspace: Workspace) -> ExecutionOutcome:
        """Turn the raw result of a run into an ExecutionOutcome.

        Running out of time (wall clock or the CPU rlimit) is a timeout.
        Filling the output limit is a runtime error, whether or not the
        program was killed for it.  Any other death by signal is a
        runtime error.  A program that
        exits by itself, whatever its exit code, has completed and its
        output goes on to be judged.
        """
        if result.timed_out or result.signal == signal.SIGXCPU:
            return ExecutionOutcome.timeout(runtime=result.runtime)
        stderr = workspace.scrub(result.stderr)
        if result.signal == signal.SIGXFSZ or result.output_limit_hit:
            return ExecutionOutcome.runtime_error('output limit exceeded', exit_code=result.status,
                                                  runtime=result.runtime)
        if result.signal is not None:
            if not stderr.strip():
                stderr = f'terminated by {_signal_name(result.signal)}'
            return ExecutionOutcome.runtime_error(stderr, exit_code=result.status, runtime=result.runtime)
        return ExecutionOutcome.success(result.stdout, exit_code=result.status, runtime=result.runtime,
                                        diagnostics=stderr)

    def environment(self, workspace: Workspace) -> dict[str, str]:
        """Environment for the build and run steps.

        Only what a toolchain needs; nothing from the judge's own
        environment (credentials in particular) is passed on.
        """
        return {
            'PATH': os.environ.get('PATH', os.defpath),
            'LANG': 'C.UTF-8',
            'HOME': str(workspace.path),
            'TMPDIR': str(workspace.path),
        }

    def check_build(self, program: SourceCode) -> str | None:
        """Check what a successful build produced.

        Returns:
            None if the build is usable, otherwise an error message
            for the submitter.
        """
        return None

    def should_skip_memory_rlimit(self) -> bool:
        return False

    def __str__(self) -> str:
        return f'{type(self).__name__} for {self.language}'


class PythonRunner(Runner):
    lang_id = LanguageId.PYTHON

    def environment(self, workspace):
        env = super().environment(workspace)
        env['PYTHONDONTWRITEBYTECODE'] = '1'
        env['PYTHONIOENCODING'] = 'utf-8'
        return env


class NodeRunner(Runner):
    lang_id = LanguageId.NODEJS

    def should_skip_memory_rlimit(self):
        # V8 reserves address space far beyond the heap; the heap is
        # capped with --max-old-space-size on the command line instead.
        return True


class CppRunner(Runner):
    lang_id = LanguageId.CPP

    def check_build(self, program):
        if not os.path.isfile(program.binary) or not os.access(program.binary, os.X_OK):
            return 'compiler did not produce an executable'
        return None


class JavaRunner(Runner):
    lang_id = LanguageId.JAVA

    def check_build(self, program):
        classfile = os.path.join(program.path, program.mainclass + '.class')
        if not os.path.isfile(classfile):
            return f'no class {program.mainclass} found, the main class must be named {program.mainclass}'
        return None

    def should_skip_memory_rlimit(self):
        # Heap size is set with -Xmx instead.
        return True


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f'signal {signum}'


RUNNER_CLASSES: dict[LanguageId, type[Runner]] = {
    runner.lang_id: runner for runner in (PythonRunner, NodeRunner, CppRunner, JavaRunner)
}
