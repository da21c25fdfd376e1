"""
The result of one build-and-run of a submission.
"""
from dataclasses import dataclass
from enum import StrEnum


class OutcomeKind(StrEnum):
    SUCCESS = 'success'
    COMPILE_ERROR = 'compile_error'
    RUNTIME_ERROR = 'runtime_error'
    TIMEOUT = 'timeout'
    INFRASTRUCTURE_ERROR = 'infrastructure_error'


@dataclass(frozen=True)
class ExecutionOutcome:
    """What a Runner produced for a single submission.

    output is the captured stdout of a completed run; diagnostics holds
    compiler output, stderr of a crash, or a description of what went
    wrong with the platform.
    """

    kind: OutcomeKind
    output: str = ''
    diagnostics: str = ''
    exit_code: int | None = None
    runtime: float | None = None

    @classmethod
    def success(cls, output: str, exit_code: int = 0, runtime: float | None = None,
                diagnostics: str = '') -> 'ExecutionOutcome':
        return cls(OutcomeKind.SUCCESS, output=output, diagnostics=diagnostics,
                   exit_code=exit_code, runtime=runtime)

    @classmethod
    def compile_error(cls, diagnostics: str) -> 'ExecutionOutcome':
        return cls(OutcomeKind.COMPILE_ERROR, diagnostics=diagnostics)

    @classmethod
    def runtime_error(cls, diagnostics: str, exit_code: int | None = None,
                      runtime: float | None = None) -> 'ExecutionOutcome':
        return cls(OutcomeKind.RUNTIME_ERROR, diagnostics=diagnostics,
                   exit_code=exit_code, runtime=runtime)

    @classmethod
    def timeout(cls, runtime: float | None = None) -> 'ExecutionOutcome':
        return cls(OutcomeKind.TIMEOUT, runtime=runtime)

    @classmethod
    def infrastructure_error(cls, diagnostics: str) -> 'ExecutionOutcome':
        return cls(OutcomeKind.INFRASTRUCTURE_ERROR, diagnostics=diagnostics)

    def __str__(self) -> str:
        details = []
        if self.exit_code is not None:
            details.append(f'exit code {self.exit_code}')
        if self.runtime is not None:
            details.append(f'{self.runtime:.2f}s')
        if not details:
            return str(self.kind)
        return f'{self.kind} [{", ".join(details)}]'
