"""Package for building and running submitted programs.
"""
from .errors import ProgramError
from .outcome import ExecutionOutcome, OutcomeKind
from .program import Program, RunResult
from .runners import Runner, PythonRunner, NodeRunner, CppRunner, JavaRunner, RUNNER_CLASSES
from .source import SourceCode
from .workspace import Workspace
from . import limit

__all__ = [
    'ProgramError',
    'ExecutionOutcome',
    'OutcomeKind',
    'Program',
    'RunResult',
    'Runner',
    'PythonRunner',
    'NodeRunner',
    'CppRunner',
    'JavaRunner',
    'RUNNER_CLASSES',
    'SourceCode',
    'Workspace',
    'limit',
]
