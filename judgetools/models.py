"""
Problems and submissions as stored by the data gateway.
"""
import time
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


def now() -> int:
    """Current time as Unix seconds."""
    return int(time.time())


class SubmissionKind(StrEnum):
    RUN = 'RUN'
    SUBMIT = 'SUBMIT'


class SubmissionStatus(StrEnum):
    PENDING = 'pending'
    RUNNING = 'running'
    COMPLETED = 'completed'
    WRONG_ANSWER = 'wrong_answer'
    ERROR = 'error'

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL

    def can_transition_to(self, status: 'SubmissionStatus') -> bool:
        """Check whether moving from this status to status is allowed.

        Statuses only move forward, pending -> running -> terminal.
        Writing the same status again is allowed so that a redelivered
        event can overwrite its own earlier write.
        """
        if status == self:
            return True
        return status in _TRANSITIONS[self]


_TERMINAL = frozenset([SubmissionStatus.COMPLETED, SubmissionStatus.WRONG_ANSWER, SubmissionStatus.ERROR])

_TRANSITIONS: dict[SubmissionStatus, frozenset[SubmissionStatus]] = {
    SubmissionStatus.PENDING: frozenset([SubmissionStatus.RUNNING]),
    SubmissionStatus.RUNNING: _TERMINAL,
    SubmissionStatus.COMPLETED: frozenset(),
    SubmissionStatus.WRONG_ANSWER: frozenset(),
    SubmissionStatus.ERROR: frozenset(),
}


class Problem(BaseModel):
    """A problem: the input fed to a submission and the output expected back.

    Problems are owned by problem management, the judge only reads them.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str = ''
    description: str = ''
    difficulty: str = ''
    input: str = ''
    output: str = ''
    example_input: str | None = None
    example_output: str | None = None
    created_at: int = Field(default_factory=now)
    updated_at: int = Field(default_factory=now)
    deleted_at: int | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def test_for(self, kind: SubmissionKind) -> tuple[str, str]:
        """Input and expected output to judge a submission of the given kind on.

        A RUN is judged on the sample data, if the problem has any.
        """
        if kind == SubmissionKind.RUN and self.example_input is not None and self.example_output is not None:
            return self.example_input, self.example_output
        return self.input, self.output


class Submission(BaseModel):
    """A submission of source code to a problem.

    The language is kept as a plain string: intake only accepts known
    languages, but whatever arrives on a topic is judged (and rejected)
    as is.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    user_id: str = ''
    problem_id: str
    language: str
    code: str
    kind: SubmissionKind = Field(default=SubmissionKind.SUBMIT, alias='type')
    status: SubmissionStatus = SubmissionStatus.PENDING
    result: str | None = None
    created_at: int = Field(default_factory=now)
    updated_at: int = Field(default_factory=now)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def __str__(self) -> str:
        return f'{self.id} ({self.language}, {self.status})'
