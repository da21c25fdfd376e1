"""
The judging orchestrator.

Judge.judge() takes a submission from pending through running to one of
the terminal statuses, persisting every step through the data gateway:

    pending -> running -> completed | wrong_answer | error

Verdicts about the submitted code (wrong answer, compile error, crash,
timeout) are stored and judge() returns normally.  Problems with the
judge itself are stored as an error with an "internal error:" result
and then raised as InfrastructureFailure, as are failures to write to
the gateway, so that the transport can redeliver or alert.
"""
import base64
import binascii
import json
import logging

from . import logger
from .gateway import DataGateway, IllegalTransition, ProblemNotFound
from .models import Problem, Submission, SubmissionStatus
from .registry import RunnerRegistry, UnsupportedLanguage
from .run.outcome import ExecutionOutcome, OutcomeKind
from .verdict import Verdict, compare, normalize

log = logging.getLogger(__name__)

TIMEOUT_MESSAGE = 'execution timed out'
INTERNAL_ERROR_PREFIX = 'internal error: '


class JudgeError(Exception):
    """A judging attempt did not complete and should be retried or looked into."""
    pass


class InfrastructureFailure(JudgeError):
    """The judge itself failed; the submission has been marked as an internal error."""
    pass


def outcome_to_status(outcome: ExecutionOutcome, expected_output: str) -> tuple[SubmissionStatus, str]:
    """Map the outcome of running a submission to a terminal status and result.

    The result stored for a run that completed is its own output, never
    the expected output.
    """
    if outcome.kind == OutcomeKind.SUCCESS:
        output = normalize(outcome.output)
        if compare(outcome.output, expected_output) == Verdict.MATCH:
            return SubmissionStatus.COMPLETED, output
        return SubmissionStatus.WRONG_ANSWER, output
    if outcome.kind == OutcomeKind.COMPILE_ERROR:
        return SubmissionStatus.ERROR, _with_details('compilation error', outcome.diagnostics)
    if outcome.kind == OutcomeKind.RUNTIME_ERROR:
        return SubmissionStatus.ERROR, _with_details('runtime error', outcome.diagnostics)
    if outcome.kind == OutcomeKind.TIMEOUT:
        return SubmissionStatus.ERROR, TIMEOUT_MESSAGE
    return SubmissionStatus.ERROR, internal_error(outcome.diagnostics or 'execution failed')


def internal_error(reason: str) -> str:
    return INTERNAL_ERROR_PREFIX + reason.strip()


def is_internal_error(result: str | None) -> bool:
    return result is not None and result.startswith(INTERNAL_ERROR_PREFIX)


def _with_details(headline: str, details: str) -> str:
    details = details.strip()
    return f'{headline}\n{details}' if details else headline


def decode_event(payload: bytes | str | dict) -> Submission:
    """Decode a delivered event into a Submission.

    The event is the submission as JSON, either as is or wrapped in a
    webhook envelope: {"binary": <base64 of the JSON>} or
    {"text": <the JSON as a string>}.

    Raises:
        JudgeError: if the event is malformed.
    """
    try:
        data = payload
        if isinstance(data, (bytes, str)):
            data = json.loads(data)
        if isinstance(data, dict) and 'binary' in data:
            data = json.loads(base64.b64decode(data['binary'], validate=True))
        elif isinstance(data, dict) and 'text' in data:
            data = json.loads(data['text'])
        return Submission.model_validate(data)
    except (ValueError, TypeError, binascii.Error) as e:
        # ValidationError and JSONDecodeError are both ValueErrors
        raise JudgeError(f'malformed submission event: {e}') from e


class Judge:
    """Drives a submission through the state machine.

    Args:
        gateway: where submissions and problems are stored
        registry: runners for the supported languages
        deadline: wall clock budget in seconds for running a submission
    """

    def __init__(self, gateway: DataGateway, registry: RunnerRegistry, deadline: float = 5.0) -> None:
        self.gateway = gateway
        self.registry = registry
        self.deadline = deadline

    def handle_event(self, payload: bytes | str | dict) -> SubmissionStatus:
        """Judge the submission carried by a delivered event.

        Returns:
            The terminal status of the submission.

        Raises:
            JudgeError: if the event should be redelivered (or given up on).
            GatewayError: if the gateway could not be read or written.
        """
        submission = decode_event(payload)
        try:
            problem = self.gateway.get_problem(submission.problem_id)
        except ProblemNotFound as e:
            return self._reject(submission, str(e))
        return self.judge(submission, problem)

    def judge(self, submission: Submission, problem: Problem) -> SubmissionStatus:
        """Judge submission on problem.

        Safe to call again for the same submission, also while another
        attempt is judging it: a submission that already has a terminal
        status is left alone, and whichever attempt stores a terminal
        status first wins.

        Returns:
            The terminal status of the submission.

        Raises:
            InfrastructureFailure: if the submission could not be judged
                because of a problem with the judge; the submission has
                been marked as an error.
            GatewayError: if the gateway could not be read or written.
        """
        slog = logger.get(submission.id)
        done = self._start(submission, slog)
        if done is not None:
            return done

        try:
            runner = self.registry.resolve(submission.language)
        except UnsupportedLanguage as e:
            return self._fail(submission, str(e), slog, e)

        stdin, expected = problem.test_for(submission.kind)
        slog.info('running %s submission on problem %s', submission.language, problem.id)
        outcome = runner.execute(submission.code, stdin, self.deadline)
        slog.info('outcome: %s', outcome, extra={'additional_info': outcome.diagnostics or None})

        if outcome.kind == OutcomeKind.INFRASTRUCTURE_ERROR:
            return self._fail(submission, outcome.diagnostics or 'execution failed', slog)
        status, result = outcome_to_status(outcome, expected)
        return self._finish(submission, status, result, slog)

    def _reject(self, submission: Submission, reason: str) -> SubmissionStatus:
        slog = logger.get(submission.id)
        done = self._start(submission, slog)
        if done is not None:
            return done
        return self._fail(submission, reason, slog)

    def _fail(self, submission: Submission, reason: str, slog, cause: Exception | None = None) -> SubmissionStatus:
        """Store reason as an internal error and raise InfrastructureFailure.

        Returns the stored status instead if another attempt has
        judged the submission in the meantime.
        """
        slog.error('judging failed: %s', reason)
        stored = self._finish(submission, SubmissionStatus.ERROR, internal_error(reason), slog)
        if stored != SubmissionStatus.ERROR:
            return stored
        raise InfrastructureFailure(reason) from cause

    def _start(self, submission: Submission, slog) -> SubmissionStatus | None:
        """Mark submission as running.

        Returns:
            None if judging should go ahead, or the terminal status if
            the submission has already been judged.
        """
        current = self.gateway.get_submission(submission.id).status
        if current.is_terminal:
            slog.info('already judged (%s), skipping', current)
            return current
        if not current.can_transition_to(SubmissionStatus.RUNNING):
            raise JudgeError(f'submission {submission.id} cannot go from {current} to running')
        try:
            self.gateway.update_submission_status(submission.id, SubmissionStatus.RUNNING)
        except IllegalTransition as e:
            # Judged by another attempt since we looked.
            slog.info('already judged (%s), skipping', e.current)
            return e.current
        slog.debug('%s -> running', current)
        return None

    def _finish(self, submission: Submission, status: SubmissionStatus, result: str, slog) -> SubmissionStatus:
        """Store the terminal status and result.

        Returns:
            The status stored, which is that of the other attempt if
            another attempt has stored a different verdict first.
        """
        if not status.is_terminal:
            raise JudgeError(f'cannot finish submission {submission.id} as {status}')
        try:
            self.gateway.update_submission_status(submission.id, status, result)
        except IllegalTransition as e:
            slog.info('already judged (%s), dropping %s', e.current, status)
            return e.current
        slog.info('running -> %s', status)
        return status
