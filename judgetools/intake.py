"""
Accepting submissions and handing them to the judge.
"""
import logging
import uuid

from .gateway import DataGateway, ProblemNotFound
from .languages import LanguageId
from .models import Submission, SubmissionKind, SubmissionStatus
from .settings import JudgeSettings
from .topics import Publisher

log = logging.getLogger(__name__)


class IntakeError(ValueError):
    """A submission was refused."""
    pass


class Intake:
    """Validates submissions, stores them as pending and publishes them
    on the topic of their language.

    Args:
        gateway: where submissions are stored
        publisher: transport the judge listens on
        settings: judge settings (topic naming, size limit)
        languages: ids of the languages accepted; defaults to all known
    """

    def __init__(self, gateway: DataGateway, publisher: Publisher, settings: JudgeSettings | None = None,
                 languages: list[str] | None = None) -> None:
        self.gateway = gateway
        self.publisher = publisher
        self.settings = settings or JudgeSettings()
        self.languages = set(languages) if languages is not None else {str(lang) for lang in LanguageId}

    def submit(self, user_id: str, problem_id: str, language: str, code: str,
               kind: SubmissionKind | str = SubmissionKind.SUBMIT) -> Submission:
        """Accept a submission for judging.

        Returns:
            The stored submission, status pending.

        Raises:
            IntakeError: if the submission is refused.
            GatewayError: if the submission could not be stored.
            TopicError: if the submission could not be published; it
                then stays stored as pending.
        """
        if language not in self.languages:
            raise IntakeError(f'unsupported language: {language}')
        try:
            kind = SubmissionKind(kind)
        except ValueError:
            raise IntakeError(f'unknown submission type: {kind}')
        if not code.strip():
            raise IntakeError('no code submitted')
        size = len(code.encode('utf-8'))
        if size > self.settings.max_code_size:
            raise IntakeError(f'code is {size} bytes, limit is {self.settings.max_code_size}')
        try:
            problem = self.gateway.get_problem(problem_id)
        except ProblemNotFound as e:
            raise IntakeError(str(e)) from e
        if problem.is_deleted:
            raise IntakeError(f'problem {problem_id} has been deleted')

        submission = Submission(id=str(uuid.uuid4()), user_id=user_id, problem_id=problem_id,
                                language=language, code=code, kind=kind,
                                status=SubmissionStatus.PENDING)
        self.gateway.save_submission(submission)
        topic = self.settings.topic_for(language)
        self.publisher.publish(topic, submission.to_json().encode('utf-8'))
        log.info('submission %s for problem %s published on %s', submission.id, problem_id, topic)
        return submission
