"""
The runner registry: which Runner judges which language.
"""
import logging

from .languages import LanguageId, Languages
from .run.runners import RUNNER_CLASSES, Runner
from .settings import JudgeSettings

log = logging.getLogger(__name__)


class UnsupportedLanguage(LookupError):
    """No runner is registered for a language."""

    def __init__(self, language: str) -> None:
        super().__init__(f'unsupported language: {language}')
        self.language = language


class RunnerRegistry:
    """Maps language ids to runners.

    The set of languages is closed (see LanguageId); a registry may
    hold runners for a subset of them.
    """

    def __init__(self, runners: dict[LanguageId, Runner] | None = None) -> None:
        self._runners: dict[LanguageId, Runner] = {}
        for lang_id, runner in (runners or {}).items():
            self.register(lang_id, runner)

    def register(self, lang_id: str, runner: Runner) -> None:
        try:
            key = LanguageId(lang_id)
        except ValueError:
            raise UnsupportedLanguage(lang_id)
        self._runners[key] = runner

    def resolve(self, language: str) -> Runner:
        """Find the runner for language.

        Raises:
            UnsupportedLanguage: if language is not a known language
                id, or no runner is registered for it.
        """
        try:
            return self._runners[LanguageId(language)]
        except (ValueError, KeyError):
            raise UnsupportedLanguage(language)

    def supported(self) -> list[LanguageId]:
        return sorted(self._runners)

    def __contains__(self, language: object) -> bool:
        return isinstance(language, str) and language in self._runners

    @classmethod
    def from_languages(cls, langs: Languages, settings: JudgeSettings | None = None,
                       workspace_parent: str | None = None) -> 'RunnerRegistry':
        """Build a registry with one runner per configured language."""
        registry = cls()
        for lang in langs:
            runner = RUNNER_CLASSES[lang.lang_id](lang, settings, workspace_parent)
            registry.register(lang.lang_id, runner)
            log.debug('registered %s', runner)
        return registry
