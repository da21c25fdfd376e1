"""
The languages submissions can be written in, and how to build and run
them.

The set of languages is closed (LanguageId).  How each one is built and
run comes from languages.yaml, for example:

    cpp:
      name: 'C++'
      priority: 1000
      files: 'solution.cpp *.cc *.cpp'
      compile: '/usr/bin/g++ -O2 -o {binary} {files}'
      run: '{binary}'

The first entry of files is the name submitted code is saved under, the
rest are globs used to detect the language of a file.  compile and run
are command templates; see Language.VARIABLES for what they may use.
"""
import fnmatch
import os
import string
from enum import StrEnum

from . import config


class LanguageConfigError(Exception):
    """Exception class for errors in language configuration."""
    pass


class LanguageId(StrEnum):
    """The closed set of languages the judge knows how to run."""
    PYTHON = 'python'
    NODEJS = 'nodejs'
    CPP = 'cpp'
    JAVA = 'java'


class Language:
    """Build and run configuration of one language."""

    # key -> type of its value
    KEYS = {'name': str, 'priority': int, 'files': str, 'compile': str, 'run': str}
    VARIABLES = frozenset(['path', 'files', 'binary', 'mainfile', 'mainclass', 'memlim'])
    ENTRY_POINTS = frozenset(['binary', 'mainfile', 'mainclass'])

    def __init__(self, lang_id: str, values: dict) -> None:
        """
        Args:
            lang_id: one of LanguageId
            values: configuration of the language, see update()

        Raises:
            TypeError: if lang_id is not a string.
            LanguageConfigError: if lang_id is not a known language or
                values do not make a valid configuration.
        """
        if not isinstance(lang_id, str):
            raise TypeError(f'Language ID must be a string, not {type(lang_id)}')
        try:
            self.lang_id = LanguageId(lang_id)
        except ValueError:
            raise LanguageConfigError(f'Unsupported language ID "{lang_id}"')
        self.name: str | None = None
        self.priority: int | None = None
        self.files: list[str] = []
        self.compile: str | None = None
        self.run: str | None = None
        self.update(values)

    @property
    def source_name(self) -> str:
        """File name that submitted code is saved as."""
        return self.files[0]

    def get_source_files(self, file_list: list[str]) -> list[str]:
        """The files of file_list that are source files of this language."""
        return [name for name in file_list if self.matches(name)]

    def matches(self, file_name: str) -> bool:
        base = os.path.basename(file_name)
        return any(fnmatch.fnmatch(base, pattern) for pattern in self.files)

    def update(self, values: dict) -> None:
        """Change some subset of the configuration and check the result.

        Args:
            values: maps keys of Language.KEYS to new values.  files is
                a whitespace separated string.
        """
        for key, value in values.items():
            expected = Language.KEYS.get(key)
            if expected is None:
                raise LanguageConfigError(f'Unknown key "{key}" specified for language {self.lang_id}')
            if type(value) is not expected:
                raise LanguageConfigError(
                    f'Language {self.lang_id}: {key} must be {expected.__name__} but is {type(value)}.')
            setattr(self, key, value.split() if key == 'files' else value)
        self._check()

    def _check(self) -> None:
        for key in ('name', 'priority', 'run'):
            if getattr(self, key) is None:
                raise LanguageConfigError(f'Language {self.lang_id} has no {key}')
        if not self.files:
            raise LanguageConfigError(f'Language {self.lang_id} has no files')
        if any(c in self.source_name for c in '*?['):
            raise LanguageConfigError(
                f'Language {self.lang_id}: first files entry must be a plain file name, not "{self.source_name}"')

        used = _template_variables(self.run)
        if self.compile is not None:
            used |= _template_variables(self.compile)
        unknown = used - Language.VARIABLES
        if unknown:
            raise LanguageConfigError(
                f'Unknown variable "{{{sorted(unknown)[0]}}}" used for language {self.lang_id}')
        entry_points = used & Language.ENTRY_POINTS
        if len(entry_points) != 1:
            raise LanguageConfigError(
                f'Language {self.lang_id} must use exactly one of {sorted(Language.ENTRY_POINTS)} as entry point, '
                f'not {sorted(entry_points)}')

    def __str__(self) -> str:
        return f'{self.name} ({self.lang_id})'


def _template_variables(template: str) -> set[str]:
    return {field for _, field, _, _ in string.Formatter().parse(template) if field is not None}


class Languages:
    """The configured languages, by LanguageId."""

    def __init__(self, data: dict | None = None) -> None:
        self.languages: dict[LanguageId, Language] = {}
        if data is not None:
            self.update(data)

    def detect_language(self, file_list: list[str]) -> Language | None:
        """Guess the language of a set of files.

        The language matching the most files wins, ties going to the
        higher priority.

        Returns:
            The detected Language, or None if no language matches any
            of the files.
        """
        best = max(self.languages.values(),
                   key=lambda lang: (len(lang.get_source_files(file_list)), lang.priority),
                   default=None)
        if best is None or not best.get_source_files(file_list):
            return None
        return best

    def get(self, lang_id: str) -> Language | None:
        if not isinstance(lang_id, str):
            raise LanguageConfigError(f'Language IDs must be strings, but {lang_id} is {type(lang_id)}.')
        return self.languages.get(lang_id)

    def __iter__(self):
        return iter(self.languages.values())

    def update(self, data: dict) -> None:
        """Add languages, or change languages already in the set.

        Args:
            data: maps language ids to (possibly partial, for languages
                already in the set) configuration of that language.
        """
        if not isinstance(data, dict):
            raise LanguageConfigError(f'Config file error: content must be a dictionary, but is {type(data)}.')

        for lang_id, values in data.items():
            if not isinstance(lang_id, str):
                raise LanguageConfigError(
                    f'Config file error: language IDs must be strings, but {lang_id} is {type(lang_id)}.')
            if not isinstance(values, dict):
                raise LanguageConfigError(
                    f'Config file error: configuration of language {lang_id} must be a dictionary, '
                    f'but is {type(values)}.')
            if lang_id in self.languages:
                self.languages[lang_id].update(values)
            else:
                lang = Language(lang_id, values)
                self.languages[lang.lang_id] = lang

        by_priority: dict[int, LanguageId] = {}
        for lang in self.languages.values():
            other = by_priority.setdefault(lang.priority, lang.lang_id)
            if other != lang.lang_id:
                raise LanguageConfigError(f'Languages {other} and {lang.lang_id} both have priority {lang.priority}.')


def load_language_config(priority_dirs: list = []) -> Languages:
    """Load the language configuration.

    Raises:
        ConfigError: if a configuration file cannot be read.
        LanguageConfigError: if the configuration is invalid.
    """
    return Languages(config.load_config('languages.yaml', priority_dirs))
