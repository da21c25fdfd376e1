"""
Layered YAML configuration.

A configuration file such as judge.yaml is looked up in each of the
configuration directories in turn.  The copy shipped in the package must
exist; copies found further down the list are merged on top of it, so a
site or user file only needs to contain the values it changes.
"""
import collections.abc
import logging
import os
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

log = logging.getLogger(__name__)


class ConfigError(Exception):
    pass


def load_config(configuration_file: str, priority_dirs: Iterable[Path | str] = ()) -> Any:
    """Load a judgetools configuration file.

    Args:
        configuration_file: file name relative to the configuration
            directories, e.g. "languages.yaml".
        priority_dirs: extra directories, taking precedence over all
            the standard ones.

    Returns:
        The merged content of all copies of the file found.

    Raises:
        ConfigError: if the packaged copy is missing or a copy cannot
            be read or parsed.
    """
    base, *overrides = [Path(d) / configuration_file for d in [*__config_dirs(), *priority_dirs]]
    result = _read(base)
    if result is None:
        raise ConfigError(f'Base configuration file {configuration_file} not found in {base.parent}')
    for path in overrides:
        override = _read(path)
        if override is None:
            continue
        log.debug('merging %s', path)
        if isinstance(result, dict) and isinstance(override, Mapping):
            __merge(result, override)
        else:
            result = override
    return result


def _read(path: Path) -> Any:
    """Parsed content of path, or None if there is no such file."""
    if not path.is_file():
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigError(f'Config file {path}: failed to parse: {err}')
    except OSError as err:
        raise ConfigError(f'Config file {path}: {err.strerror}')


def __config_dirs() -> list[Path]:
    """
    Standard configuration directories, lowest priority first.
    """
    user_dir = os.environ.get('XDG_CONFIG_HOME') or os.path.join(os.path.expanduser('~'), '.config')
    return [
        Path(__file__).parent / 'config',
        Path('/etc/judgetools'),
        Path(user_dir) / 'judgetools',
    ]


def __merge(target: dict, update: Mapping) -> None:
    """Merge update into target in place.

    Mappings present on both sides are merged recursively, any other
    value in update replaces the one in target.
    """
    for key, value in update.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, collections.abc.Mapping):
            __merge(current, value)
        else:
            target[key] = value
