"""
Judge settings, read from judge.yaml.
"""
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from . import config


class JudgeSettings(BaseModel):
    """Tunables for building, running and judging submissions."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    deadline: float = Field(default=5.0, gt=0)
    compile_timeout: float = Field(default=30.0, gt=0)
    memory_limit: int = Field(default=512, gt=0)
    output_limit: int = Field(default=1024 * 1024, gt=0)
    max_code_size: int = Field(default=64 * 1024, gt=0)
    topic_prefix: str = Field(default='learncode', pattern=r'^[A-Za-z0-9_.-]+$')
    workers: int = Field(default=4, ge=1)
    max_deliveries: int = Field(default=3, ge=1)

    def topic_for(self, language: str) -> str:
        return f'{self.topic_prefix}-{language}'


def load_judge_settings(priority_dirs: list[Path] = []) -> JudgeSettings:
    """Load judge settings.

    Returns:
        JudgeSettings built from judge.yaml in the standard config
        locations (plus priority_dirs).

    Raises:
        ConfigError: if the configuration is missing or invalid.
    """
    data = config.load_config('judge.yaml', priority_dirs)
    if not isinstance(data, dict):
        raise config.ConfigError(f'judge.yaml: content must be a dictionary, but is {type(data)}.')
    try:
        return JudgeSettings.model_validate(data)
    except ValidationError as e:
        raise config.ConfigError(f'judge.yaml: invalid settings: {e}')
