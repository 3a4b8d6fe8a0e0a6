"""Runtime settings read from PAYMENTS_* environment variables or a .env file."""

import logging

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SettingsLoadError(RuntimeError):
    """Raised when runtime settings cannot be loaded or validated."""


class EngineSettings(BaseSettings):
    """Settings for the payments engine CLI.

    Attributes:
        num_consumers: Number of consumer threads, one per client partition.
        log_level: Logging level name for diagnostics written to stderr.
    """

    model_config = SettingsConfigDict(
        env_prefix="PAYMENTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    num_consumers: int = Field(default=4, ge=1)
    log_level: str = Field(default="WARNING")

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value}")
        return level


def load_settings() -> EngineSettings:
    """Load and validate settings.

    Raises:
        SettingsLoadError: If any value fails validation.
    """
    try:
        return EngineSettings()
    except ValidationError as e:
        raise SettingsLoadError(f"Invalid engine settings: {e}") from e
