"""
Settings module - Centralizes all environment variables using Pydantic.
"""
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_LOG_DIR = Path.home() / ".uniquifier" / "logs"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Concurrency
    jobs: int = Field(default=0, validation_alias=AliasChoices("UNIQUIFIER_JOBS", "JOBS", "jobs"))
    file_jobs: int = Field(default=50, alias="UNIQUIFIER_FILE_JOBS")

    # Enumeration
    file_pattern: str = Field(default="*", alias="UNIQUIFIER_PATTERN")

    # Run log
    log_enabled: bool = Field(default=True, alias="UNIQUIFIER_LOG")
    log_dir: Path = Field(default=DEFAULT_LOG_DIR, alias="UNIQUIFIER_LOG_DIR")
    log_mode: Literal["full", "summary"] = Field(default="full", alias="UNIQUIFIER_LOG_MODE")
    flush_every: int = Field(default=100, alias="UNIQUIFIER_FLUSH_EVERY")

    # Retention (0 disables a limit)
    log_keep: int = Field(default=50, alias="UNIQUIFIER_LOG_KEEP")
    log_max_age_days: float = Field(default=30.0, alias="UNIQUIFIER_LOG_MAX_AGE_DAYS")
    log_max_mb: float = Field(default=100.0, alias="UNIQUIFIER_LOG_MAX_MB")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_ignore_empty = True
        case_sensitive = False
        populate_by_name = True
        extra = "ignore"

    @field_validator("log_mode", mode="before")
    @classmethod
    def _lower_mode(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("file_jobs")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        return max(1, value)

    @field_validator("log_dir", mode="before")
    @classmethod
    def _expand_dir(cls, value):
        return Path(value).expanduser() if isinstance(value, str) else value

    @property
    def log_max_bytes(self) -> int:
        return int(self.log_max_mb * 1024 * 1024)


def load_settings(**overrides) -> Settings:
    """Load and return application settings."""
    return Settings(**overrides)
