"""Configuration management for gitweave."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SUBMODULE_JOBS = 50


class GitweaveSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    git_path: str | None = Field(default=None, validation_alias="GITWEAVE_GIT_PATH")
    user_name: str | None = Field(default=None, validation_alias="GITWEAVE_USER_NAME")
    user_email: str | None = Field(default=None, validation_alias="GITWEAVE_USER_EMAIL")
    offload_packfiles: bool = Field(default=False, validation_alias="GITWEAVE_OFFLOAD_PACKFILES")
    submodule_fetch_jobs: int = Field(
        default=DEFAULT_SUBMODULE_JOBS, validation_alias="GITWEAVE_SUBMODULE_JOBS"
    )
    log_level: str = Field(default="INFO", validation_alias="GITWEAVE_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "GITWEAVE_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("user_name", "user_email", mode="before")
    @classmethod
    def _blank_as_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("submodule_fetch_jobs")
    @classmethod
    def _validate_submodule_fetch_jobs(cls, value: int) -> int:
        if value < 1:
            raise ValueError("GITWEAVE_SUBMODULE_JOBS must be >= 1")
        return value


@lru_cache(maxsize=1)
def get_settings() -> GitweaveSettings:
    """Return cached settings instance."""

    return GitweaveSettings()


__all__ = ["DEFAULT_SUBMODULE_JOBS", "GitweaveSettings", "get_settings"]
