"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SUPPORTED_LANGUAGES: tuple[tuple[str, str], ...] = (
    ("en", "English"),
    ("es", "Spanish"),
    ("fr", "French"),
    ("de", "German"),
    ("it", "Italian"),
    ("ja", "Japanese"),
    ("ko", "Korean"),
    ("ru", "Russian"),
    ("zh", "Chinese"),
)


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="ReelBatch", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_access_token: str | None = Field(default=None, alias="TMDB_ACCESS_TOKEN")
    tmdb_region: str = Field(default="US", alias="TMDB_REGION")
    default_language: str = Field(default="en", alias="DEFAULT_LANGUAGE")

    batch_size: int = Field(default=100, alias="BATCH_SIZE", ge=1, le=1_000)
    retry_max_attempts: int = Field(
        default=3, alias="RETRY_MAX_ATTEMPTS", ge=1, le=10
    )
    retry_initial_delay: float = Field(
        default=2.0, alias="RETRY_INITIAL_DELAY", ge=0
    )
    retry_backoff_factor: float = Field(
        default=1.5, alias="RETRY_BACKOFF_FACTOR", ge=1
    )
    http_timeout_seconds: float = Field(default=20.0, alias="HTTP_TIMEOUT", gt=0)

    job_retention_seconds: float = Field(
        default=3600.0, alias="JOB_RETENTION_SECONDS", ge=0
    )
    max_finished_jobs: int = Field(default=100, alias="MAX_FINISHED_JOBS", ge=0)

    database_url: str = Field(
        default="sqlite+aiosqlite:///./reelbatch.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("default_language", mode="before")
    @classmethod
    def _normalise_language(cls, value: object) -> str:
        """Lower-case the default language and reject blank values."""

        text = str(value or "").strip().lower()
        if not text:
            raise ValueError("DEFAULT_LANGUAGE must not be blank")
        return text

    @field_validator("tmdb_region", mode="before")
    @classmethod
    def _normalise_region(cls, value: object) -> str:
        text = str(value or "").strip().upper()
        return text or "US"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
