"""Application settings loaded from environment variables and .env files."""

import logging
import re
from datetime import timedelta
from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_MOVIE_OUTDATED = timedelta(weeks=8)
DEFAULT_SHOW_OUTDATED = timedelta(weeks=6)
DEFAULT_BACKOFF_SECONDS = 86400

_DURATION_PATTERN = re.compile(r"^(\d+)([wdh])$")


# Hey future me - the duration grammar is tiny: "<int><unit>" with unit one of
# w/d/h. "8w", "6d", "24h" are valid. "1.5d", "8", "8W", "8 w" are NOT. Returning None (not raising)
# lets the settings layer fall back to the per-media-type default with a warning.
def parse_duration(value: str) -> timedelta | None:
    """Parse a duration string such as "8w", "6d" or "24h".

    Args:
        value: Duration string

    Returns:
        Parsed timedelta, or None if the string is not a valid duration
    """
    match = _DURATION_PATTERN.match(value.strip())
    if match is None:
        return None

    amount = int(match.group(1))
    unit = match.group(2)
    if unit == "w":
        return timedelta(weeks=amount)
    if unit == "d":
        return timedelta(days=amount)
    return timedelta(hours=amount)


def _coerce_duration(value: Any, default: timedelta, name: str) -> timedelta:
    if value is None or value == "":
        return default
    if isinstance(value, timedelta):
        return value
    parsed = parse_duration(str(value))
    if parsed is None:
        logger.warning(
            "Invalid duration %r for %s, using default %s", value, name, default
        )
        return default
    return parsed


def _coerce_interval(value: Any, name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        interval = int(value)
    except (TypeError, ValueError):
        # An unparseable interval disables the job, same as 0
        logger.warning("Invalid interval %r for %s, disabling job", value, name)
        return 0
    return max(interval, 0)


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", populate_by_name=True
    )

    url: str = Field(
        default="sqlite+aiosqlite:///./framerate.db",
        validation_alias="DATABASE_URL",
    )
    echo: bool = Field(default=False, validation_alias="DATABASE_ECHO")
    pool_pre_ping: bool = True
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 3600


class TMDbSettings(BaseSettings):
    """TMDb catalog API settings."""

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", populate_by_name=True
    )

    base_url: str = Field(
        default="https://api.themoviedb.org/3", validation_alias="TMDB_BASE_URL"
    )
    access_token: str = Field(default="", validation_alias="TMDB_ACCESS_TOKEN")
    api_key: str = Field(default="", validation_alias="TMDB_API_KEY")
    timeout: float = Field(default=10.0, validation_alias="TMDB_TIMEOUT")
    language: str = Field(default="en-US", validation_alias="TMDB_LANGUAGE")


class EntrySyncSettings(BaseSettings):
    """Settings for the entry metadata sync workers.

    ENTRY_METADATA_JOB_INTERVAL is shared by both workers. The per-media-type
    interval variables override it when set. 0 disables a worker.
    """

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", populate_by_name=True
    )

    job_interval: int = Field(default=0, validation_alias="ENTRY_METADATA_JOB_INTERVAL")
    movie_job_interval: int | None = Field(
        default=None, validation_alias="MOVIE_ENTRY_JOB_INTERVAL"
    )
    show_job_interval: int | None = Field(
        default=None, validation_alias="SHOW_ENTRY_JOB_INTERVAL"
    )
    movie_outdated_duration: timedelta = Field(
        default=DEFAULT_MOVIE_OUTDATED, validation_alias="MOVIE_ENTRY_OUTDATED_DURATION"
    )
    show_outdated_duration: timedelta = Field(
        default=DEFAULT_SHOW_OUTDATED, validation_alias="SHOW_ENTRY_OUTDATED_DURATION"
    )
    backoff_seconds: int = Field(
        default=DEFAULT_BACKOFF_SECONDS, validation_alias="ENTRY_METADATA_BACKOFF"
    )

    @field_validator("job_interval", mode="before")
    @classmethod
    def _validate_job_interval(cls, value: Any) -> int:
        interval = _coerce_interval(value, "ENTRY_METADATA_JOB_INTERVAL")
        return 0 if interval is None else interval

    @field_validator("movie_job_interval", "show_job_interval", mode="before")
    @classmethod
    def _validate_override_interval(cls, value: Any) -> int | None:
        return _coerce_interval(value, "entry job interval override")

    @field_validator("movie_outdated_duration", mode="before")
    @classmethod
    def _validate_movie_duration(cls, value: Any) -> timedelta:
        return _coerce_duration(
            value, DEFAULT_MOVIE_OUTDATED, "MOVIE_ENTRY_OUTDATED_DURATION"
        )

    @field_validator("show_outdated_duration", mode="before")
    @classmethod
    def _validate_show_duration(cls, value: Any) -> timedelta:
        return _coerce_duration(
            value, DEFAULT_SHOW_OUTDATED, "SHOW_ENTRY_OUTDATED_DURATION"
        )

    def interval_for(self, media_type: str) -> int:
        """Effective tick interval in seconds for a media type (0 = disabled)."""
        override = (
            self.movie_job_interval if media_type == "movie" else self.show_job_interval
        )
        return self.job_interval if override is None else override

    def outdated_after_for(self, media_type: str) -> timedelta:
        """Configured staleness window for a media type."""
        if media_type == "movie":
            return self.movie_outdated_duration
        return self.show_outdated_duration


class ObservabilitySettings(BaseSettings):
    """Logging and shutdown settings."""

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", populate_by_name=True
    )

    log_json_format: bool = Field(default=False, validation_alias="LOG_JSON_FORMAT")
    shutdown_timeout: float = Field(default=10.0, validation_alias="SHUTDOWN_TIMEOUT")


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", populate_by_name=True
    )

    app_name: str = Field(default="framerate", validation_alias="APP_NAME")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    tmdb: TMDbSettings = Field(default_factory=TMDbSettings)
    entry_sync: EntrySyncSettings = Field(default_factory=EntrySyncSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
