"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - get_settings() is cached (lru_cache) — single instance per process
    - Schema constants (max lengths, enum values) are NOT settings; they live in core

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults for everything: a local SQLite file next to the working directory
"""

from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Storage
    database_url: str = "sqlite+aiosqlite:///lifemoments.db"
    database_echo: bool = False
    sqlite_busy_timeout_seconds: float = 15.0

    @field_validator("database_url", mode="before")
    @classmethod
    def ensure_async_driver(cls, v: str) -> str:
        """Plain sqlite:/// URLs need the aiosqlite driver for the async engine."""
        if isinstance(v, str) and v.startswith("sqlite:///"):
            return v.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        return v

    # Calendar: None means the caller's local calendar date
    reference_timezone: str | None = None

    @field_validator("reference_timezone")
    @classmethod
    def known_timezone(cls, v: str | None) -> str | None:
        if v:
            try:
                ZoneInfo(v)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ValueError(f"unknown timezone: {v}") from e
        return v or None

    # Live queries re-deliver at each midnight of the reference zone (local if unset)
    refresh_at_midnight: bool = True

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
