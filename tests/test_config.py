"""Tests for config.py and main.py — settings and the service lifespan.

Tests cover:
    - Defaults, env overrides, sqlite URL driver rewrite, timezone validation
    - get_settings() caching
    - open_moment_service(): yields an initialized service, disposes on exit
"""

import logging

import pytest
from pydantic import ValidationError

from lifemoments.config import Settings, get_settings
from lifemoments.main import open_moment_service


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.database_url.startswith("sqlite+aiosqlite:///")
    assert settings.reference_timezone is None
    assert settings.refresh_at_midnight is True
    assert settings.log_format == "json"


def test_env_override(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("REFRESH_AT_MIDNIGHT", "false")
    settings = Settings(_env_file=None)
    assert settings.log_level == "DEBUG"
    assert settings.refresh_at_midnight is False


def test_plain_sqlite_url_gets_async_driver():
    settings = Settings(_env_file=None, database_url="sqlite:///data/moments.db")
    assert settings.database_url == "sqlite+aiosqlite:///data/moments.db"


def test_reference_timezone_validated():
    assert Settings(_env_file=None, reference_timezone="Europe/Lisbon").reference_timezone == "Europe/Lisbon"
    with pytest.raises(ValidationError):
        Settings(_env_file=None, reference_timezone="Mars/Olympus_Mons")


def test_get_settings_is_cached():
    get_settings.cache_clear()
    assert get_settings() is get_settings()
    get_settings.cache_clear()


async def test_open_moment_service(database_url):
    handlers = list(logging.root.handlers)
    level = logging.root.level
    settings = Settings(
        _env_file=None, database_url=database_url, refresh_at_midnight=False, log_format="text",
    )
    try:
        async with open_moment_service(settings) as service:
            assert service.initialized
            created = await service.create({"title": "Launch", "date": "2024-06-15"})
            assert created.ok
        assert not service.initialized
    finally:
        logging.root.handlers[:] = handlers
        logging.root.setLevel(level)
