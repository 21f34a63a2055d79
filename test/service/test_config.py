import logging
from datetime import timedelta

import pytest

from sessionstate import MemoryStore, RedisStore
from sessionstate.config import SessionSettings, configure_logging, create_manager
from sessionstate.redis_client import redis_clients

SESSION_ENV = [
    "SESSION_LIFETIME",
    "SESSION_IDLE_TIMEOUT",
    "SESSION_STORE_TIMEOUT",
    "REDIS_URL",
    "SESSION_REDIS_PREFIX",
    "SESSION_COOKIE_NAME",
    "SECURE_COOKIES",
    "COOKIE_DOMAIN",
    "SESSION_COOKIE_PERSIST",
    "SESSION_COOKIE_SAMESITE",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in SESSION_ENV:
        monkeypatch.delenv(name, raising=False)
    yield monkeypatch
    redis_clients.clear()


def test_defaults(clean_env):
    settings = SessionSettings.from_env(dotenv=False)

    assert settings.lifetime == timedelta(hours=24)
    assert settings.idle_timeout == timedelta(0)
    assert settings.store_timeout is None
    assert settings.redis_url is None
    assert settings.cookie.name == "session"
    assert settings.cookie.secure is True
    assert settings.cookie.persist is True
    assert settings.cookie.same_site == "lax"


def test_values_from_environment(clean_env):
    clean_env.setenv("SESSION_LIFETIME", "3600")
    clean_env.setenv("SESSION_IDLE_TIMEOUT", "600")
    clean_env.setenv("SESSION_STORE_TIMEOUT", "2.5")
    clean_env.setenv("SESSION_COOKIE_NAME", "sid")
    clean_env.setenv("SECURE_COOKIES", "false")
    clean_env.setenv("COOKIE_DOMAIN", ".example.com")
    clean_env.setenv("SESSION_COOKIE_SAMESITE", "Strict")

    settings = SessionSettings.from_env(dotenv=False)

    assert settings.lifetime == timedelta(hours=1)
    assert settings.idle_timeout == timedelta(minutes=10)
    assert settings.store_timeout == 2.5
    assert settings.cookie.name == "sid"
    assert settings.cookie.secure is False
    assert settings.cookie.domain == ".example.com"
    assert settings.cookie.same_site == "strict"


def test_invalid_values_fall_back(clean_env):
    clean_env.setenv("SESSION_LIFETIME", "a day")
    clean_env.setenv("SESSION_COOKIE_SAMESITE", "sometimes")

    settings = SessionSettings.from_env(dotenv=False)

    assert settings.lifetime == timedelta(hours=24)
    assert settings.cookie.same_site == "lax"


def test_create_manager_without_redis(clean_env):
    manager = create_manager(SessionSettings(idle_timeout=timedelta(minutes=5)))

    assert isinstance(manager.store, MemoryStore)
    assert manager.idle_timeout == timedelta(minutes=5)
    assert manager.capabilities.iterable


def test_create_manager_with_redis(clean_env):
    manager = create_manager(SessionSettings(redis_url="redis://localhost:6379/3", redis_prefix="app:"))

    assert isinstance(manager.store, RedisStore)
    assert manager.store.prefix == "app:"
    assert "redis://localhost:6379/3" in redis_clients


def test_configure_logging_rejects_invalid_level():
    assert configure_logging("verbose") == "INFO"
    assert configure_logging("debug") == "DEBUG"
    assert logging.getLogger().level in (logging.DEBUG, logging.INFO)
