"""
Configuration for session management.

This module handles:
- Reading session settings from environment variables (and a .env file)
- Cookie parameters for the HTTP middleware
- Building a Manager with the configured store
- Optional logging setup for applications
"""
import os
import logging
from datetime import timedelta
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .codec import Codec
from .manager import Manager
from .redis_client import get_redis_client
from .stores.memory import MemoryStore
from .stores.redis_backend import DEFAULT_PREFIX, RedisStore

logger = logging.getLogger('sessionstate.config')

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


def _env_seconds(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid value {raw!r} for {name}, using default {default}")
        return default


class CookieSettings(BaseModel):
    name: str = "session"
    domain: Optional[str] = None
    path: str = "/"
    secure: bool = True
    http_only: bool = True
    same_site: Literal["lax", "strict", "none"] = "lax"
    # Whether the cookie outlives the browser session without remember_me()
    persist: bool = True


class SessionSettings(BaseModel):
    lifetime: timedelta = Field(default=timedelta(hours=24), description="Absolute session lifetime")
    idle_timeout: timedelta = Field(default=timedelta(0), description="Sliding idle timeout, zero disables it")
    store_timeout: Optional[float] = Field(default=None, description="Seconds allowed for each store call")
    redis_url: Optional[str] = None
    redis_prefix: str = DEFAULT_PREFIX
    cookie: CookieSettings = Field(default_factory=CookieSettings)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "SessionSettings":
        """
        Build settings from environment variables.

        Reads SESSION_LIFETIME, SESSION_IDLE_TIMEOUT and SESSION_STORE_TIMEOUT
        (seconds), REDIS_URL, SESSION_REDIS_PREFIX, SESSION_COOKIE_NAME,
        SECURE_COOKIES, COOKIE_DOMAIN, SESSION_COOKIE_PERSIST and
        SESSION_COOKIE_SAMESITE.
        """
        if dotenv:
            load_dotenv()

        same_site = os.getenv("SESSION_COOKIE_SAMESITE", "lax").lower()
        if same_site not in ("lax", "strict", "none"):
            logger.warning(f"Invalid SESSION_COOKIE_SAMESITE {same_site!r}, using 'lax'")
            same_site = "lax"

        cookie = CookieSettings(
            name=os.getenv("SESSION_COOKIE_NAME", "session"),
            domain=os.getenv("COOKIE_DOMAIN") or None,
            # For development, allow insecure cookies over HTTP
            secure=_env_bool("SECURE_COOKIES", True),
            persist=_env_bool("SESSION_COOKIE_PERSIST", True),
            same_site=same_site,
        )

        return cls(
            lifetime=timedelta(seconds=_env_seconds("SESSION_LIFETIME", 24 * 60 * 60)),
            idle_timeout=timedelta(seconds=_env_seconds("SESSION_IDLE_TIMEOUT", 0)),
            store_timeout=_env_seconds("SESSION_STORE_TIMEOUT", None),
            redis_url=os.getenv("REDIS_URL") or None,
            redis_prefix=os.getenv("SESSION_REDIS_PREFIX", DEFAULT_PREFIX),
            cookie=cookie,
        )


def create_manager(settings: Optional[SessionSettings] = None, codec: Optional[Codec] = None) -> Manager:
    """
    Build a Manager from settings, reading the environment when none are given.

    Uses Redis when a URL is configured and falls back to the in-memory store
    otherwise.
    """
    if settings is None:
        settings = SessionSettings.from_env()

    if settings.redis_url:
        store = RedisStore(get_redis_client(settings.redis_url), prefix=settings.redis_prefix)
        logger.info("Session store: Redis")
    else:
        logger.warning("REDIS_URL not set, falling back to in-memory session store")
        store = MemoryStore()

    return Manager(
        store=store,
        codec=codec,
        lifetime=settings.lifetime,
        idle_timeout=settings.idle_timeout,
        store_timeout=settings.store_timeout,
    )


def configure_logging(level: Optional[str] = None) -> str:
    """Configure root logging from `level` or LOG_LEVEL and return the level used."""
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    invalid = log_level not in VALID_LOG_LEVELS
    if invalid:
        requested, log_level = log_level, 'INFO'

    logging.basicConfig(
        level=getattr(logging, log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    if invalid:
        logger.warning(f"Invalid LOG_LEVEL '{requested}'. Using INFO instead.")
    return log_level


__all__ = [
    'CookieSettings',
    'SessionSettings',
    'create_manager',
    'configure_logging',
]
