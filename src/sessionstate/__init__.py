"""Server-side session state for request-driven applications."""

from .accessors import ZERO_TIME
from .codec import Codec, JSONCodec, PickleCodec
from .errors import (
    SessionError,
    TokenGenerationError,
    StoreError,
    StoreTimeoutError,
    CodecError,
    SessionNotLoadedError,
    UnsupportedStoreOperation,
)
from .manager import DEFAULT_LIFETIME, REMEMBER_ME_KEY, Manager
from .record import UNMODIFIED, SaveResult, SessionRecord, SessionScope, Status
from .stores import IterableStore, MemoryStore, RedisStore, Store, StoreCapabilities, wrap_sync_store
from .tokens import generate_token

__all__ = [
    "Manager",
    "DEFAULT_LIFETIME",
    "REMEMBER_ME_KEY",
    "SessionRecord",
    "SessionScope",
    "SaveResult",
    "Status",
    "UNMODIFIED",
    "ZERO_TIME",
    "Codec",
    "JSONCodec",
    "PickleCodec",
    "Store",
    "IterableStore",
    "StoreCapabilities",
    "MemoryStore",
    "RedisStore",
    "wrap_sync_store",
    "generate_token",
    "SessionError",
    "TokenGenerationError",
    "StoreError",
    "StoreTimeoutError",
    "CodecError",
    "SessionNotLoadedError",
    "UnsupportedStoreOperation",
]
