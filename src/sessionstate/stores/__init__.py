"""Session stores: the contract plus in-memory and Redis implementations."""

from .base import (
    Store,
    IterableStore,
    StoreCapabilities,
    SyncStoreAdapter,
    IterableSyncStoreAdapter,
    wrap_sync_store,
)
from .memory import MemoryStore
from .redis_backend import RedisStore

__all__ = [
    "Store",
    "IterableStore",
    "StoreCapabilities",
    "SyncStoreAdapter",
    "IterableSyncStoreAdapter",
    "wrap_sync_store",
    "MemoryStore",
    "RedisStore",
]
