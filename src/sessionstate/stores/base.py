"""
Store contract used by the session manager.

A store keeps raw session bytes keyed by token. Listing every live session
is an optional capability; the manager works out once, at construction,
whether a store has it.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Protocol, runtime_checkable

logger = logging.getLogger('sessionstate.stores')


@runtime_checkable
class Store(Protocol):
    async def find(self, token: str) -> Optional[bytes]:
        """Return the data for `token`, or None if it is missing or expired."""
        ...

    async def commit(self, token: str, data: bytes, expiry: datetime) -> None:
        """Insert or overwrite the data and expiry for `token`."""
        ...

    async def delete(self, token: str) -> None:
        """Remove `token`. Deleting a token that does not exist is not an error."""
        ...


@runtime_checkable
class IterableStore(Store, Protocol):
    async def all(self) -> Dict[str, bytes]:
        """Return token -> data for every live session."""
        ...


@dataclass(frozen=True)
class StoreCapabilities:
    iterable: bool = False

    @classmethod
    def resolve(cls, store: Any) -> "StoreCapabilities":
        return cls(iterable=isinstance(store, IterableStore))


class SyncStoreAdapter:
    """
    Adapt a blocking store to the async Store contract.

    Each call runs in a worker thread so the event loop is never blocked.
    Use wrap_sync_store() rather than instantiating this directly, so that
    the iteration capability is carried over correctly.
    """

    def __init__(self, store: Any):
        self.store = store

    async def find(self, token: str) -> Optional[bytes]:
        return await asyncio.to_thread(self.store.find, token)

    async def commit(self, token: str, data: bytes, expiry: datetime) -> None:
        await asyncio.to_thread(self.store.commit, token, data, expiry)

    async def delete(self, token: str) -> None:
        await asyncio.to_thread(self.store.delete, token)


class IterableSyncStoreAdapter(SyncStoreAdapter):
    async def all(self) -> Dict[str, bytes]:
        return await asyncio.to_thread(self.store.all)


def wrap_sync_store(store: Any) -> SyncStoreAdapter:
    """Wrap a blocking store; the result is iterable only if `store` has all()."""
    if callable(getattr(store, "all", None)):
        logger.debug(f"Wrapping iterable blocking store {type(store).__name__}")
        return IterableSyncStoreAdapter(store)
    logger.debug(f"Wrapping blocking store {type(store).__name__}")
    return SyncStoreAdapter(store)
