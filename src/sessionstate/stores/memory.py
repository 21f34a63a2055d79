import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

logger = logging.getLogger('sessionstate.stores.memory')


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryStore:
    """
    In-process session store.

    Entries past their expiry are treated as missing straight away. They are
    evicted when find() or all() comes across them, and commit() sweeps the
    whole table at most once every `sweep_interval` seconds, so the store
    stays bounded without a background task. start_cleanup() adds a periodic
    sweep for processes that go quiet. Suitable for development, tests and
    single-process deployments.
    """

    def __init__(self, sweep_interval: float = 60.0) -> None:
        self._items: Dict[str, Tuple[bytes, datetime]] = {}
        self._lock = asyncio.Lock()
        self._cleanup_task: Optional[asyncio.Task] = None
        self._sweep_interval = timedelta(seconds=sweep_interval)
        self._next_sweep = _now() + self._sweep_interval

    def _evict_expired(self, now: datetime) -> int:
        expired = [token for token, (_, expiry) in self._items.items() if now >= expiry]
        for token in expired:
            del self._items[token]
        self._next_sweep = now + self._sweep_interval
        return len(expired)

    async def find(self, token: str) -> Optional[bytes]:
        async with self._lock:
            item = self._items.get(token)
            if item is None:
                return None
            data, expiry = item
            if _now() >= expiry:
                del self._items[token]
                return None
            return data

    async def commit(self, token: str, data: bytes, expiry: datetime) -> None:
        now = _now()
        async with self._lock:
            if now >= self._next_sweep:
                self._evict_expired(now)
            self._items[token] = (data, expiry)

    async def delete(self, token: str) -> None:
        async with self._lock:
            self._items.pop(token, None)

    async def all(self) -> Dict[str, bytes]:
        now = _now()
        async with self._lock:
            self._evict_expired(now)
            return {token: data for token, (data, _) in self._items.items()}

    async def cleanup(self) -> int:
        """Remove expired entries and return how many were removed."""
        async with self._lock:
            removed = self._evict_expired(_now())
        if removed:
            logger.debug(f"Removed {removed} expired sessions")
        return removed

    def start_cleanup(self, interval: float = 60.0) -> None:
        """Run cleanup() every `interval` seconds in a background task."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup_loop(interval))

    async def _cleanup_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.cleanup()

    async def close(self) -> None:
        """Stop the background cleanup task, if one is running."""
        task, self._cleanup_task = self._cleanup_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
