"""
Session manager.

The Manager attaches a SessionRecord to a request's SessionScope on load(),
lets handlers read and mutate it, and persists it through the configured
Store and Codec on save().
"""

import asyncio
import inspect
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, List, Optional, Tuple, TypeVar

from .accessors import TypedAccessorsMixin
from .codec import Codec, JSONCodec
from .errors import SessionNotLoadedError, StoreTimeoutError, UnsupportedStoreOperation
from .record import (
    UNMODIFIED,
    SaveResult,
    SessionRecord,
    SessionScope,
    Status,
    require_aware,
    utcnow,
)
from .stores.base import Store, StoreCapabilities
from .stores.memory import MemoryStore
from .tokens import generate_token

logger = logging.getLogger('sessionstate.manager')

DEFAULT_LIFETIME = timedelta(hours=24)
REMEMBER_ME_KEY = "__rememberMe"

T = TypeVar("T")

IterateCallback = Callable[[SessionScope], Optional[Awaitable[None]]]


class Manager(TypedAccessorsMixin):
    def __init__(
        self,
        store: Optional[Store] = None,
        codec: Optional[Codec] = None,
        lifetime: timedelta = DEFAULT_LIFETIME,
        idle_timeout: timedelta = timedelta(0),
        store_timeout: Optional[float] = None,
    ):
        """
        Initialize the session manager.

        Args:
            store: Where session bytes are persisted (defaults to MemoryStore)
            codec: How session data becomes bytes (defaults to JSONCodec)
            lifetime: Absolute lifetime, set when a session is created and
                never extended by activity
            idle_timeout: Sliding inactivity timeout; zero disables it
            store_timeout: Seconds allowed for each store call, or None for
                no bound
        """
        self.store = store if store is not None else MemoryStore()
        if not isinstance(self.store, Store):
            raise TypeError(f"{type(self.store).__name__} does not implement the session Store contract")

        self.codec = codec if codec is not None else JSONCodec()
        self.lifetime = lifetime
        self.idle_timeout = idle_timeout
        self.store_timeout = store_timeout
        self.capabilities = StoreCapabilities.resolve(self.store)

        # Identifies this manager's record inside a SessionScope
        self._handle = object()

    def _record(self, scope: SessionScope) -> SessionRecord:
        record = scope.get(self._handle)
        if record is None:
            raise SessionNotLoadedError("No session data in scope, Manager.load() must be called first")
        return record

    async def _store_call(self, operation: str, call: Awaitable[T]) -> T:
        if self.store_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self.store_timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Session store {operation} timed out after {self.store_timeout}s")
            raise StoreTimeoutError(f"Session store {operation} timed out") from e

    def _expiry(self, deadline: datetime) -> datetime:
        if self.idle_timeout > timedelta(0):
            return min(deadline, utcnow() + self.idle_timeout)
        return deadline

    async def load(
        self,
        scope: SessionScope,
        token: Optional[str] = None,
        *,
        lifetime: Optional[timedelta] = None,
        deadline: Optional[datetime] = None,
    ) -> SessionRecord:
        """
        Attach the session for `token` to `scope` and return it.

        A scope that already carries a record is returned unchanged. An empty
        or unknown token starts a fresh session; `lifetime`/`deadline` only
        apply to fresh sessions.
        """
        existing = scope.get(self._handle)
        if existing is not None:
            return existing

        if not token:
            record = SessionRecord.new(self.lifetime, override_lifetime=lifetime, override_deadline=deadline)
            scope.attach(self._handle, record)
            return record

        data = await self._store_call("find", self.store.find(token))
        if data is None:
            logger.debug("Session token not found in store, starting a new session")
            record = SessionRecord.new(self.lifetime, override_lifetime=lifetime, override_deadline=deadline)
            scope.attach(self._handle, record)
            return record

        session_deadline, values = self.codec.decode(data)
        record = SessionRecord(deadline=session_deadline, token=token, values=values)
        # Re-commit on save so the idle timeout window slides forward
        if self.idle_timeout > timedelta(0):
            record.status = Status.MODIFIED

        scope.attach(self._handle, record)
        logger.debug("Loaded existing session from store")
        return record

    async def commit(self, scope: SessionScope) -> Tuple[str, datetime]:
        """
        Persist the session and return its token and store expiry.

        A token is issued on the first commit and kept on the record even if
        the commit then fails, so a retry reuses it.
        """
        record = self._record(scope)

        async with record.lock:
            if not record.token:
                record.token = generate_token()
                logger.debug("Issued new session token")

            data = self.codec.encode(record.deadline, record.values)
            expiry = self._expiry(record.deadline)
            await self._store_call("commit", self.store.commit(record.token, data, expiry))
            return record.token, expiry

    async def save(self, scope: SessionScope) -> SaveResult:
        """
        Commit the session if it was modified.

        Returns the UNMODIFIED sentinel when there is nothing to write, and a
        result with an empty token and no expiry when the session was
        destroyed.
        """
        status = await self.status(scope)
        if status is Status.MODIFIED:
            token, expiry = await self.commit(scope)
            return SaveResult(token=token, expiry=expiry)
        if status is Status.DESTROYED:
            return SaveResult(token="", expiry=None)
        return UNMODIFIED

    async def destroy(
        self,
        scope: SessionScope,
        *,
        lifetime: Optional[timedelta] = None,
        deadline: Optional[datetime] = None,
    ) -> None:
        """
        Delete the session from the store and mark it Destroyed.

        The in-memory record is reset to a fresh anonymous session, so later
        reads and writes in the same request work on a new session. If the
        store delete fails the record is left as it was.
        """
        record = self._record(scope)

        async with record.lock:
            await self._store_call("delete", self.store.delete(record.token))

            record.status = Status.DESTROYED
            record.reset(self.lifetime)
            record.override_deadline(lifetime, deadline)
        logger.debug("Session destroyed")

    async def renew_token(
        self,
        scope: SessionScope,
        *,
        lifetime: Optional[timedelta] = None,
        deadline: Optional[datetime] = None,
    ) -> None:
        """
        Give the session a new token while keeping its values.

        Call this before any change of privilege level (login, logout) to
        prevent session fixation. The old token's data is deleted from the
        store and the lifetime restarts. If the delete fails nothing changes;
        if it succeeds but token generation fails, the old row is already
        gone while the record still carries the old token.
        """
        record = self._record(scope)

        async with record.lock:
            await self._store_call("delete", self.store.delete(record.token))

            record.token = generate_token()
            record.deadline = utcnow() + self.lifetime
            record.override_deadline(lifetime, deadline)
            record.status = Status.MODIFIED
        logger.debug("Session token renewed")

    async def merge_session(self, scope: SessionScope, token: str) -> None:
        """
        Fold the session stored under `token` into the current one.

        Useful when a redirect flow leaves the client with a second session.
        Values from the other session overwrite current ones on collision,
        the deadline becomes the later of the two, and the other session is
        deleted from the store. An unknown token is ignored.
        """
        record = self._record(scope)

        data = await self._store_call("find", self.store.find(token))
        if data is None:
            return

        foreign_deadline, foreign_values = self.codec.decode(data)

        async with record.lock:
            if record.token == token:
                return

            if foreign_deadline > record.deadline:
                record.deadline = foreign_deadline
            record.values.update(foreign_values)
            record.status = Status.MODIFIED

            await self._store_call("delete", self.store.delete(token))
        logger.debug(f"Merged {len(foreign_values)} values from another session")

    async def iterate(self, callback: IterateCallback) -> None:
        """
        Call `callback` with a scope for every live session in the store.

        Each scope carries a freshly decoded record, so the callback can use
        any Manager operation on it. The first error stops the iteration.

        Raises:
            UnsupportedStoreOperation: if the store cannot list sessions
        """
        if not self.capabilities.iterable:
            raise UnsupportedStoreOperation(f"{type(self.store).__name__} does not support iteration")

        sessions = await self._store_call("all", self.store.all())
        for token, data in sessions.items():
            deadline, values = self.codec.decode(data)
            scope = SessionScope()
            scope.attach(self._handle, SessionRecord(deadline=deadline, token=token, values=values))

            result = callback(scope)
            if inspect.isawaitable(result):
                await result

    async def put(self, scope: SessionScope, key: str, value: Any) -> None:
        record = self._record(scope)
        async with record.lock:
            record.values[key] = value
            record.status = Status.MODIFIED

    async def get(self, scope: SessionScope, key: str, default: Any = None) -> Any:
        record = self._record(scope)
        async with record.lock:
            return record.values.get(key, default)

    async def pop(self, scope: SessionScope, key: str, default: Any = None) -> Any:
        """One-time get: return the value and delete it, marking the session Modified."""
        record = self._record(scope)
        async with record.lock:
            if key not in record.values:
                return default
            record.status = Status.MODIFIED
            return record.values.pop(key)

    async def remove(self, scope: SessionScope, key: str) -> None:
        record = self._record(scope)
        async with record.lock:
            if key not in record.values:
                return
            del record.values[key]
            record.status = Status.MODIFIED

    async def clear(self, scope: SessionScope) -> None:
        """Remove every value; token and deadline are untouched."""
        record = self._record(scope)
        async with record.lock:
            if not record.values:
                return
            record.values.clear()
            record.status = Status.MODIFIED

    async def exists(self, scope: SessionScope, key: str) -> bool:
        record = self._record(scope)
        async with record.lock:
            return key in record.values

    async def keys(self, scope: SessionScope) -> List[str]:
        record = self._record(scope)
        async with record.lock:
            return sorted(record.values)

    async def expire(self, scope: SessionScope, expiry: datetime) -> None:
        """Move the session's absolute deadline to `expiry`."""
        require_aware(expiry)
        record = self._record(scope)
        async with record.lock:
            record.deadline = expiry
            record.status = Status.MODIFIED

    async def status(self, scope: SessionScope) -> Status:
        record = self._record(scope)
        async with record.lock:
            return record.status

    async def token(self, scope: SessionScope) -> str:
        """Session token, or "" if the session has never been committed."""
        record = self._record(scope)
        async with record.lock:
            return record.token

    async def deadline(self, scope: SessionScope) -> datetime:
        """
        Absolute expiry of the session.

        With an idle timeout the session can expire earlier than this.
        """
        record = self._record(scope)
        async with record.lock:
            return record.deadline

    async def remember_me(self, scope: SessionScope, value: bool) -> None:
        """Make the session cookie persistent even when cookies do not persist by default."""
        await self.put(scope, REMEMBER_ME_KEY, value)
