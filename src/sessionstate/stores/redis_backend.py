import logging
import re
from datetime import datetime
from typing import Dict, List, NoReturn, Optional

import redis.asyncio as aioredis
from redis import RedisError, ConnectionError as RedisConnectionError

from ..errors import StoreError

logger = logging.getLogger('sessionstate.stores.redis')

DEFAULT_PREFIX = "scs:session:"

# Characters with a meaning in Redis glob-style patterns
_GLOB_SPECIALS = re.compile(r"([\\*?\[\]])")


def escape_glob(text: str) -> str:
    return _GLOB_SPECIALS.sub(r"\\\1", text)


class RedisStore:
    def __init__(self, redis_client: aioredis.Redis, prefix: str = DEFAULT_PREFIX, scan_count: int = 500):
        """
        Initialize the Redis store with an async Redis client.

        The client must be created with decode_responses=False, session
        data is raw bytes. Every key is `prefix + token`.
        """
        self.redis_client = redis_client
        self.prefix = prefix
        self.scan_count = scan_count

    def _key(self, token: str) -> str:
        return f"{self.prefix}{token}"

    def _handle_redis_error(self, operation: str, error: Exception) -> NoReturn:
        """Centralized error handling for Redis operations."""
        if isinstance(error, RedisConnectionError):
            logger.error(f"Redis connection failed during {operation}: {error}")
            raise StoreError(f"Database connection error during {operation}") from error
        logger.error(f"Redis error during {operation}: {error}")
        raise StoreError(f"Database error during {operation}") from error

    async def find(self, token: str) -> Optional[bytes]:
        try:
            return await self.redis_client.get(self._key(token))
        except RedisError as e:
            self._handle_redis_error("session find", e)

    async def commit(self, token: str, data: bytes, expiry: datetime) -> None:
        expire_at_ms = int(expiry.timestamp() * 1000)
        try:
            await self.redis_client.set(self._key(token), data, pxat=expire_at_ms)
        except RedisError as e:
            self._handle_redis_error("session commit", e)

    async def delete(self, token: str) -> None:
        try:
            deleted_count = await self.redis_client.delete(self._key(token))
        except RedisError as e:
            self._handle_redis_error("session deletion", e)

        if deleted_count == 0:
            logger.debug("Delete of a session that was not in Redis")

    async def all(self) -> Dict[str, bytes]:
        pattern = escape_glob(self.prefix) + "*"
        try:
            keys: List = [key async for key in self.redis_client.scan_iter(match=pattern, count=self.scan_count)]
            if not keys:
                return {}
            values = await self.redis_client.mget(keys)
        except RedisError as e:
            self._handle_redis_error("session listing", e)

        if len(keys) != len(values):
            raise StoreError("Length of keys and values do not match")

        sessions = {}
        for key, value in zip(keys, values):
            # Expired between SCAN and MGET
            if value is None:
                continue
            if isinstance(key, bytes):
                key = key.decode("utf-8")
            sessions[key[len(self.prefix):]] = value
        return sessions
