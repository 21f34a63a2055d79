import redis.asyncio as aioredis
import os
import logging
from typing import Dict, Optional

logger = logging.getLogger('sessionstate.redis_client')

DEFAULT_REDIS_URL = "redis://localhost:6379"

# Session data is stored as raw bytes, so responses are never decoded.
redis_clients: Dict[str, aioredis.Redis] = {}


def _resolve_url(redis_url: Optional[str]) -> str:
    return redis_url or os.getenv("REDIS_URL", DEFAULT_REDIS_URL)


def get_redis_client(redis_url: Optional[str] = None) -> aioredis.Redis:
    """Return the cached client for `redis_url` (or REDIS_URL), creating it on first use."""
    url = _resolve_url(redis_url)
    if url not in redis_clients:
        logger.info(f"Creating new Redis client for sessions with URL {url}")
        redis_clients[url] = aioredis.from_url(url, decode_responses=False)

    return redis_clients[url]


async def create_redis_client(redis_url: Optional[str] = None) -> aioredis.Redis:
    url = _resolve_url(redis_url)

    if url in redis_clients:
        return redis_clients[url]

    logger.info(f"Creating new Redis client for sessions with URL {url}")
    client = aioredis.from_url(url, decode_responses=False)
    redis_clients[url] = client
    return client


async def close_redis_clients() -> None:
    """Close and forget every cached client."""
    while redis_clients:
        url, client = redis_clients.popitem()
        logger.info(f"Closing Redis client for {url}")
        await client.aclose()
