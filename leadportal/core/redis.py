"""Shared Redis client for per-user rate limiting."""
import logging
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from leadportal.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[Redis] = None


async def init_redis() -> Redis:
    global _client
    client = Redis.from_url(settings.REDIS_URL, decode_responses=True, socket_connect_timeout=2)
    try:
        await client.ping()
    except RedisError as e:
        await client.aclose()
        logger.error(f"Failed to connect to Redis at {settings.REDIS_URL}: {e}")
        raise
    _client = client
    logger.info("Connected to Redis")
    return client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> Redis:
    if _client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _client


async def redis_ok() -> bool:
    try:
        return bool(await get_redis().ping())
    except (RuntimeError, RedisError):
        return False
