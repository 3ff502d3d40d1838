import logging

from fastapi import HTTPException
from redis.exceptions import RedisError
from leadportal.core.redis import get_redis
from leadportal.core.config import settings
from leadportal.core.metrics import rate_limit_exceeded

logger = logging.getLogger(__name__)


async def check_rate_limit(user_id: int):
    if not settings.RATE_LIMIT_ENABLED:
        return
    try:
        redis = get_redis()
    except RuntimeError:
        logger.warning("Rate limiting skipped: Redis not initialized")
        return
    key = f"rl:{user_id}"
    try:
        current = await redis.get(key)
        if current is None:
            await redis.set(key, "1", ex=settings.RATE_LIMIT_WINDOW)
            return
        count = int(current)
        if count < settings.RATE_LIMIT:
            await redis.incr(key)
            return
    except RedisError as e:
        logger.warning(f"Rate limiting skipped: {e}")
        return
    rate_limit_exceeded.inc()
    raise HTTPException(status_code=429, detail="Rate limit exceeded")
