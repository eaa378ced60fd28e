from functools import lru_cache

from redis.asyncio import Redis

from app.platform.config import settings


@lru_cache
def get_redis() -> Redis:
    """Shared Redis client built from REDIS_URL."""
    return Redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
    )
