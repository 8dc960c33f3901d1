"""Redis client construction."""

import redis

from gitverse.config import settings


def create_redis(url: str | None = None) -> redis.Redis:
    """Build a Redis client for locks and other coordination state."""
    return redis.Redis.from_url(url or settings.REDIS_URL, decode_responses=True)
