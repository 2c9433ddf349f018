"""
Redis Cache Module

Shared Redis client for short-lived data such as passkey challenges and
signup tokens.
"""

import redis.asyncio as redis

from clubauth.config import get_settings

_redis_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """
    Get the shared Redis client instance.

    Creates a new connection on first call, reuses for subsequent calls.
    """
    global _redis_client

    if _redis_client is None:
        settings = get_settings()
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )

    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection on application shutdown."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
