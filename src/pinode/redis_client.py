"""Redis connection pool.

Redis backs the rate limiter and the mission claimed-set cache. Neither is
authoritative, so the API starts and serves without it.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

_pool: redis.Redis | None = None


async def init_redis(url: str) -> bool:
    """Connect to Redis. Returns False (and stays disconnected) if it is unreachable."""
    global _pool  # noqa: PLW0603
    client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )
    try:
        await client.ping()
    except (RedisError, OSError):
        logger.warning("Redis unavailable at startup; running without cache or rate limiting")
        await client.aclose()
        _pool = None
        return False
    _pool = client
    return True


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """Get the Redis client. Raises RuntimeError when not connected."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


def get_optional_redis() -> redis.Redis | None:
    """FastAPI dependency: the Redis client, or None when caching is unavailable."""
    return _pool
