"""Redis client factory and the two expiring-key primitives we use.

Redis holds only short-lived, losable state (rate-limit windows, webhook
de-duplication markers). Balances and orders live in PostgreSQL.
"""

import redis.asyncio as aioredis

from config.settings import settings

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Get or create the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.close()
        _redis_pool = None


async def hit_window(redis: aioredis.Redis, key: str, window_seconds: int) -> int:
    """Fixed-window counter; returns the hit count. The key carries its TTL before the first INCR."""
    await redis.set(key, 0, nx=True, ex=window_seconds)
    return int(await redis.incr(key))


async def claim_once(redis: aioredis.Redis, key: str, ttl_seconds: int) -> bool:
    """SET NX EX. True the first time key is claimed within ttl_seconds."""
    return bool(await redis.set(key, "1", nx=True, ex=ttl_seconds))
