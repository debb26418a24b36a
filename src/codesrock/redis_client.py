"""Shared Redis client.

The rate limiter keeps per-IP request counters here, and level-ups and
badge awards are broadcast on the ``pubsub:level_up`` and
``pubsub:badge_earned`` channels. Both are skipped while Redis is unavailable.
"""

import redis.asyncio as redis

_pool: redis.Redis | None = None


async def init_redis(url: str, max_connections: int = 20) -> None:
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
    )


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """Return the shared client. Raises RuntimeError before ``init_redis``."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


def get_redis_or_none() -> redis.Redis | None:
    """Client for optional broadcasts; None when Redis was never initialized."""
    return _pool
