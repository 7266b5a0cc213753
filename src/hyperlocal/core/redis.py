"""Shared Redis client.

Redis only ever backs optional capabilities (rate limiting, the advisory
cache and the broadcast channel); callers treat every failure as "skip".
"""

from __future__ import annotations

from functools import lru_cache

import redis
from limits.storage import RedisStorage

from hyperlocal.core.settings import settings


@lru_cache(maxsize=1)
def get_redis() -> redis.Redis:
    """Return the process-wide Redis client.

    Connections are opened lazily, so building the client never blocks even
    when Redis is down.
    """
    return redis.Redis.from_url(
        settings.redis_url,
        socket_timeout=settings.redis_socket_timeout_seconds,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
        decode_responses=True,
    )


@lru_cache(maxsize=1)
def get_rate_limit_storage() -> RedisStorage:
    """Return the ``limits`` storage that backs request rate limiting."""
    return RedisStorage(
        settings.redis_url,
        socket_timeout=settings.redis_socket_timeout_seconds,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
    )
