"""Advisory read-through cache.

Cached values are JSON documents that are safe to drop at any time. A Redis
outage degrades to recomputing on every call.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, Protocol

import redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class Cache(Protocol):
    def get_or_compute(self, key: str, ttl_seconds: int, compute: Callable[[], Any]) -> Any:
        ...


class RedisCache:
    def __init__(self, client: redis.Redis, *, prefix: str = "cache") -> None:
        self._redis = client
        self._prefix = prefix

    def get_or_compute(self, key: str, ttl_seconds: int, compute: Callable[[], Any]) -> Any:
        redis_key = f"{self._prefix}:{key}"
        try:
            cached = self._redis.get(redis_key)
        except (RedisError, OSError) as exc:
            logger.warning("Cache read failed for %s: %s", redis_key, exc)
            cached = None
        if cached:
            return json.loads(cached)

        value = compute()
        try:
            self._redis.setex(redis_key, ttl_seconds, json.dumps(value, default=str))
        except (RedisError, OSError) as exc:
            logger.warning("Cache write failed for %s: %s", redis_key, exc)
        return value


class NullCache:
    """Always recompute."""

    def get_or_compute(self, key: str, ttl_seconds: int, compute: Callable[[], Any]) -> Any:
        return compute()
