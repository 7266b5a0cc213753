"""Moving-window rate limiting for write endpoints.

The limiter is an injected capability built on the ``limits`` package.
Production wires :class:`WindowRateLimiter` to a Redis storage; when Redis is
unreachable it allows the request and logs a warning rather than failing the
caller.
"""

from __future__ import annotations

import logging
import math
import time
from typing import NamedTuple, Protocol

from limits import RateLimitItemPerSecond
from limits.storage import Storage
from limits.strategies import MovingWindowRateLimiter
from redis.exceptions import RedisError

from hyperlocal.core.errors import RateLimited

logger = logging.getLogger(__name__)


class RateLimitResult(NamedTuple):
    allowed: bool
    remaining: int
    # Seconds until the oldest hit leaves the window; 0 when allowed.
    retry_after: int


class RateLimiter(Protocol):
    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        """Record one hit against ``key`` and report whether it was allowed."""
        ...


def enforce(limiter: RateLimiter, key: str, limit: int, window_seconds: int) -> RateLimitResult:
    """Record a hit and raise :class:`RateLimited` when the window is full."""
    result = limiter.hit(key, limit, window_seconds)
    if not result.allowed:
        raise RateLimited(
            f"Too many requests; try again in {result.retry_after} seconds",
            retry_after=result.retry_after,
            remaining=result.remaining,
        )
    return result


class WindowRateLimiter:
    """Moving window over any ``limits`` storage.

    Rejected hits do not occupy the window, so a caller that keeps retrying
    is let back in as soon as the oldest accepted hit ages out.
    """

    def __init__(self, storage: Storage, *, namespace: str = "hyperlocal") -> None:
        self.storage = storage
        self.namespace = namespace
        self._strategy = MovingWindowRateLimiter(storage)

    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        item = RateLimitItemPerSecond(limit, window_seconds, namespace=self.namespace)
        try:
            allowed = self._strategy.hit(item, key)
            reset_time, remaining = self._strategy.get_window_stats(item, key)
        except (RedisError, OSError) as exc:
            logger.warning("Rate limiter unavailable, allowing %s: %s", key, exc)
            return RateLimitResult(True, limit, 0)

        if allowed:
            return RateLimitResult(True, remaining, 0)
        retry_after = math.ceil(reset_time - time.time())
        return RateLimitResult(False, 0, max(1, retry_after))


class NoopRateLimiter:
    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        return RateLimitResult(True, limit, 0)
