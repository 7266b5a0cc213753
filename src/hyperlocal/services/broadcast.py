"""Fire-and-forget realtime events.

Events are published as ``{"event": ..., "data": ...}`` JSON on a single
pub/sub channel; the websocket fan-out that owns subscribers lives elsewhere.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Protocol

import redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class BroadcastEvent(str, Enum):
    POST_NEW = "post:new"
    POST_EXPIRED = "post:expired"
    POST_UPDATED = "post:updated"


class Broadcaster(Protocol):
    def publish(self, event: BroadcastEvent, data: dict[str, Any]) -> None:
        ...


class RedisBroadcaster:
    def __init__(self, client: redis.Redis, channel: str) -> None:
        self._redis = client
        self.channel = channel

    def publish(self, event: BroadcastEvent, data: dict[str, Any]) -> None:
        message = json.dumps({"event": event.value, "data": data}, default=str)
        try:
            self._redis.publish(self.channel, message)
        except (RedisError, OSError) as exc:
            logger.warning("Dropped %s broadcast: %s", event.value, exc)


class NullBroadcaster:
    def publish(self, event: BroadcastEvent, data: dict[str, Any]) -> None:
        logger.debug("Broadcast %s suppressed", event.value)


def post_summary(post: Any) -> dict[str, Any]:
    """Payload shared by post events. Carries the fuzzed location only."""
    return {
        "id": post.id,
        "category": post.category.value,
        "lat": post.lat,
        "lng": post.lng,
        "status": post.status.value,
        "expires_at": post.expires_at.isoformat(),
    }
