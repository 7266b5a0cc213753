"""Post status state machine.

The transition table below is the only place that knows which status changes
are legal. Every component that moves a post between statuses goes through
:func:`transition`, which raises :class:`IllegalTransition` for anything not
in the table, so a terminal post can never re-enter ``active``.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from hyperlocal.core.errors import IllegalTransition
from hyperlocal.models.post import (
    TERMINAL_STATUSES,
    ModerationStatus,
    Post,
    PostStatus,
)


class LifecycleEvent(str, Enum):
    MOD_APPROVE = "mod_approve"
    MOD_REJECT = "mod_reject"
    MOD_REMOVE = "mod_remove"
    AUTHOR_DELETE = "author_delete"
    REPORT_THRESHOLD = "report_threshold"
    INVALID_THRESHOLD = "invalid_threshold"
    TTL_ELAPSED = "ttl_elapsed"
    ARCHIVE = "archive"


TRANSITIONS: dict[tuple[PostStatus, LifecycleEvent], PostStatus] = {
    (PostStatus.PENDING_MODERATION, LifecycleEvent.MOD_APPROVE): PostStatus.ACTIVE,
    (PostStatus.PENDING_MODERATION, LifecycleEvent.MOD_REJECT): PostStatus.REMOVED_BY_MOD,
    (PostStatus.PENDING_MODERATION, LifecycleEvent.MOD_REMOVE): PostStatus.REMOVED_BY_MOD,
    (PostStatus.ACTIVE, LifecycleEvent.AUTHOR_DELETE): PostStatus.REMOVED_BY_AUTHOR,
    (PostStatus.ACTIVE, LifecycleEvent.REPORT_THRESHOLD): PostStatus.AUTO_REMOVED,
    (PostStatus.ACTIVE, LifecycleEvent.INVALID_THRESHOLD): PostStatus.AUTO_REMOVED,
    (PostStatus.ACTIVE, LifecycleEvent.MOD_REMOVE): PostStatus.REMOVED_BY_MOD,
    (PostStatus.ACTIVE, LifecycleEvent.MOD_REJECT): PostStatus.REMOVED_BY_MOD,
    (PostStatus.ACTIVE, LifecycleEvent.TTL_ELAPSED): PostStatus.EXPIRED,
}
TRANSITIONS.update(
    {(status, LifecycleEvent.ARCHIVE): PostStatus.ARCHIVED for status in TERMINAL_STATUSES}
)

# Moderation status that accompanies a moderator-driven transition.
_MODERATION_STATUS_FOR: dict[LifecycleEvent, ModerationStatus] = {
    LifecycleEvent.MOD_APPROVE: ModerationStatus.APPROVED,
    LifecycleEvent.MOD_REJECT: ModerationStatus.REMOVED,
    LifecycleEvent.MOD_REMOVE: ModerationStatus.REMOVED,
}


def initial_status(auto_approve: bool) -> tuple[PostStatus, ModerationStatus]:
    """Status pair for a freshly submitted post that passed the duplicate gate."""
    if auto_approve:
        return PostStatus.ACTIVE, ModerationStatus.AUTO_APPROVED
    return PostStatus.PENDING_MODERATION, ModerationStatus.PENDING


def can_transition(status: PostStatus, event: LifecycleEvent) -> bool:
    return (status, event) in TRANSITIONS


def transition(post: Post, event: LifecycleEvent, *, now: datetime) -> PostStatus:
    """Apply ``event`` to ``post`` in place and return the new status.

    Raises:
        IllegalTransition: If the table has no edge for (status, event).
    """
    target = TRANSITIONS.get((post.status, event))
    if target is None:
        raise IllegalTransition(
            f"Post {post.id}: no transition from {post.status.value} on {event.value}",
            details={"post_id": post.id, "status": post.status.value, "event": event.value},
        )

    post.status = target
    post.updated_at = now
    if target in TERMINAL_STATUSES:
        post.terminal_at = now
    moderation_status = _MODERATION_STATUS_FOR.get(event)
    if moderation_status is not None:
        post.moderation_status = moderation_status
    return target
