# tests/services/test_lifecycle.py
"""Tests for the post status state machine."""

from datetime import timedelta

import pytest

from hyperlocal.core.errors import IllegalTransition
from hyperlocal.db.time import utcnow
from hyperlocal.models import Post
from hyperlocal.models.post import (
    TERMINAL_STATUSES,
    ModerationStatus,
    PostCategory,
    PostStatus,
)
from hyperlocal.services.lifecycle import (
    TRANSITIONS,
    LifecycleEvent,
    can_transition,
    initial_status,
    transition,
)


def _post(status: PostStatus) -> Post:
    now = utcnow()
    return Post(
        id="post-1",
        author_id="user-1",
        category=PostCategory.GENERAL,
        content="Water interruption on Maginhawa",
        lat=14.6,
        lng=121.0,
        status=status,
        moderation_status=ModerationStatus.AUTO_APPROVED,
        expires_at=now + timedelta(hours=6),
        created_at=now,
        updated_at=now,
    )


def test_initial_status_follows_trust_decision() -> None:
    assert initial_status(True) == (PostStatus.ACTIVE, ModerationStatus.AUTO_APPROVED)
    assert initial_status(False) == (PostStatus.PENDING_MODERATION, ModerationStatus.PENDING)


@pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
def test_terminal_statuses_only_lead_to_archived(status: PostStatus) -> None:
    outgoing = {event: target for (source, event), target in TRANSITIONS.items() if source is status}
    assert outgoing == {LifecycleEvent.ARCHIVE: PostStatus.ARCHIVED}


def test_nothing_ever_leads_back_to_active_except_approval() -> None:
    sources = [source for (source, _), target in TRANSITIONS.items() if target is PostStatus.ACTIVE]
    assert sources == [PostStatus.PENDING_MODERATION]


def test_archived_is_final() -> None:
    assert not any(source is PostStatus.ARCHIVED for source, _ in TRANSITIONS)


@pytest.mark.parametrize(
    "event,target",
    [
        (LifecycleEvent.AUTHOR_DELETE, PostStatus.REMOVED_BY_AUTHOR),
        (LifecycleEvent.REPORT_THRESHOLD, PostStatus.AUTO_REMOVED),
        (LifecycleEvent.INVALID_THRESHOLD, PostStatus.AUTO_REMOVED),
        (LifecycleEvent.MOD_REMOVE, PostStatus.REMOVED_BY_MOD),
        (LifecycleEvent.TTL_ELAPSED, PostStatus.EXPIRED),
    ],
)
def test_active_transitions_set_terminal_timestamp(event: LifecycleEvent, target: PostStatus) -> None:
    post = _post(PostStatus.ACTIVE)
    now = utcnow()

    assert transition(post, event, now=now) is target
    assert post.status is target
    assert post.terminal_at == now
    assert post.updated_at == now


def test_moderator_transitions_update_moderation_status() -> None:
    approved = _post(PostStatus.PENDING_MODERATION)
    transition(approved, LifecycleEvent.MOD_APPROVE, now=utcnow())
    assert approved.status is PostStatus.ACTIVE
    assert approved.moderation_status is ModerationStatus.APPROVED
    assert approved.terminal_at is None

    rejected = _post(PostStatus.PENDING_MODERATION)
    transition(rejected, LifecycleEvent.MOD_REJECT, now=utcnow())
    assert rejected.status is PostStatus.REMOVED_BY_MOD
    assert rejected.moderation_status is ModerationStatus.REMOVED


@pytest.mark.parametrize("event", [LifecycleEvent.MOD_APPROVE, LifecycleEvent.TTL_ELAPSED])
def test_illegal_transition_raises_and_leaves_post_untouched(event: LifecycleEvent) -> None:
    post = _post(PostStatus.EXPIRED)

    with pytest.raises(IllegalTransition) as exc_info:
        transition(post, event, now=utcnow())

    assert post.status is PostStatus.EXPIRED
    assert exc_info.value.details["status"] == "expired"
    assert not can_transition(PostStatus.EXPIRED, event)


def test_pending_post_cannot_expire_or_be_deleted_by_author() -> None:
    assert not can_transition(PostStatus.PENDING_MODERATION, LifecycleEvent.TTL_ELAPSED)
    assert not can_transition(PostStatus.PENDING_MODERATION, LifecycleEvent.AUTHOR_DELETE)
