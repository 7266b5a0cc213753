# tests/services/test_extension.py
"""Tests for author-driven TTL extension."""

from collections.abc import Callable
from datetime import timedelta
from typing import Any

import pytest
from sqlalchemy.orm import Session

from hyperlocal.core.categories import default_snapshot
from hyperlocal.core.errors import NotFound, PolicyRejection
from hyperlocal.db.time import utcnow
from hyperlocal.models import Post, User
from hyperlocal.models.post import PostCategory, PostStatus
from hyperlocal.services.broadcast import BroadcastEvent
from hyperlocal.services.extension import extend_post, has_engagement


def _extend(db: Session, post: Post, user: User, **kwargs):
    kwargs.setdefault("snapshot", default_snapshot())
    return extend_post(db, post.id, user, **kwargs)


def test_extension_adds_category_hours(
    db_session: Session, make_post: Callable[..., Post], test_user: User, broadcaster: Any
) -> None:
    now = utcnow()
    expires_at = now + timedelta(minutes=20)
    post = make_post(expires_at=expires_at, reaction_thanks=1)

    result = _extend(db_session, post, test_user, broadcaster=broadcaster, now=now)

    assert result.previous_expires_at == expires_at
    assert result.new_expires_at == expires_at + timedelta(hours=2)
    assert result.extensions_remaining == 0
    assert db_session.get(Post, post.id).extensions_used == 1
    assert broadcaster.of_type(BroadcastEvent.POST_UPDATED)[0]["post_id"] == post.id


def test_extension_count_never_exceeds_category_maximum(
    db_session: Session, make_post: Callable[..., Post], test_user: User
) -> None:
    """lost_found allows two extensions; the third always fails."""
    now = utcnow()
    post = make_post(
        category=PostCategory.LOST_FOUND,
        expires_at=now + timedelta(minutes=10),
        view_count=10,
    )

    for expected_remaining in (1, 0):
        result = _extend(db_session, post, test_user, now=now)
        assert result.extensions_remaining == expected_remaining
        # Jump to the end of the new lifetime so the window check passes again.
        now = result.new_expires_at - timedelta(minutes=5)

    with pytest.raises(PolicyRejection) as exc_info:
        _extend(db_session, post, test_user, now=now)
    assert exc_info.value.code == "NO_EXTENSIONS"
    db_session.rollback()
    assert db_session.get(Post, post.id).extensions_used == 2


def test_category_without_extensions(
    db_session: Session, make_post: Callable[..., Post], test_user: User
) -> None:
    now = utcnow()
    post = make_post(category=PostCategory.NOISE_COMPLAINT, expires_at=now + timedelta(minutes=5))
    with pytest.raises(PolicyRejection) as exc_info:
        _extend(db_session, post, test_user, now=now)
    assert exc_info.value.code == "NO_EXTENSIONS"


def test_too_early_to_extend(db_session: Session, make_post: Callable[..., Post], test_user: User) -> None:
    now = utcnow()
    post = make_post(expires_at=now + timedelta(minutes=31), reaction_confirm=3)
    with pytest.raises(PolicyRejection) as exc_info:
        _extend(db_session, post, test_user, now=now)
    assert exc_info.value.code == "TOO_EARLY"


def test_low_engagement(db_session: Session, make_post: Callable[..., Post], test_user: User) -> None:
    now = utcnow()
    post = make_post(expires_at=now + timedelta(minutes=10), view_count=4, reaction_no_longer_valid=2)
    with pytest.raises(PolicyRejection) as exc_info:
        _extend(db_session, post, test_user, now=now)
    assert exc_info.value.code == "LOW_ENGAGEMENT"


def test_only_the_author_can_extend(
    db_session: Session, make_post: Callable[..., Post], other_user: User
) -> None:
    now = utcnow()
    post = make_post(expires_at=now + timedelta(minutes=10), reaction_thanks=1)
    with pytest.raises(NotFound):
        _extend(db_session, post, other_user, now=now)


def test_terminal_post_cannot_be_extended(
    db_session: Session, make_post: Callable[..., Post], test_user: User
) -> None:
    now = utcnow()
    post = make_post(status=PostStatus.EXPIRED, expires_at=now - timedelta(minutes=1), reaction_thanks=1)
    with pytest.raises(NotFound):
        _extend(db_session, post, test_user, now=now)
    db_session.rollback()
    assert db_session.get(Post, post.id).status is PostStatus.EXPIRED


def test_has_engagement() -> None:
    assert has_engagement(Post(reaction_confirm=0, reaction_still_active=1, reaction_thanks=0, view_count=0))
    assert has_engagement(Post(reaction_confirm=0, reaction_still_active=0, reaction_thanks=0, view_count=5))
    assert not has_engagement(Post(reaction_confirm=0, reaction_still_active=0, reaction_thanks=0, view_count=4))
