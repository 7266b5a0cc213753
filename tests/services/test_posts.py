# tests/services/test_posts.py
"""Tests for the post submission pipeline and read paths."""

import random
from collections.abc import Callable
from datetime import timedelta
from typing import Any

import pytest
from limits.storage import MemoryStorage
from sqlalchemy import select
from sqlalchemy.orm import Session

from hyperlocal.core.categories import default_snapshot
from hyperlocal.core.errors import InvalidInput, NotFound, PolicyRejection, RateLimited
from hyperlocal.core.settings import settings
from hyperlocal.db.time import utcnow
from hyperlocal.models import (
    ModerationQueueItem,
    NotificationJob,
    Post,
    PostReaction,
    ProximityCell,
    User,
)
from hyperlocal.models.moderation import QueueReason
from hyperlocal.models.post import ModerationStatus, PostCategory, PostStatus
from hyperlocal.models.reaction import ReactionType
from hyperlocal.models.user import UserRole
from hyperlocal.services.broadcast import BroadcastEvent, NullBroadcaster
from hyperlocal.services.geofuzz import haversine_distance
from hyperlocal.services.posts import DuplicateStatus, PostService
from hyperlocal.services.ratelimit import WindowRateLimiter

ORIGIN = (14.5995, 120.9842)


class FixedScorer:
    def __init__(self, value: float) -> None:
        self.value = value

    def score(self, new_content: str, existing_content: str, distance_m: float) -> float:
        return self.value


def _service(db: Session, **kwargs: Any) -> PostService:
    kwargs.setdefault("snapshot", default_snapshot())
    kwargs.setdefault("rng", random.Random(7))
    kwargs.setdefault("broadcaster", NullBroadcaster())
    return PostService(db, **kwargs)


def _submit(service: PostService, author: User, **overrides: Any):
    payload: dict[str, Any] = {
        "content": "fishballs at the corner",
        "lat": ORIGIN[0],
        "lng": ORIGIN[1],
        "category": "street_food",
    }
    payload.update(overrides)
    return service.submit(author, **payload)


def test_trusted_author_post_is_active_and_fuzzed(
    db_session: Session, make_user: Callable[..., User], broadcaster: Any
) -> None:
    author = make_user(trust_score=60)
    service = _service(db_session, broadcaster=broadcaster)

    result = _submit(service, author)
    post = result.post

    assert post.status is PostStatus.ACTIVE
    assert post.moderation_status is ModerationStatus.AUTO_APPROVED
    assert 30 <= post.fuzz_radius_used <= 50
    assert 30 - 1e-3 <= haversine_distance(*ORIGIN, post.lat, post.lng) <= 50 + 1e-3
    assert post.expires_at - post.created_at == timedelta(hours=4)
    assert result.duplicate_status == DuplicateStatus.UNIQUE
    assert result.queue_item is None
    assert broadcaster.of_type(BroadcastEvent.POST_NEW)[0]["id"] == post.id

    job = db_session.execute(select(NotificationJob)).scalar_one()
    assert job.post_id == post.id
    assert job.run_after - job.created_at == timedelta(seconds=5)


def test_raw_coordinate_is_never_persisted(db_session: Session, make_user: Callable[..., User]) -> None:
    author = make_user(trust_score=60)
    _submit(_service(db_session), author)

    coordinates = set()
    for model in (Post, ProximityCell, NotificationJob):
        for row in db_session.execute(select(model)).scalars():
            coordinates.add((row.lat, row.lng))

    assert ORIGIN not in coordinates
    assert len(coordinates) == 1


def test_low_trust_author_goes_to_moderation_queue(
    db_session: Session, make_user: Callable[..., User], broadcaster: Any
) -> None:
    author = make_user(trust_score=10)

    result = _submit(
        _service(db_session, broadcaster=broadcaster),
        author,
        category="safety_alert",
        content="Live wire down on Kalayaan Ave",
    )

    assert result.post.status is PostStatus.PENDING_MODERATION
    assert result.post.moderation_status is ModerationStatus.PENDING
    item = db_session.execute(select(ModerationQueueItem)).scalar_one()
    assert item.post_id == result.post.id
    assert item.reason is QueueReason.LOW_TRUST_AUTO_QUEUE
    assert item.priority == 1
    assert broadcaster.events == []
    assert db_session.execute(select(NotificationJob)).first() is None


@pytest.mark.parametrize(
    "score,expected_status,linked",
    [
        (0.6, DuplicateStatus.POSSIBLE_DUPLICATE, True),
        (0.3, DuplicateStatus.UNIQUE, False),
    ],
)
def test_duplicate_gate_links_or_ignores(
    db_session: Session,
    make_user: Callable[..., User],
    make_post: Callable[..., Post],
    score: float,
    expected_status: str,
    linked: bool,
) -> None:
    existing = make_post()
    result = _submit(_service(db_session, scorer=FixedScorer(score)), make_user())

    assert result.duplicate_status == expected_status
    assert result.post.duplicate_score == pytest.approx(score)
    assert result.post.linked_post_id == (existing.id if linked else None)


def test_duplicate_gate_rejects_without_creating_a_row(
    db_session: Session, make_user: Callable[..., User], make_post: Callable[..., Post]
) -> None:
    existing = make_post()

    with pytest.raises(PolicyRejection) as exc_info:
        _submit(_service(db_session, scorer=FixedScorer(0.75)), make_user())

    assert exc_info.value.code == "DUPLICATE_POST"
    assert exc_info.value.details["existing_post_id"] == existing.id
    db_session.rollback()
    assert [p.id for p in db_session.execute(select(Post)).scalars()] == [existing.id]


@pytest.mark.parametrize(
    "overrides,code",
    [
        ({"content": "   "}, "INVALID_CONTENT"),
        ({"content": "x" * 281}, "INVALID_CONTENT"),
        ({"lat": 91.0}, "INVALID_LOCATION"),
        ({"lng": float("nan")}, "INVALID_LOCATION"),
        ({"category": "karaoke"}, "INVALID_CATEGORY"),
    ],
)
def test_invalid_input_is_rejected_before_side_effects(
    db_session: Session, make_user: Callable[..., User], overrides: dict[str, Any], code: str
) -> None:
    author = make_user()
    limiter = WindowRateLimiter(MemoryStorage())
    with pytest.raises(InvalidInput) as exc_info:
        _submit(_service(db_session, rate_limiter=limiter), author, **overrides)

    assert exc_info.value.code == code
    assert db_session.execute(select(Post)).first() is None
    # The failed attempt did not consume the author's rate-limit budget.
    budget = settings.post_rate_limit_count
    result = limiter.hit(f"post:{author.id}", budget, settings.post_rate_limit_window_seconds)
    assert result.remaining == budget - 1


def test_content_is_stripped_and_280_chars_allowed(db_session: Session, make_user: Callable[..., User]) -> None:
    result = _submit(_service(db_session), make_user(), content="  " + "y" * 280 + "  ")
    assert result.post.content == "y" * 280


def test_muted_author_is_rejected(db_session: Session, make_user: Callable[..., User]) -> None:
    author = make_user(mute_expires_at=utcnow() + timedelta(hours=3))
    with pytest.raises(PolicyRejection) as exc_info:
        _submit(_service(db_session), author)
    assert exc_info.value.code == "USER_MUTED"


def test_banned_author_is_rejected_before_mute_check(
    db_session: Session, make_user: Callable[..., User]
) -> None:
    now = utcnow()
    author = make_user(
        ban_expires_at=now + timedelta(days=7), mute_expires_at=now + timedelta(hours=3)
    )
    with pytest.raises(PolicyRejection) as exc_info:
        _submit(_service(db_session), author)

    assert exc_info.value.code == "ACCOUNT_BANNED"
    assert "ban_expires_at" in exc_info.value.details
    assert db_session.execute(select(Post)).first() is None


def test_lapsed_ban_no_longer_blocks(db_session: Session, make_user: Callable[..., User]) -> None:
    author = make_user(ban_expires_at=utcnow() - timedelta(minutes=1))
    assert _submit(_service(db_session), author).post.status is PostStatus.ACTIVE


def test_expired_mute_no_longer_blocks(db_session: Session, make_user: Callable[..., User]) -> None:
    author = make_user(mute_expires_at=utcnow() - timedelta(minutes=1))
    assert _submit(_service(db_session), author).post.status is PostStatus.ACTIVE


def test_barangay_announcement_requires_authority(db_session: Session, make_user: Callable[..., User]) -> None:
    with pytest.raises(PolicyRejection) as exc_info:
        _submit(_service(db_session), make_user(trust_score=500), category="barangay_announcement")
    assert exc_info.value.code == "FORBIDDEN"

    official = make_user(role=UserRole.OFFICIAL, trust_score=100)
    result = _submit(
        _service(db_session), official, category="barangay_announcement", content="Clean-up drive Saturday"
    )
    assert result.post.status is PostStatus.ACTIVE
    assert (result.post.lat, result.post.lng) == ORIGIN
    assert result.post.fuzz_radius_used == 0


def test_rate_limit_allows_five_posts_per_window(db_session: Session, make_user: Callable[..., User]) -> None:
    author = make_user()
    service = _service(db_session, rate_limiter=WindowRateLimiter(MemoryStorage()), scorer=FixedScorer(0.0))

    for i in range(5):
        _submit(service, author, content=f"post number {i}")
    with pytest.raises(RateLimited) as exc_info:
        _submit(service, author, content="one too many")

    assert exc_info.value.retry_after > 0
    assert len(db_session.execute(select(Post)).all()) == 5


def test_delete_by_author(
    db_session: Session, make_post: Callable[..., Post], test_user: User, broadcaster: Any
) -> None:
    post = make_post()

    deleted = _service(db_session, broadcaster=broadcaster).delete_by_author(post.id, test_user)

    assert deleted.status is PostStatus.REMOVED_BY_AUTHOR
    assert deleted.terminal_at is not None
    assert db_session.get(ProximityCell, post.id) is None
    assert broadcaster.of_type(BroadcastEvent.POST_EXPIRED) == [{"post_id": post.id}]


def test_delete_by_someone_else_is_forbidden(
    db_session: Session, make_post: Callable[..., Post], other_user: User
) -> None:
    post = make_post()
    with pytest.raises(PolicyRejection) as exc_info:
        _service(db_session).delete_by_author(post.id, other_user)
    assert exc_info.value.code == "FORBIDDEN"


def test_delete_of_terminal_post_is_not_found(
    db_session: Session, make_post: Callable[..., Post], test_user: User
) -> None:
    post = make_post(status=PostStatus.EXPIRED, terminal_at=utcnow())
    with pytest.raises(NotFound):
        _service(db_session).delete_by_author(post.id, test_user)


def test_record_view_only_counts_active_posts(db_session: Session, make_post: Callable[..., Post]) -> None:
    active = make_post()
    expired = make_post(status=PostStatus.EXPIRED, terminal_at=utcnow())
    service = _service(db_session)

    service.record_view(active.id)
    service.record_view(active.id)
    service.record_view(expired.id)

    db_session.expire_all()
    assert db_session.get(Post, active.id).view_count == 2
    assert db_session.get(Post, expired.id).view_count == 0


def test_nearby_attaches_viewer_reactions_and_paging(
    db_session: Session, make_post: Callable[..., Post], other_user: User
) -> None:
    first = make_post(created_at=utcnow() - timedelta(minutes=10))
    second = make_post(content="second")
    db_session.add(PostReaction(post_id=first.id, user_id=other_user.id, reaction=ReactionType.THANKS))
    db_session.commit()

    service = _service(db_session)

    page_one = service.nearby(*ORIGIN, radius_km=1, limit=1, viewer_id=other_user.id)
    assert page_one.page.total == 2
    assert page_one.has_more
    assert [item.post.id for item in page_one.page.items] == [second.id]
    assert page_one.viewer_reactions == {}

    page_two = service.nearby(*ORIGIN, radius_km=1, limit=1, offset=1, viewer_id=other_user.id)
    assert not page_two.has_more
    assert page_two.viewer_reactions == {first.id: ReactionType.THANKS}


@pytest.mark.parametrize("radius_km", [0, -1, 2.5])
def test_nearby_rejects_bad_radius(db_session: Session, radius_km: float) -> None:
    with pytest.raises(InvalidInput) as exc_info:
        _service(db_session).nearby(*ORIGIN, radius_km=radius_km)
    assert exc_info.value.code == "INVALID_RADIUS"


def test_nearby_rejects_bad_coordinate(db_session: Session) -> None:
    with pytest.raises(InvalidInput) as exc_info:
        _service(db_session).nearby(100.0, 0.0)
    assert exc_info.value.code == "INVALID_LOCATION"


def test_get_unknown_post(db_session: Session) -> None:
    with pytest.raises(NotFound):
        _service(db_session).get("missing")


def test_general_category_ttl(db_session: Session, make_user: Callable[..., User]) -> None:
    result = _submit(_service(db_session), make_user(), category=PostCategory.GENERAL, content="Brownout again")
    assert result.post.expires_at - result.post.created_at == timedelta(hours=6)
