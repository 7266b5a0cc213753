# src/hyperlocal/services/posts.py
"""Service-level helpers for creating, reading and removing posts."""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from hyperlocal.core.categories import CategorySnapshot, get_category_snapshot
from hyperlocal.core.errors import InvalidInput, NotFound, PolicyRejection
from hyperlocal.core.settings import settings
from hyperlocal.db.session import commit_or_conflict
from hyperlocal.db.time import utcnow
from hyperlocal.models.moderation import ModerationQueueItem, QueueReason
from hyperlocal.models.post import Post, PostCategory, PostStatus, new_post_id
from hyperlocal.models.reaction import PostReaction, ReactionType
from hyperlocal.models.user import AUTHORITY_ROLES, User
from hyperlocal.services.ratelimit import NoopRateLimiter, RateLimiter, enforce
from hyperlocal.services.broadcast import (
    Broadcaster,
    BroadcastEvent,
    NullBroadcaster,
    post_summary,
)
from hyperlocal.services.duplicates import (
    DuplicateCandidate,
    DuplicateDetector,
    DuplicateScorer,
)
from hyperlocal.services.geofuzz import fuzz, is_valid_coordinate
from hyperlocal.services.lifecycle import LifecycleEvent, initial_status, transition
from hyperlocal.services.moderation import ModerationQueue, queue_priority_for
from hyperlocal.services.notifications import NotificationDispatcher
from hyperlocal.services.proximity import NearbyPage, ProximityIndex, SortOrder
from hyperlocal.services.trust import TrustGate

logger = logging.getLogger(__name__)


class DuplicateStatus:
    UNIQUE = "unique"
    POSSIBLE_DUPLICATE = "possible_duplicate"


@dataclass(frozen=True)
class SubmissionResult:
    post: Post
    duplicate_status: str
    duplicate: DuplicateCandidate | None = None
    queue_item: ModerationQueueItem | None = None


@dataclass
class NearbyFeed:
    page: NearbyPage
    limit: int
    offset: int
    # post id -> the viewer's own reaction
    viewer_reactions: dict[str, ReactionType] = field(default_factory=dict)

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.page.total


def load_post_for_update(db: Session, post_id: str) -> Post:
    """Load ``post_id`` under a row lock or raise ``NotFound``."""
    post = db.execute(select(Post).where(Post.id == post_id).with_for_update()).scalar_one_or_none()
    if post is None:
        raise NotFound("Post not found", code="POST_NOT_FOUND")
    return post


def require_active(post: Post) -> None:
    if post.status is not PostStatus.ACTIVE:
        raise NotFound(
            "Post not found or no longer active",
            code="POST_NOT_FOUND",
            details={"post_id": post.id, "status": post.status.value},
        )


def _validate_content(content: str) -> str:
    text = content.strip() if isinstance(content, str) else ""
    if not text:
        raise InvalidInput("Post content must not be empty", code="INVALID_CONTENT")
    if len(text) > settings.max_post_content_length:
        raise InvalidInput(
            f"Post content exceeds {settings.max_post_content_length} characters",
            code="INVALID_CONTENT",
        )
    return text


class PostService:
    """Submission pipeline and read paths for posts.

    Collaborators that touch optional infrastructure (rate limiter,
    broadcaster) are injected so callers and tests can swap in no-op versions.
    """

    def __init__(
        self,
        db: Session,
        *,
        snapshot: CategorySnapshot | None = None,
        rate_limiter: RateLimiter | None = None,
        broadcaster: Broadcaster | None = None,
        dispatcher: NotificationDispatcher | None = None,
        trust_gate: TrustGate | None = None,
        scorer: DuplicateScorer | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.db = db
        self.snapshot = snapshot or get_category_snapshot(db)
        self.rate_limiter = rate_limiter or NoopRateLimiter()
        self.broadcaster = broadcaster or NullBroadcaster()
        self.dispatcher = dispatcher or NotificationDispatcher(db)
        self.trust_gate = trust_gate or TrustGate()
        self.rng = rng
        self.index = ProximityIndex(db)
        self.detector = DuplicateDetector(self.index, scorer)
        self.queue = ModerationQueue(
            db, broadcaster=self.broadcaster, dispatcher=self.dispatcher, index=self.index
        )

    def submit(
        self,
        author: User,
        *,
        content: str,
        lat: float,
        lng: float,
        category: PostCategory | str,
        photo_url: str | None = None,
        now: datetime | None = None,
    ) -> SubmissionResult:
        """Validate, fuzz, de-duplicate and persist a new post.

        The submitted coordinate is fuzzed immediately after validation and
        never reaches any other component.

        Raises:
            InvalidInput: Malformed content, coordinate or category.
            RateLimited: The author exceeded the submission window.
            PolicyRejection: Muted author, restricted category, or a
                duplicate scoring at or above the reject threshold.
        """
        now = now or utcnow()
        text = _validate_content(content)
        if not is_valid_coordinate(lat, lng):
            raise InvalidInput("Latitude/longitude out of range", code="INVALID_LOCATION")
        config = self.snapshot.get(category)

        enforce(
            self.rate_limiter,
            f"post:{author.id}",
            settings.post_rate_limit_count,
            settings.post_rate_limit_window_seconds,
        )

        if author.is_banned(now):
            raise PolicyRejection(
                "Your account is suspended",
                code="ACCOUNT_BANNED",
                details={"ban_expires_at": author.ban_expires_at.isoformat()},
            )
        if author.is_muted(now):
            raise PolicyRejection(
                "You are temporarily muted",
                code="USER_MUTED",
                details={"mute_expires_at": author.mute_expires_at.isoformat()},
            )
        if config.category is PostCategory.BARANGAY_ANNOUNCEMENT and author.role not in AUTHORITY_ROLES:
            raise PolicyRejection(
                "Only barangay officials can create announcements", code="FORBIDDEN"
            )

        location = fuzz(lat, lng, config.fuzz_min_meters, config.fuzz_max_meters, rng=self.rng)
        del lat, lng

        decision = self.trust_gate.moderation_decision(author.trust_score)

        best = self.detector.best_match(
            text, location.lat, location.lng, config.category, now=now
        )
        duplicate_score = best.composite_score if best is not None else 0.0
        if best is not None and duplicate_score >= settings.duplicate_reject_threshold:
            raise PolicyRejection(
                "A very similar post already exists nearby; confirm it instead",
                code="DUPLICATE_POST",
                details={"existing_post_id": best.existing_post_id, "score": round(duplicate_score, 4)},
            )
        linked = best if best is not None and duplicate_score >= settings.duplicate_link_threshold else None

        status, moderation_status = initial_status(decision.auto_approve)
        post = Post(
            id=new_post_id(),
            author_id=author.id,
            category=config.category,
            content=text,
            photo_url=photo_url,
            lat=location.lat,
            lng=location.lng,
            fuzz_radius_used=round(location.radius_used_m),
            status=status,
            moderation_status=moderation_status,
            duplicate_score=duplicate_score,
            linked_post_id=linked.existing_post_id if linked is not None else None,
            expires_at=now + timedelta(hours=config.default_ttl_hours),
            extensions_used=0,
            reaction_confirm=0,
            reaction_still_active=0,
            reaction_no_longer_valid=0,
            reaction_thanks=0,
            view_count=0,
            created_at=now,
            updated_at=now,
        )
        self.db.add(post)
        self.db.flush()
        self.index.insert(post)

        queue_item = None
        if status is PostStatus.PENDING_MODERATION:
            queue_item = self.queue.enqueue(
                post.id,
                QueueReason.LOW_TRUST_AUTO_QUEUE,
                queue_priority_for(config.category),
                now=now,
            )
        else:
            self.dispatcher.enqueue_nearby(post, now=now)

        commit_or_conflict(self.db, context="creating post")

        if status is PostStatus.ACTIVE:
            self.broadcaster.publish(BroadcastEvent.POST_NEW, post_summary(post))
        logger.info(
            "Created %s post %s in %s (fuzz %dm, duplicate score %.2f)",
            status.value,
            post.id,
            config.category.value,
            post.fuzz_radius_used,
            duplicate_score,
        )
        return SubmissionResult(
            post=post,
            duplicate_status=(
                DuplicateStatus.POSSIBLE_DUPLICATE if linked is not None else DuplicateStatus.UNIQUE
            ),
            duplicate=linked,
            queue_item=queue_item,
        )

    def get(self, post_id: str) -> Post:
        post = self.db.get(Post, post_id)
        if post is None:
            raise NotFound("Post not found", code="POST_NOT_FOUND")
        return post

    def record_view(self, post_id: str) -> None:
        """Bump ``view_count`` for an active post. Views never decrease."""
        self.db.execute(
            update(Post)
            .where(Post.id == post_id, Post.status == PostStatus.ACTIVE)
            .values(view_count=Post.view_count + 1)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

    def delete_by_author(self, post_id: str, user: User, *, now: datetime | None = None) -> Post:
        """Take down an active post at its author's request."""
        now = now or utcnow()
        post = load_post_for_update(self.db, post_id)
        if post.author_id != user.id:
            raise PolicyRejection("Only the author can delete this post", code="FORBIDDEN")
        require_active(post)

        transition(post, LifecycleEvent.AUTHOR_DELETE, now=now)
        self.index.remove_from_active(post.id)
        commit_or_conflict(self.db, context="deleting post")

        self.broadcaster.publish(BroadcastEvent.POST_EXPIRED, {"post_id": post.id})
        logger.info("Author %s deleted post %s", user.id, post.id)
        return post

    def nearby(
        self,
        lat: float,
        lng: float,
        *,
        radius_km: float | None = None,
        categories: Sequence[PostCategory] | None = None,
        since: datetime | None = None,
        sort: SortOrder = SortOrder.NEAREST,
        limit: int = 50,
        offset: int = 0,
        viewer_id: str | None = None,
        now: datetime | None = None,
    ) -> NearbyFeed:
        """Active posts around a point, with the viewer's own reactions attached."""
        if not is_valid_coordinate(lat, lng):
            raise InvalidInput("Latitude/longitude out of range", code="INVALID_LOCATION")
        radius_km = settings.default_radius_km if radius_km is None else radius_km
        if radius_km <= 0 or radius_km > settings.max_radius_km:
            raise InvalidInput(
                f"radius_km must be in (0, {settings.max_radius_km}]", code="INVALID_RADIUS"
            )
        now = now or utcnow()
        since = since or now - timedelta(hours=settings.nearby_since_hours)

        page = self.index.query(
            lat,
            lng,
            radius_km * 1000.0,
            since=since,
            categories=categories,
            sort=sort,
            limit=limit,
            offset=offset,
        )

        viewer_reactions: dict[str, ReactionType] = {}
        if viewer_id is not None and page.items:
            rows = self.db.execute(
                select(PostReaction.post_id, PostReaction.reaction).where(
                    PostReaction.user_id == viewer_id,
                    PostReaction.post_id.in_([item.post.id for item in page.items]),
                )
            ).all()
            viewer_reactions = {post_id: reaction for post_id, reaction in rows}
        return NearbyFeed(page=page, limit=limit, offset=offset, viewer_reactions=viewer_reactions)
