# src/hyperlocal/services/moderation.py
"""Moderation queue services for Hyperlocal."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from hyperlocal.core.errors import Conflict, IllegalTransition, NotFound, PolicyRejection
from hyperlocal.db.session import commit_or_conflict
from hyperlocal.db.time import utcnow
from hyperlocal.models.moderation import (
    OPEN_QUEUE_STATUSES,
    BanDuration,
    ModerationAction,
    ModerationLog,
    ModerationQueueItem,
    QueueItemStatus,
    QueueReason,
)
from hyperlocal.models.post import ModerationStatus, Post, PostCategory, PostStatus
from hyperlocal.models.reaction import PostReport
from hyperlocal.models.user import User
from hyperlocal.services.broadcast import (
    Broadcaster,
    BroadcastEvent,
    NullBroadcaster,
    post_summary,
)
from hyperlocal.services.lifecycle import LifecycleEvent, transition
from hyperlocal.services.notifications import NotificationDispatcher
from hyperlocal.services.proximity import ProximityIndex

logger = logging.getLogger(__name__)

MUTE_DURATION = timedelta(hours=24)
ESCALATED_PRIORITY = 1
HISTORY_LIMIT = 50


class QueueEvent(str, Enum):
    CLAIM = "claim"
    ESCALATE = "escalate"
    RESOLVE = "resolve"


# Queue item lifecycle. ESCALATE is the one re-entrant edge: the item goes
# back to pending at top priority and stays open.
QUEUE_TRANSITIONS: dict[tuple[QueueItemStatus, QueueEvent], QueueItemStatus] = {
    (QueueItemStatus.PENDING, QueueEvent.CLAIM): QueueItemStatus.IN_REVIEW,
    (QueueItemStatus.PENDING, QueueEvent.ESCALATE): QueueItemStatus.PENDING,
    (QueueItemStatus.IN_REVIEW, QueueEvent.ESCALATE): QueueItemStatus.PENDING,
    (QueueItemStatus.PENDING, QueueEvent.RESOLVE): QueueItemStatus.RESOLVED,
    (QueueItemStatus.IN_REVIEW, QueueEvent.RESOLVE): QueueItemStatus.RESOLVED,
}

# Actions that take the post down.
_REMOVING_ACTIONS = frozenset(
    {ModerationAction.REJECT, ModerationAction.REMOVE, ModerationAction.MUTE_USER_24H}
)


def queue_priority_for(category: PostCategory) -> int:
    """Routing priority for a low-trust submission; lower is reviewed first."""
    return 1 if category is PostCategory.SAFETY_ALERT else 5


def _advance(item: ModerationQueueItem, event: QueueEvent, now: datetime) -> None:
    target = QUEUE_TRANSITIONS.get((item.status, event))
    if target is None:
        raise IllegalTransition(
            f"Queue item {item.id}: no transition from {item.status.value} on {event.value}",
        )
    item.status = target
    item.updated_at = now


@dataclass(frozen=True)
class ResolutionResult:
    item_id: int
    action: ModerationAction
    resolved: bool
    post_status: PostStatus | None


@dataclass(frozen=True)
class BanResult:
    user_id: str
    duration: BanDuration
    ban_expires_at: datetime
    posts_removed: int


@dataclass
class QueueEntry:
    item: ModerationQueueItem
    post: Post | None
    author: User | None
    report_count: int = 0


@dataclass
class QueuePage:
    items: list[QueueEntry]
    total: int = 0
    counts: dict[str, int] = field(default_factory=dict)


class ModerationQueue:
    """Service owning queue items and the moderation log."""

    def __init__(
        self,
        db: Session,
        *,
        broadcaster: Broadcaster | None = None,
        dispatcher: NotificationDispatcher | None = None,
        index: ProximityIndex | None = None,
    ) -> None:
        self.db = db
        self.broadcaster = broadcaster or NullBroadcaster()
        self.dispatcher = dispatcher or NotificationDispatcher(db)
        self.index = index or ProximityIndex(db)

    def open_item_for(self, post_id: str) -> ModerationQueueItem | None:
        return self.db.execute(
            select(ModerationQueueItem).where(
                ModerationQueueItem.post_id == post_id,
                ModerationQueueItem.status.in_(list(OPEN_QUEUE_STATUSES)),
            )
        ).scalar_one_or_none()

    def enqueue(
        self,
        post_id: str,
        reason: QueueReason,
        priority: int,
        *,
        now: datetime | None = None,
    ) -> ModerationQueueItem:
        """Open a queue item for ``post_id`` inside the caller's transaction.

        If the post already has an open item, that item is returned with its
        priority raised to ``priority`` when the new request is more urgent.
        """
        now = now or utcnow()
        existing = self.open_item_for(post_id)
        if existing is not None:
            if priority < existing.priority:
                existing.priority = priority
                existing.updated_at = now
            return existing

        item = ModerationQueueItem(
            post_id=post_id,
            reason=reason,
            priority=priority,
            status=QueueItemStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        # A concurrent enqueue for the same post trips the partial unique index
        # at commit, which surfaces as a retryable Conflict.
        self.db.add(item)
        self.db.flush()
        logger.info("Queued post %s for moderation (%s, priority %d)", post_id, reason.value, priority)
        return item

    def _load_item(self, item_id: int) -> ModerationQueueItem:
        item = self.db.execute(
            select(ModerationQueueItem)
            .where(ModerationQueueItem.id == item_id)
            .with_for_update()
        ).scalar_one_or_none()
        if item is None or not item.is_open:
            raise NotFound("Moderation item not found or already resolved")
        return item

    def claim(self, item_id: int, moderator_id: str) -> ModerationQueueItem:
        """Move a pending item to ``in_review`` for ``moderator_id``.

        Raises:
            NotFound: If the item does not exist or is already resolved.
            Conflict: If another moderator already claimed it.
        """
        now = utcnow()
        item = self._load_item(item_id)
        if item.status is QueueItemStatus.IN_REVIEW:
            raise Conflict(
                "Moderation item is already in review",
                details={"assigned_to": item.assigned_to},
            )
        _advance(item, QueueEvent.CLAIM, now)
        item.assigned_to = moderator_id
        commit_or_conflict(self.db, context=f"claiming queue item {item_id}")
        return item

    def resolve(
        self,
        item_id: int,
        action: ModerationAction,
        note: str | None,
        moderator_id: str,
        *,
        now: datetime | None = None,
    ) -> ResolutionResult:
        """Apply a moderator decision and record it in the log.

        Every action except ``escalate`` closes the item. A post that already
        reached a terminal status is never re-activated; approving one is
        rejected with ``POST_TERMINAL``.

        Raises:
            NotFound: If the item does not exist or is already resolved.
            PolicyRejection: If ``approve`` targets a terminal post.
            Conflict: If another moderator resolved the item concurrently.
        """
        now = now or utcnow()
        item = self._load_item(item_id)
        post = self.db.execute(
            select(Post).where(Post.id == item.post_id).with_for_update()
        ).scalar_one_or_none()
        was_active = post is not None and post.status is PostStatus.ACTIVE
        events: list[tuple[BroadcastEvent, dict]] = []

        if action is ModerationAction.APPROVE:
            if post is not None and post.is_terminal:
                raise PolicyRejection(
                    "Post already reached a terminal status and cannot be approved",
                    code="POST_TERMINAL",
                    details={"post_id": post.id, "status": post.status.value},
                )
            if post is not None and post.status is PostStatus.PENDING_MODERATION:
                transition(post, LifecycleEvent.MOD_APPROVE, now=now)
                self.dispatcher.enqueue_nearby(post, now=now)
                events.append((BroadcastEvent.POST_NEW, post_summary(post)))
            elif post is not None:
                post.moderation_status = ModerationStatus.APPROVED
        elif action in _REMOVING_ACTIONS and post is not None:
            if post.is_terminal:
                post.moderation_status = ModerationStatus.REMOVED
            else:
                transition(post, LifecycleEvent.MOD_REMOVE, now=now)
                self.index.remove_from_active(post.id)
                if was_active:
                    events.append((BroadcastEvent.POST_EXPIRED, {"post_id": post.id}))

        if action is ModerationAction.MUTE_USER_24H and post is not None:
            author = self.db.get(User, post.author_id)
            if author is not None:
                author.mute_expires_at = now + MUTE_DURATION
        elif action is ModerationAction.WARN_USER and post is not None:
            self.dispatcher.notify_user(
                post.author_id,
                type="moderation_action",
                title="Content Warning",
                body=(
                    f"Your post was flagged for review. Reason: {note or 'Policy violation'}. "
                    "Repeated violations may result in account restrictions."
                ),
                data={"post_id": post.id, "action": "warning"},
            )

        if action is ModerationAction.ESCALATE:
            _advance(item, QueueEvent.ESCALATE, now)
            item.priority = ESCALATED_PRIORITY
        else:
            _advance(item, QueueEvent.RESOLVE, now)
            item.resolved_action = action
            item.resolved_note = note
            item.resolved_at = now
            item.assigned_to = moderator_id

        self.db.add(
            ModerationLog(
                moderator_id=moderator_id,
                target_user_id=post.author_id if post is not None else None,
                target_post_id=item.post_id,
                action=action.value,
                reason=note,
                metadata_={"queue_item_id": item.id},
                created_at=now,
            )
        )
        commit_or_conflict(self.db, context=f"resolving queue item {item_id}")

        for event, data in events:
            self.broadcaster.publish(event, data)
        logger.info("Moderator %s applied %s to queue item %s", moderator_id, action.value, item_id)
        return ResolutionResult(
            item_id=item.id,
            action=action,
            resolved=action is not ModerationAction.ESCALATE,
            post_status=post.status if post is not None else None,
        )

    def list_open(
        self,
        *,
        status: QueueItemStatus = QueueItemStatus.PENDING,
        category: PostCategory | None = None,
        limit: int = 20,
    ) -> QueuePage:
        """Items in ``status`` ordered by priority then age, plus per-status counts.

        ``total`` counts every item matching the filters, not just the page.
        """
        filters = [ModerationQueueItem.status == status]
        if category is not None:
            filters.append(Post.category == category)
        total = self.db.execute(
            select(func.count())
            .select_from(ModerationQueueItem)
            .outerjoin(Post, Post.id == ModerationQueueItem.post_id)
            .where(*filters)
        ).scalar_one()
        stmt = (
            select(ModerationQueueItem, Post)
            .outerjoin(Post, Post.id == ModerationQueueItem.post_id)
            .where(*filters)
            .order_by(
                ModerationQueueItem.priority.asc(),
                ModerationQueueItem.created_at.asc(),
                ModerationQueueItem.id.asc(),
            )
            .limit(limit)
        )
        rows = self.db.execute(stmt).all()

        post_ids = [post.id for _, post in rows if post is not None]
        report_counts: dict[str, int] = {}
        if post_ids:
            report_counts = dict(
                self.db.execute(
                    select(PostReport.post_id, func.count())
                    .where(PostReport.post_id.in_(post_ids))
                    .group_by(PostReport.post_id)
                ).all()
            )

        entries = [
            QueueEntry(
                item=item,
                post=post,
                author=self.db.get(User, post.author_id) if post is not None else None,
                report_count=report_counts.get(post.id, 0) if post is not None else 0,
            )
            for item, post in rows
        ]

        counts = {queue_status.value: 0 for queue_status in QueueItemStatus}
        for queue_status, count in self.db.execute(
            select(ModerationQueueItem.status, func.count()).group_by(ModerationQueueItem.status)
        ).all():
            counts[QueueItemStatus(queue_status).value] = count
        return QueuePage(items=entries, total=total, counts=counts)

    def user_history(self, user_id: str, *, limit: int = HISTORY_LIMIT) -> tuple[User, list[ModerationLog]]:
        """Return the user and their most recent moderation log entries."""
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found", code="USER_NOT_FOUND")
        logs = (
            self.db.execute(
                select(ModerationLog)
                .where(ModerationLog.target_user_id == user_id)
                .order_by(ModerationLog.created_at.desc(), ModerationLog.id.desc())
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return user, list(logs)

    def ban_user(
        self,
        user_id: str,
        duration: BanDuration,
        reason: str,
        moderator_id: str,
        *,
        now: datetime | None = None,
    ) -> BanResult:
        """Suspend ``user_id`` and take down their active posts.

        A permanent ban also deactivates the account, which locks it out of
        every authenticated endpoint.

        Raises:
            NotFound: If the user does not exist.
            Conflict: If one of the posts changed concurrently.
        """
        now = now or utcnow()
        user = self.db.execute(
            select(User).where(User.id == user_id).with_for_update()
        ).scalar_one_or_none()
        if user is None:
            raise NotFound("User not found", code="USER_NOT_FOUND")

        user.ban_expires_at = now + duration.delta
        if duration is BanDuration.PERMANENT:
            user.is_active = False

        posts = (
            self.db.execute(
                select(Post)
                .where(Post.author_id == user_id, Post.status == PostStatus.ACTIVE)
                .with_for_update()
            )
            .scalars()
            .all()
        )
        for post in posts:
            transition(post, LifecycleEvent.MOD_REMOVE, now=now)
            self.index.remove_from_active(post.id)

        self.db.add(
            ModerationLog(
                moderator_id=moderator_id,
                target_user_id=user_id,
                target_post_id=None,
                action="ban_user",
                reason=reason,
                metadata_={"duration": duration.value, "posts_removed": len(posts)},
                created_at=now,
            )
        )
        commit_or_conflict(self.db, context=f"banning user {user_id}")

        for post in posts:
            self.broadcaster.publish(BroadcastEvent.POST_EXPIRED, {"post_id": post.id})
        logger.warning(
            "Moderator %s banned user %s for %s (%d posts removed)",
            moderator_id,
            user_id,
            duration.value,
            len(posts),
        )
        return BanResult(
            user_id=user_id,
            duration=duration,
            ban_expires_at=user.ban_expires_at,
            posts_removed=len(posts),
        )
