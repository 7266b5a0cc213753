"""Moderation-related endpoints for the Hyperlocal API."""

from __future__ import annotations

from fastapi import APIRouter, Query

from hyperlocal.api.v1.dependencies import AdminDep, BroadcasterDep, ModeratorDep, SessionDep
from hyperlocal.models.moderation import QueueItemStatus
from hyperlocal.models.post import PostCategory
from hyperlocal.schemas.common import Location
from hyperlocal.schemas.moderation import (
    BanRequest,
    BanResponse,
    ModeratedUser,
    ModerationActionRequest,
    ModerationActionResponse,
    ModerationLogEntry,
    QueueCounts,
    QueuedAuthor,
    QueuedPost,
    QueueItemResponse,
    QueueResponse,
    UserModerationHistory,
)
from hyperlocal.services.moderation import ModerationQueue, QueueEntry
from hyperlocal.services.notifications import NotificationDispatcher
from hyperlocal.services.trust import TrustGate

router = APIRouter(prefix="/moderation", tags=["moderation"])


def _queue_item_response(entry: QueueEntry) -> QueueItemResponse:
    item, post, author = entry.item, entry.post, entry.author
    return QueueItemResponse(
        id=item.id,
        reason=item.reason.value,
        priority=item.priority,
        status=item.status.value,
        queued_at=item.created_at,
        post=(
            QueuedPost(
                id=post.id,
                content=post.content,
                category=post.category.value,
                photo_url=post.photo_url,
                location=Location(lat=post.lat, lng=post.lng),
                status=post.status.value,
                duplicate_score=post.duplicate_score,
                created_at=post.created_at,
                report_count=entry.report_count,
            )
            if post is not None
            else None
        ),
        author=(
            QueuedAuthor(
                id=author.id,
                display_name=author.display_name or "Anonymous",
                trust_score=author.trust_score,
                trust_tier=TrustGate.tier_for_score(author.trust_score).value,
                role=author.role.value,
            )
            if author is not None
            else None
        ),
    )


@router.get("/queue", response_model=QueueResponse)
def get_moderation_queue(
    db: SessionDep,
    moderator: ModeratorDep,
    status: QueueItemStatus = Query(QueueItemStatus.PENDING),
    category: PostCategory | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
) -> QueueResponse:
    """Queue items ordered by priority, then age."""
    page = ModerationQueue(db).list_open(status=status, category=category, limit=limit)
    items = [_queue_item_response(entry) for entry in page.items]
    return QueueResponse(items=items, total=page.total, counts=QueueCounts(**page.counts))


@router.post("/{item_id}/claim", response_model=QueueItemResponse)
def claim_queue_item(item_id: int, db: SessionDep, moderator: ModeratorDep) -> QueueItemResponse:
    """Mark a pending item as in review by the calling moderator."""
    item = ModerationQueue(db).claim(item_id, moderator.id)
    return _queue_item_response(QueueEntry(item=item, post=None, author=None))


@router.post("/{item_id}/action", response_model=ModerationActionResponse)
def take_moderation_action(
    item_id: int,
    payload: ModerationActionRequest,
    db: SessionDep,
    moderator: ModeratorDep,
    broadcaster: BroadcasterDep,
) -> ModerationActionResponse:
    queue = ModerationQueue(db, broadcaster=broadcaster, dispatcher=NotificationDispatcher(db))
    result = queue.resolve(item_id, payload.action, payload.note, moderator.id)
    return ModerationActionResponse(
        item_id=result.item_id,
        action=result.action,
        resolved=result.resolved,
        post_status=result.post_status.value if result.post_status is not None else None,
    )


@router.get("/users/{user_id}", response_model=UserModerationHistory)
def get_user_moderation_history(
    user_id: str,
    db: SessionDep,
    moderator: ModeratorDep,
) -> UserModerationHistory:
    user, logs = ModerationQueue(db).user_history(user_id)
    return UserModerationHistory(
        user=ModeratedUser(
            id=user.id,
            display_name=user.display_name,
            role=user.role.value,
            trust_score=user.trust_score,
            trust_tier=TrustGate.tier_for_score(user.trust_score).value,
            mute_expires_at=user.mute_expires_at,
            ban_expires_at=user.ban_expires_at,
            created_at=user.created_at,
        ),
        moderation_history=[ModerationLogEntry.model_validate(log) for log in logs],
    )


@router.post("/users/{user_id}/ban", response_model=BanResponse)
def ban_user(
    user_id: str,
    payload: BanRequest,
    db: SessionDep,
    admin: AdminDep,
    broadcaster: BroadcasterDep,
) -> BanResponse:
    """Suspend a user and remove their active posts. Admin only."""
    result = ModerationQueue(db, broadcaster=broadcaster).ban_user(
        user_id, payload.duration, payload.reason, admin.id
    )
    return BanResponse(
        duration=result.duration,
        ban_expires_at=result.ban_expires_at,
        posts_removed=result.posts_removed,
    )
