"""Author-driven TTL extension."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from hyperlocal.core.categories import CategorySnapshot, get_category_snapshot
from hyperlocal.core.errors import NotFound, PolicyRejection
from hyperlocal.core.settings import settings
from hyperlocal.db.session import commit_or_conflict
from hyperlocal.db.time import utcnow
from hyperlocal.models.post import Post
from hyperlocal.models.user import User
from hyperlocal.services.broadcast import Broadcaster, BroadcastEvent, NullBroadcaster
from hyperlocal.services.posts import load_post_for_update, require_active

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtensionResult:
    post_id: str
    previous_expires_at: datetime
    new_expires_at: datetime
    extensions_remaining: int


def has_engagement(post: Post) -> bool:
    """At least one positive reaction, or enough views."""
    positive = post.reaction_confirm + post.reaction_still_active + post.reaction_thanks
    return positive >= 1 or post.view_count >= settings.extension_min_views


def extend_post(
    db: Session,
    post_id: str,
    user: User,
    *,
    snapshot: CategorySnapshot | None = None,
    broadcaster: Broadcaster | None = None,
    now: datetime | None = None,
) -> ExtensionResult:
    """Push ``expires_at`` out by the category's extension length.

    Guards are evaluated on the locked row in this order: author, active,
    extension budget, time remaining, engagement.

    Raises:
        NotFound: Post missing, not active, or the caller is not its author.
        PolicyRejection: ``NO_EXTENSIONS``, ``TOO_EARLY`` or ``LOW_ENGAGEMENT``.
        Conflict: A concurrent extension won the race.
    """
    now = now or utcnow()
    snapshot = snapshot or get_category_snapshot(db)
    post = load_post_for_update(db, post_id)
    if post.author_id != user.id:
        raise NotFound("Post not found or you are not the author", code="POST_NOT_FOUND")
    require_active(post)

    config = snapshot.get(post.category)
    if not config.extensions_enabled:
        raise PolicyRejection("This category does not support extensions", code="NO_EXTENSIONS")
    if post.extensions_used >= config.max_extensions:
        raise PolicyRejection("No extensions remaining for this post", code="NO_EXTENSIONS")

    window = timedelta(minutes=settings.extension_window_minutes)
    if post.expires_at - now > window:
        raise PolicyRejection(
            f"Extensions are only available in the last {settings.extension_window_minutes} "
            "minutes before expiry",
            code="TOO_EARLY",
            details={"expires_at": post.expires_at.isoformat()},
        )
    if not has_engagement(post):
        raise PolicyRejection("Posts with no engagement cannot be extended", code="LOW_ENGAGEMENT")

    previous = post.expires_at
    post.expires_at = previous + timedelta(hours=config.max_extension_hours)
    post.extensions_used += 1
    post.updated_at = now
    new_expires_at = post.expires_at
    extensions_used = post.extensions_used
    commit_or_conflict(db, context="extending post")

    (broadcaster or NullBroadcaster()).publish(
        BroadcastEvent.POST_UPDATED,
        {"post_id": post_id, "expires_at": new_expires_at.isoformat()},
    )
    logger.info("Author extended post %s to %s", post_id, new_expires_at)
    return ExtensionResult(
        post_id=post_id,
        previous_expires_at=previous,
        new_expires_at=new_expires_at,
        extensions_remaining=config.max_extensions - extensions_used,
    )
