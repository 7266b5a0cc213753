"""Community reports against posts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from hyperlocal.core.errors import PolicyRejection
from hyperlocal.core.settings import settings
from hyperlocal.db.session import commit_or_conflict
from hyperlocal.db.time import utcnow
from hyperlocal.models.moderation import QueueReason
from hyperlocal.models.post import PostStatus
from hyperlocal.models.reaction import PostReport, ReportReason
from hyperlocal.models.user import User
from hyperlocal.services.broadcast import Broadcaster, BroadcastEvent, NullBroadcaster
from hyperlocal.services.lifecycle import LifecycleEvent, transition
from hyperlocal.services.moderation import ModerationQueue
from hyperlocal.services.posts import load_post_for_update
from hyperlocal.services.proximity import ProximityIndex

logger = logging.getLogger(__name__)

COMMUNITY_FLAG_PRIORITY = 2


@dataclass(frozen=True)
class ReportOutcome:
    post_id: str
    report_count: int
    auto_removed: bool


def report_post(
    db: Session,
    post_id: str,
    reporter: User,
    reason: ReportReason,
    details: str | None = None,
    *,
    broadcaster: Broadcaster | None = None,
    now: datetime | None = None,
) -> ReportOutcome:
    """File one report and apply the community-flag threshold.

    The report that brings the count to the threshold takes an active post
    down as ``auto_removed`` and queues it for a moderator to confirm.

    Raises:
        NotFound: If the post does not exist.
        PolicyRejection: ``ALREADY_REPORTED`` on a second report by the same user.
    """
    now = now or utcnow()
    post = load_post_for_update(db, post_id)

    already = db.execute(
        select(PostReport.id).where(
            PostReport.post_id == post.id, PostReport.reporter_id == reporter.id
        )
    ).first()
    if already is not None:
        raise PolicyRejection("You have already reported this post", code="ALREADY_REPORTED")

    db.add(
        PostReport(
            post_id=post.id,
            reporter_id=reporter.id,
            reason=reason,
            details=details,
            created_at=now,
        )
    )
    db.flush()

    report_count = db.execute(
        select(func.count()).select_from(PostReport).where(PostReport.post_id == post.id)
    ).scalar_one()

    auto_removed = False
    if report_count >= settings.auto_remove_report_threshold:
        if post.status is PostStatus.ACTIVE:
            transition(post, LifecycleEvent.REPORT_THRESHOLD, now=now)
            ProximityIndex(db).remove_from_active(post.id)
            auto_removed = True
        if auto_removed or post.status is PostStatus.PENDING_MODERATION:
            ModerationQueue(db).enqueue(
                post.id, QueueReason.COMMUNITY_FLAGGED_3PLUS, COMMUNITY_FLAG_PRIORITY, now=now
            )

    commit_or_conflict(db, context="reporting post")

    if auto_removed:
        (broadcaster or NullBroadcaster()).publish(
            BroadcastEvent.POST_EXPIRED, {"post_id": post_id}
        )
        logger.info("Post %s auto-removed after %d reports", post_id, report_count)
    return ReportOutcome(post_id=post_id, report_count=report_count, auto_removed=auto_removed)
