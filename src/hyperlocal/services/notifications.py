"""Notification outbox and in-app user notifications.

Nearby-user push delivery is handled by an external worker; this module only
writes ``notification_job`` rows for it and defines the retry schedule the
worker follows.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from hyperlocal.core.settings import settings
from hyperlocal.db.time import utcnow
from hyperlocal.models.notification import NotificationJob, UserNotification
from hyperlocal.models.post import Post

logger = logging.getLogger(__name__)

NOTIFY_NEARBY = "notify_nearby"


def next_retry_delay(attempt: int, *, base_seconds: float | None = None) -> float:
    """Exponential backoff for the ``attempt``-th retry (1-based): 1s, 2s, 4s, ..."""
    base = settings.notification_backoff_seconds if base_seconds is None else base_seconds
    return base * (2 ** max(0, attempt - 1))


class NotificationDispatcher:
    """Writes outbox rows inside the caller's transaction."""

    def __init__(
        self,
        db: Session,
        *,
        delay_seconds: int | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self.db = db
        self.delay = timedelta(
            seconds=settings.notification_delay_seconds if delay_seconds is None else delay_seconds
        )
        self.max_attempts = (
            settings.notification_max_attempts if max_attempts is None else max_attempts
        )

    def enqueue_nearby(self, post: Post, *, now: datetime | None = None) -> NotificationJob:
        """Schedule a "notify nearby users" job for an active post.

        The short delay lets a moderation decision land before anyone is pinged.
        """
        now = now or utcnow()
        job = NotificationJob(
            job_type=NOTIFY_NEARBY,
            post_id=post.id,
            category=post.category.value,
            lat=post.lat,
            lng=post.lng,
            status="pending",
            attempts=0,
            max_attempts=self.max_attempts,
            run_after=now + self.delay,
            created_at=now,
        )
        self.db.add(job)
        logger.debug("Queued nearby notification for post %s", post.id)
        return job

    def record_failure(self, job: NotificationJob, *, now: datetime | None = None) -> None:
        """Bump the attempt counter and reschedule, or mark the job failed."""
        now = now or utcnow()
        job.attempts += 1
        if job.attempts >= job.max_attempts:
            job.status = "failed"
            logger.warning("Notification job %s failed after %d attempts", job.id, job.attempts)
            return
        job.run_after = now + timedelta(seconds=next_retry_delay(job.attempts))

    def notify_user(
        self,
        user_id: str,
        *,
        type: str,
        title: str,
        body: str,
        data: dict | None = None,
    ) -> UserNotification:
        notification = UserNotification(
            user_id=user_id, type=type, title=title, body=body, data=data
        )
        self.db.add(notification)
        return notification
