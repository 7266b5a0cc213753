"""Background expiry and archival of posts.

Both passes are single set-based statements guarded by the status they move
out of, so running them twice (or on two workers at once) never transitions a
row twice and never emits a second notification for it.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hyperlocal.core.errors import InvariantViolation
from hyperlocal.core.settings import settings
from hyperlocal.db.session import SessionLocal
from hyperlocal.db.time import utcnow
from hyperlocal.models.archive import ARCHIVED_POST_COLUMNS, ArchivedPost
from hyperlocal.models.notification import NotificationJob, UserNotification
from hyperlocal.models.post import TERMINAL_STATUSES, Post, PostStatus
from hyperlocal.models.proximity import ProximityCell
from hyperlocal.models.reaction import PostReaction, PostReport
from hyperlocal.services.broadcast import Broadcaster, BroadcastEvent, NullBroadcaster
from hyperlocal.services.lifecycle import TRANSITIONS, LifecycleEvent

logger = logging.getLogger(__name__)

ARCHIVE_BATCH_SIZE = 500
# Outbox rows in these states are never picked up again.
FINISHED_JOB_STATUSES = ("sent", "failed")


@dataclass(frozen=True)
class SweepResult:
    post_ids: list[str]
    by_category: dict[str, int]

    @property
    def count(self) -> int:
        return len(self.post_ids)


def expire_due_posts(
    db: Session,
    *,
    now: datetime | None = None,
    broadcaster: Broadcaster | None = None,
) -> SweepResult:
    """Move every active post whose TTL has elapsed to ``expired``."""
    now = now or utcnow()
    target = TRANSITIONS[(PostStatus.ACTIVE, LifecycleEvent.TTL_ELAPSED)]
    rows = db.execute(
        update(Post)
        .where(Post.status == PostStatus.ACTIVE, Post.expires_at <= now)
        .values(status=target, terminal_at=now, updated_at=now, version=Post.version + 1)
        .returning(Post.id, Post.category)
        .execution_options(synchronize_session=False)
    ).all()
    post_ids = [row.id for row in rows]
    if post_ids:
        db.execute(delete(ProximityCell).where(ProximityCell.post_id.in_(post_ids)))
    db.commit()

    publisher = broadcaster or NullBroadcaster()
    for post_id in post_ids:
        publisher.publish(BroadcastEvent.POST_EXPIRED, {"post_id": post_id})

    by_category = dict(Counter(row.category.value for row in rows))
    if post_ids:
        logger.info("Expired %d posts %s", len(post_ids), by_category)
    return SweepResult(post_ids=post_ids, by_category=by_category)


def archive_terminal_posts(
    db: Session,
    *,
    now: datetime | None = None,
    grace: timedelta | None = None,
    batch_size: int = ARCHIVE_BATCH_SIZE,
) -> SweepResult:
    """Copy posts terminal for longer than ``grace`` to ``post_archive`` and hard-delete them.

    This is the only code path that deletes post rows.
    """
    now = now or utcnow()
    grace = grace if grace is not None else timedelta(hours=settings.archive_grace_hours)
    cutoff = now - grace
    terminal = list(TERMINAL_STATUSES)
    eligible = (
        Post.status.in_(terminal),
        func.coalesce(Post.terminal_at, Post.updated_at) <= cutoff,
    )
    returned_columns = [getattr(Post, name) for name in ARCHIVED_POST_COLUMNS] + [Post.status]

    archived_ids: list[str] = []
    by_category: Counter[str] = Counter()
    while True:
        batch = list(db.execute(select(Post.id).where(*eligible).limit(batch_size)).scalars())
        if not batch:
            break

        for child in (PostReaction, PostReport, ProximityCell):
            db.execute(delete(child).where(child.post_id.in_(batch)))
        rows = db.execute(
            delete(Post)
            .where(Post.id.in_(batch), *eligible)
            .returning(*returned_columns)
            .execution_options(synchronize_session=False)
        ).all()

        archive_rows = []
        for row in rows:
            values = dict(row._mapping)
            final_status = values.pop("status")
            values["category"] = values["category"].value
            values["moderation_status"] = values["moderation_status"].value
            values["final_status"] = final_status.value
            values["status"] = TRANSITIONS[(final_status, LifecycleEvent.ARCHIVE)].value
            values["archived_at"] = now
            archive_rows.append(values)
            by_category[values["category"]] += 1
        if archive_rows:
            db.execute(insert(ArchivedPost), archive_rows)
        db.commit()
        archived_ids.extend(values["id"] for values in archive_rows)
        if len(batch) < batch_size:
            break

    if archived_ids:
        logger.info("Archived %d posts %s", len(archived_ids), dict(by_category))
    return SweepResult(post_ids=archived_ids, by_category=dict(by_category))


def purge_old_notifications(
    db: Session,
    *,
    now: datetime | None = None,
    retention: timedelta | None = None,
) -> tuple[int, int]:
    """Delete user notifications and finished outbox jobs older than ``retention``.

    Pending jobs are kept whatever their age. Returns the number of
    notifications and jobs removed.
    """
    now = now or utcnow()
    retention = (
        retention if retention is not None else timedelta(days=settings.notification_retention_days)
    )
    horizon = now - retention
    notifications = db.execute(
        delete(UserNotification)
        .where(UserNotification.created_at < horizon)
        .execution_options(synchronize_session=False)
    ).rowcount
    jobs = db.execute(
        delete(NotificationJob)
        .where(
            NotificationJob.status.in_(FINISHED_JOB_STATUSES),
            NotificationJob.created_at < horizon,
        )
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()

    if notifications or jobs:
        logger.info("Purged %d notifications and %d notification jobs", notifications, jobs)
    return notifications, jobs


class ExpirySweeper:
    """Periodically runs the expiry pass, and the archival pass on a slower cadence.

    Each pass runs in a worker thread with its own session; failures are
    logged and retried on the next tick.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        *,
        broadcaster: Broadcaster | None = None,
        expiry_interval: float | None = None,
        archive_interval: float | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.broadcaster = broadcaster or NullBroadcaster()
        self.expiry_interval = max(
            0.01, settings.expiry_interval_seconds if expiry_interval is None else expiry_interval
        )
        self.archive_interval = max(
            0.01,
            settings.archive_interval_seconds if archive_interval is None else archive_interval,
        )
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()
        self._last_archive: float | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if not self.running:
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background sweep loop and wait for the current pass."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None

    def run_expiry_once(self) -> SweepResult:
        with self.session_factory() as db:
            return expire_due_posts(db, broadcaster=self.broadcaster)

    def run_archive_once(self) -> SweepResult:
        with self.session_factory() as db:
            result = archive_terminal_posts(db)
            purge_old_notifications(db)
            return result

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while not self._stopping.is_set():
            try:
                await asyncio.to_thread(self.run_expiry_once)
                now = loop.time()
                if self._last_archive is None or now - self._last_archive >= self.archive_interval:
                    await asyncio.to_thread(self.run_archive_once)
                    self._last_archive = now
            except InvariantViolation:
                logger.error("ExpirySweeper hit an invariant violation", exc_info=True)
                raise
            except SQLAlchemyError as e:
                logger.warning("ExpirySweeper pass failed, retrying next tick: %s", e)
            except (OSError, ConnectionError, TimeoutError) as e:
                logger.warning("ExpirySweeper lost its connection, retrying next tick: %s", e)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.expiry_interval)
            except TimeoutError:
                continue
