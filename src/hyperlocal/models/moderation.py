# src/hyperlocal/models/moderation.py
"""Models tracking the moderation queue and its audit log."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from hyperlocal.db.session import Base
from hyperlocal.db.time import UTCDateTime, utcnow
from hyperlocal.db.types import enum_type


class QueueReason(str, Enum):
    LOW_TRUST_AUTO_QUEUE = "low_trust_auto_queue"
    COMMUNITY_FLAGGED_3PLUS = "community_flagged_3plus"
    VENDOR_APPLICATION = "vendor_application"


class QueueItemStatus(str, Enum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    RESOLVED = "resolved"


OPEN_QUEUE_STATUSES = frozenset({QueueItemStatus.PENDING, QueueItemStatus.IN_REVIEW})


class ModerationAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    REMOVE = "remove"
    ESCALATE = "escalate"
    MUTE_USER_24H = "mute_user_24h"
    WARN_USER = "warn_user"


class BanDuration(str, Enum):
    HOURS_24 = "24h"
    DAYS_7 = "7d"
    DAYS_30 = "30d"
    PERMANENT = "permanent"

    @property
    def delta(self) -> timedelta:
        return _BAN_DELTAS[self]


# A permanent ban is stored as a far-future expiry plus a deactivated account.
_BAN_DELTAS = {
    BanDuration.HOURS_24: timedelta(hours=24),
    BanDuration.DAYS_7: timedelta(days=7),
    BanDuration.DAYS_30: timedelta(days=30),
    BanDuration.PERMANENT: timedelta(days=365 * 100),
}


class ModerationQueueItem(Base):
    """A post awaiting a human decision, ordered by priority then age.

    At most one item per post may be open (pending or in_review); the partial
    unique index enforces it at the datastore.
    """

    __tablename__ = "moderation_queue_item"
    __table_args__ = (
        Index("ix_moderation_queue_item_order", "status", "priority", "created_at"),
        Index(
            "uq_moderation_queue_item_open_post",
            "post_id",
            unique=True,
            sqlite_where=text("status IN ('pending', 'in_review')"),
            postgresql_where=text("status IN ('pending', 'in_review')"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Plain column: queue history outlives the archived post row.
    post_id: Mapped[str] = mapped_column(String(36), nullable=False)
    reason: Mapped[QueueReason] = mapped_column(enum_type(QueueReason), nullable=False)
    # Lower number is more urgent.
    priority: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[QueueItemStatus] = mapped_column(
        enum_type(QueueItemStatus, 16), nullable=False, default=QueueItemStatus.PENDING
    )
    assigned_to: Mapped[str | None] = mapped_column(String(36), nullable=True)
    resolved_action: Mapped[ModerationAction | None] = mapped_column(
        enum_type(ModerationAction, 16), nullable=True
    )
    resolved_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    resolved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_QUEUE_STATUSES


class ModerationLog(Base):
    """Append-only record of every moderation decision."""

    __tablename__ = "moderation_log"
    __table_args__ = (Index("ix_moderation_log_target_user", "target_user_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    moderator_id: Mapped[str] = mapped_column(String(36), nullable=False)
    target_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    target_post_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
