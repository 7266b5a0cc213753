# src/hyperlocal/models/notification.py
"""Outbound notification records."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Float, Index, Integer, SmallInteger, String, Text, VARCHAR
from sqlalchemy.orm import Mapped, mapped_column

from hyperlocal.db.session import Base
from hyperlocal.db.time import UTCDateTime, utcnow


class UserNotification(Base):
    """In-app notification addressed to a single user (e.g. a moderation warning)."""

    __tablename__ = "user_notification"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class NotificationJob(Base):
    """Outbox row for the external "notify nearby users" worker.

    The worker picks rows whose ``run_after`` has passed, and on failure bumps
    ``attempts`` and pushes ``run_after`` out by the exponential backoff.
    """

    __tablename__ = "notification_job"
    __table_args__ = (Index("ix_notification_job_status_run_after", "status", "run_after"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_type: Mapped[str] = mapped_column(String(32), nullable=False)
    post_id: Mapped[str] = mapped_column(String(36), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    # Fuzzed coordinate only.
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(
        VARCHAR(16), nullable=False, default="pending"
    )  # 'pending', 'sent', 'failed'
    attempts: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=3)
    run_after: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
