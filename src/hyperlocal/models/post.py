# src/hyperlocal/models/post.py
"""SQLAlchemy models for posts and their lifecycle enumerations."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hyperlocal.db.session import Base
from hyperlocal.db.time import UTCDateTime, utcnow
from hyperlocal.db.types import enum_type


class PostCategory(str, Enum):
    STREET_FOOD = "street_food"
    LOST_FOUND = "lost_found"
    SAFETY_ALERT = "safety_alert"
    TRAFFIC_ROAD = "traffic_road"
    COMMUNITY_EVENT = "community_event"
    UTILITY_ISSUE = "utility_issue"
    NOISE_COMPLAINT = "noise_complaint"
    FREE_STUFF = "free_stuff"
    BARANGAY_ANNOUNCEMENT = "barangay_announcement"
    GENERAL = "general"


class PostStatus(str, Enum):
    PENDING_MODERATION = "pending_moderation"
    ACTIVE = "active"
    EXPIRED = "expired"
    AUTO_REMOVED = "auto_removed"
    REMOVED_BY_AUTHOR = "removed_by_author"
    REMOVED_BY_MOD = "removed_by_mod"
    ARCHIVED = "archived"


class ModerationStatus(str, Enum):
    PENDING = "pending"
    AUTO_APPROVED = "auto_approved"
    APPROVED = "approved"
    REMOVED = "removed"


NON_TERMINAL_STATUSES = frozenset({PostStatus.PENDING_MODERATION, PostStatus.ACTIVE})
# Statuses that only ever move on to ARCHIVED.
TERMINAL_STATUSES = frozenset(
    {
        PostStatus.EXPIRED,
        PostStatus.AUTO_REMOVED,
        PostStatus.REMOVED_BY_AUTHOR,
        PostStatus.REMOVED_BY_MOD,
    }
)


def new_post_id() -> str:
    return str(uuid.uuid4())


class Post(Base):
    """Short-lived, category-tagged micro-event tied to a fuzzed location.

    ``lat``/``lng`` hold the fuzzed coordinate only. The submitted coordinate
    is never written to this table or anywhere else.
    """

    __tablename__ = "post"
    __table_args__ = (
        Index("ix_post_status_expires_at", "status", "expires_at"),
        Index("ix_post_status_terminal_at", "status", "terminal_at"),
        Index("ix_post_author_id", "author_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_post_id)
    author_id: Mapped[str] = mapped_column(String(36), ForeignKey("app_user.id"), nullable=False)
    category: Mapped[PostCategory] = mapped_column(enum_type(PostCategory), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    photo_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)
    fuzz_radius_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[PostStatus] = mapped_column(enum_type(PostStatus), nullable=False)
    moderation_status: Mapped[ModerationStatus] = mapped_column(
        enum_type(ModerationStatus, 16), nullable=False
    )

    duplicate_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    # Set when the post was flagged as a possible duplicate of another post.
    linked_post_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    extensions_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    reaction_confirm: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reaction_still_active: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reaction_no_longer_valid: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reaction_thanks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    # When the post entered a terminal status; drives the archival grace window.
    terminal_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Optimistic compare-and-swap on every ORM update of the row.
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def reaction_counts(self) -> dict[str, int]:
        return {
            "confirm": self.reaction_confirm,
            "still_active": self.reaction_still_active,
            "no_longer_valid": self.reaction_no_longer_valid,
            "thanks": self.reaction_thanks,
        }
