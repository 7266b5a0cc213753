# src/hyperlocal/models/reaction.py
"""Models capturing reactions and reports on posts."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hyperlocal.db.session import Base
from hyperlocal.db.time import UTCDateTime, utcnow
from hyperlocal.db.types import enum_type


class ReactionType(str, Enum):
    CONFIRM = "confirm"
    STILL_ACTIVE = "still_active"
    NO_LONGER_VALID = "no_longer_valid"
    THANKS = "thanks"

    @property
    def counter_attr(self) -> str:
        """Name of the denormalised counter column on ``Post``."""
        return f"reaction_{self.value}"


class ReportReason(str, Enum):
    MISINFORMATION = "misinformation"
    SPAM = "spam"
    HARASSMENT = "harassment"
    NSFW_CONTENT = "nsfw_content"
    PERSONAL_INFO_EXPOSED = "personal_info_exposed"
    HATE_SPEECH = "hate_speech"
    OFF_TOPIC = "off_topic"
    DUPLICATE = "duplicate"
    OTHER = "other"


class PostReaction(Base):
    """Per-user reaction on a post.

    The composite primary key means a user holds at most one reaction per
    post; re-reacting overwrites type and timestamp.
    """

    __tablename__ = "post_reaction"
    __table_args__ = (Index("ix_post_reaction_post_id_reaction", "post_id", "reaction"),)

    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("post.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    reaction: Mapped[ReactionType] = mapped_column(enum_type(ReactionType, 24), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class PostReport(Base):
    """Community report against a post; one per reporter per post."""

    __tablename__ = "post_report"
    __table_args__ = (UniqueConstraint("post_id", "reporter_id", name="uq_post_report_reporter"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("post.id", ondelete="CASCADE"), nullable=False
    )
    reporter_id: Mapped[str] = mapped_column(String(36), nullable=False)
    reason: Mapped[ReportReason] = mapped_column(enum_type(ReportReason, 32), nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
