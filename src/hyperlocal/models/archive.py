# src/hyperlocal/models/archive.py
"""Cold storage for posts that left the live table."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hyperlocal.db.session import Base
from hyperlocal.db.time import UTCDateTime, utcnow

# Columns copied verbatim from ``post`` when a row is archived.
ARCHIVED_POST_COLUMNS = (
    "id",
    "author_id",
    "category",
    "content",
    "photo_url",
    "lat",
    "lng",
    "fuzz_radius_used",
    "moderation_status",
    "duplicate_score",
    "linked_post_id",
    "expires_at",
    "extensions_used",
    "reaction_confirm",
    "reaction_still_active",
    "reaction_no_longer_valid",
    "reaction_thanks",
    "view_count",
    "created_at",
    "updated_at",
    "terminal_at",
)


class ArchivedPost(Base):
    """Snapshot of a post at archival time.

    ``final_status`` keeps the terminal status the post held in the live
    table, so the archive still says why the post ended.
    """

    __tablename__ = "post_archive"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    author_id: Mapped[str] = mapped_column(String(36), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    photo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)
    fuzz_radius_used: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="archived")
    # Terminal status the post held in the live table.
    final_status: Mapped[str] = mapped_column(String(32), nullable=False)
    moderation_status: Mapped[str] = mapped_column(String(16), nullable=False)
    duplicate_score: Mapped[float] = mapped_column(Float, nullable=False)
    linked_post_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    extensions_used: Mapped[int] = mapped_column(Integer, nullable=False)
    reaction_confirm: Mapped[int] = mapped_column(Integer, nullable=False)
    reaction_still_active: Mapped[int] = mapped_column(Integer, nullable=False)
    reaction_no_longer_valid: Mapped[int] = mapped_column(Integer, nullable=False)
    reaction_thanks: Mapped[int] = mapped_column(Integer, nullable=False)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    terminal_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    archived_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
