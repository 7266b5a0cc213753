# src/hyperlocal/models/proximity.py
"""Grid-bucketed spatial index rows for active posts."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from hyperlocal.db.session import Base
from hyperlocal.db.time import UTCDateTime
from hyperlocal.db.types import enum_type
from hyperlocal.models.post import PostCategory


class ProximityCell(Base):
    """One row per indexed post, bucketed into a fixed lat/lng grid.

    Presence in this table means the post is eligible for nearby queries.
    """

    __tablename__ = "proximity_cell"
    __table_args__ = (
        Index("ix_proximity_cell_grid", "cell_row", "cell_col"),
        Index("ix_proximity_cell_category_created", "category", "created_at"),
    )

    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("post.id", ondelete="CASCADE"), primary_key=True
    )
    cell_row: Mapped[int] = mapped_column(Integer, nullable=False)
    cell_col: Mapped[int] = mapped_column(Integer, nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)
    category: Mapped[PostCategory] = mapped_column(enum_type(PostCategory), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
