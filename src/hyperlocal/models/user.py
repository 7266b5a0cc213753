# src/hyperlocal/models/user.py
"""SQLAlchemy model for neighbourhood users as seen by the lifecycle engine."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hyperlocal.db.session import Base
from hyperlocal.db.time import UTCDateTime, utcnow
from hyperlocal.db.types import enum_type


class UserRole(str, Enum):
    USER = "user"
    MODERATOR = "moderator"
    OFFICIAL = "official"
    ADMIN = "admin"


MODERATOR_ROLES = frozenset({UserRole.MODERATOR, UserRole.OFFICIAL, UserRole.ADMIN})
# Roles allowed to publish barangay announcements regardless of trust score.
AUTHORITY_ROLES = frozenset({UserRole.OFFICIAL, UserRole.ADMIN})


class User(Base):
    """Identity issued by the external auth service plus its trust inputs.

    ``trust_score`` is recomputed by an external batch job; this service only
    reads it.
    """

    __tablename__ = "app_user"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[UserRole] = mapped_column(
        enum_type(UserRole, 16), nullable=False, default=UserRole.USER
    )
    trust_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mute_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    ban_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    def is_muted(self, now: datetime) -> bool:
        return self.mute_expires_at is not None and self.mute_expires_at > now

    def is_banned(self, now: datetime) -> bool:
        return self.ban_expires_at is not None and self.ban_expires_at > now
