# src/hyperlocal/schemas/moderation.py
"""Moderation-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from hyperlocal.models.moderation import BanDuration, ModerationAction
from hyperlocal.schemas.common import Location


class ModerationActionRequest(BaseModel):
    action: ModerationAction
    note: str | None = Field(None, max_length=500)


class ModerationActionResponse(BaseModel):
    item_id: int
    action: ModerationAction
    resolved: bool
    post_status: str | None = None


class QueuedPost(BaseModel):
    id: str
    content: str
    category: str
    photo_url: str | None = None
    location: Location
    status: str
    duplicate_score: float
    created_at: datetime
    report_count: int


class QueuedAuthor(BaseModel):
    id: str
    display_name: str
    trust_score: int
    trust_tier: str
    role: str


class QueueItemResponse(BaseModel):
    id: int
    reason: str
    priority: int
    status: str
    queued_at: datetime
    post: QueuedPost | None = None
    author: QueuedAuthor | None = None


class QueueCounts(BaseModel):
    pending: int = 0
    in_review: int = 0
    resolved: int = 0


class QueueResponse(BaseModel):
    items: list[QueueItemResponse]
    total: int
    counts: QueueCounts


class ModerationLogEntry(BaseModel):
    id: int
    moderator_id: str
    target_post_id: str | None = None
    action: str
    reason: str | None = None
    metadata: dict[str, Any] | None = Field(None, validation_alias="metadata_")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ModeratedUser(BaseModel):
    id: str
    display_name: str | None = None
    role: str
    trust_score: int
    trust_tier: str
    mute_expires_at: datetime | None = None
    ban_expires_at: datetime | None = None
    created_at: datetime


class UserModerationHistory(BaseModel):
    user: ModeratedUser
    moderation_history: list[ModerationLogEntry]


class BanRequest(BaseModel):
    reason: str = Field(..., min_length=10, max_length=500)
    duration: BanDuration


class BanResponse(BaseModel):
    banned: bool = True
    duration: BanDuration
    ban_expires_at: datetime
    posts_removed: int
