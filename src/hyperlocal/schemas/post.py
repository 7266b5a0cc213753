# src/hyperlocal/schemas/post.py
"""Post-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from hyperlocal.models.reaction import ReactionType, ReportReason
from hyperlocal.schemas.common import Location


class PostCreate(BaseModel):
    """Schema for creating a new post.

    Range and length checks happen in the submission pipeline so every
    rejection carries the same reason codes.
    """

    category: str = Field(..., description="Category slug, e.g. street_food")
    content: str = Field(..., description="Post body, at most 280 characters")
    lat: float = Field(..., description="Submitted latitude; fuzzed before storage")
    lng: float = Field(..., description="Submitted longitude; fuzzed before storage")
    photo_url: str | None = None


class ReactionCounts(BaseModel):
    confirm: int = 0
    still_active: int = 0
    no_longer_valid: int = 0
    thanks: int = 0


class AuthorSummary(BaseModel):
    id: str
    display_name: str
    trust_tier: str


class DuplicateCheck(BaseModel):
    score: float
    status: str
    similar_post_id: str | None = None


class PostResponse(BaseModel):
    """Schema for post information returned by the API."""

    id: str
    category: str
    content: str
    photo_url: str | None = None
    location: Location
    status: str
    moderation_status: str
    reactions: ReactionCounts
    expires_at: datetime
    extensions_used: int
    created_at: datetime


class PostCreateResponse(PostResponse):
    fuzz_radius_used: int
    duplicate_check: DuplicateCheck


class NearbyPost(BaseModel):
    id: str
    category: str
    content: str
    photo_url: str | None = None
    location: Location
    distance_meters: int
    author: AuthorSummary
    reactions: ReactionCounts
    user_reaction: ReactionType | None = None
    is_duplicate: bool
    can_extend: bool
    expires_at: datetime
    created_at: datetime


class NearbyResponse(BaseModel):
    posts: list[NearbyPost]
    total: int
    has_more: bool


class ReactionCreate(BaseModel):
    reaction: ReactionType


class ReactionResponse(BaseModel):
    post_id: str
    reaction: ReactionType
    new_reaction_counts: ReactionCounts
    ttl_extended: bool


class ExtensionResponse(BaseModel):
    post_id: str
    previous_expires_at: datetime
    new_expires_at: datetime
    extensions_remaining: int


class ReportCreate(BaseModel):
    reason: ReportReason
    details: str | None = Field(None, max_length=500)


class ReportResponse(BaseModel):
    reported: bool = True
    report_count: int
    auto_removed: bool


class DeleteResponse(BaseModel):
    deleted: bool = True
