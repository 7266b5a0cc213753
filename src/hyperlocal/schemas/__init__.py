"""Pydantic schemas for the Hyperlocal API."""

from .common import ErrorResponse, Location
from .moderation import ModerationActionRequest, QueueResponse
from .post import NearbyResponse, PostCreate, PostResponse, ReactionCreate, ReportCreate

__all__ = [
    "ErrorResponse",
    "Location",
    "ModerationActionRequest",
    "NearbyResponse",
    "PostCreate",
    "PostResponse",
    "QueueResponse",
    "ReactionCreate",
    "ReportCreate",
]
