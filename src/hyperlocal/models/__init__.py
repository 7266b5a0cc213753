# src/hyperlocal/models/__init__.py
"""SQLAlchemy models for the Hyperlocal application."""

from .archive import ArchivedPost
from .category import CategoryConfigRow
from .moderation import ModerationLog, ModerationQueueItem
from .notification import NotificationJob, UserNotification
from .post import Post
from .proximity import ProximityCell
from .reaction import PostReaction, PostReport
from .user import User

__all__ = [
    "ArchivedPost",
    "CategoryConfigRow",
    "ModerationLog", "ModerationQueueItem",
    "NotificationJob", "UserNotification",
    "Post",
    "ProximityCell",
    "PostReaction", "PostReport",
    "User",
]
