# src/hyperlocal/services/__init__.py
"""Business logic services for the Hyperlocal application."""

from .duplicates import DuplicateDetector
from .extension import extend_post
from .moderation import ModerationQueue
from .posts import PostService
from .proximity import ProximityIndex
from .reactions import ReactionAggregator
from .reports import report_post
from .sweeper import ExpirySweeper
from .trust import TrustGate

__all__ = [
    "DuplicateDetector",
    "ExpirySweeper",
    "ModerationQueue",
    "PostService",
    "ProximityIndex",
    "ReactionAggregator",
    "TrustGate",
    "extend_post",
    "report_post",
]
