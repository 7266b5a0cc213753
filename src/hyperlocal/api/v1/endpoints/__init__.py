"""API endpoints for Hyperlocal."""

from .heatmap import router as heatmap_router
from .moderation import router as moderation_router
from .posts import router as posts_router
from .search import router as search_router

__all__ = [
    "heatmap_router",
    "moderation_router",
    "posts_router",
    "search_router",
]
