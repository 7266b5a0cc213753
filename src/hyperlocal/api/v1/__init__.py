# src/hyperlocal/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import heatmap_router, moderation_router, posts_router, search_router

__all__ = [
    "heatmap_router",
    "moderation_router",
    "posts_router",
    "search_router",
]
