"""Heatmap endpoint for the Hyperlocal API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query

from hyperlocal.api.v1.dependencies import CacheDep, SessionDep
from hyperlocal.api.v1.endpoints.posts import _parse_categories
from hyperlocal.services.heatmap import Resolution, Viewport, build_heatmap

router = APIRouter(prefix="/heatmap", tags=["heatmap"])


@router.get("/")
def get_heatmap(
    db: SessionDep,
    cache: CacheDep,
    bounds: str = Query(..., description="swLat,swLng,neLat,neLng"),
    categories: str | None = Query(None),
    resolution: Resolution = Query(Resolution.MEDIUM),
) -> dict[str, Any]:
    """Grid of active-post weights for the visible map area."""
    return build_heatmap(
        db,
        Viewport.parse(bounds),
        resolution=resolution,
        categories=_parse_categories(categories),
        cache=cache,
    )
