"""Activity heatmap over a map viewport."""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from hyperlocal.core.errors import InvalidInput
from hyperlocal.core.settings import settings
from hyperlocal.db.time import utcnow
from hyperlocal.models.post import Post, PostCategory, PostStatus
from hyperlocal.services.cache import Cache, NullCache
from hyperlocal.services.geofuzz import is_valid_coordinate

METERS_PER_DEGREE_LAT = 111_320.0


class Resolution(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def grid_meters(self) -> int:
        return {"low": 100, "medium": 50, "high": 25}[self.value]


@dataclass(frozen=True)
class Viewport:
    sw_lat: float
    sw_lng: float
    ne_lat: float
    ne_lng: float

    @classmethod
    def parse(cls, bounds: str) -> Viewport:
        """Parse ``"swLat,swLng,neLat,neLng"``."""
        try:
            sw_lat, sw_lng, ne_lat, ne_lng = (float(part) for part in bounds.split(","))
        except ValueError as err:
            raise InvalidInput(
                "bounds must be 'swLat,swLng,neLat,neLng'", code="INVALID_BOUNDS"
            ) from err
        viewport = cls(sw_lat, sw_lng, ne_lat, ne_lng)
        if not (is_valid_coordinate(sw_lat, sw_lng) and is_valid_coordinate(ne_lat, ne_lng)):
            raise InvalidInput("bounds are outside valid coordinates", code="INVALID_BOUNDS")
        if sw_lat > ne_lat:
            raise InvalidInput("south-west corner must be below north-east", code="INVALID_BOUNDS")
        return viewport

    @property
    def crosses_antimeridian(self) -> bool:
        return self.sw_lng > self.ne_lng

    def cache_key(self) -> str:
        return ":".join(
            str(round(v * 100)) for v in (self.sw_lat, self.sw_lng, self.ne_lat, self.ne_lng)
        )


def _grid_steps(viewport: Viewport, grid_m: int) -> tuple[float, float]:
    center_lat = (viewport.sw_lat + viewport.ne_lat) / 2.0
    lat_step = grid_m / METERS_PER_DEGREE_LAT
    cos_lat = max(math.cos(math.radians(center_lat)), 1e-6)
    return lat_step, grid_m / (METERS_PER_DEGREE_LAT * cos_lat)


def compute_heatmap_points(
    db: Session,
    viewport: Viewport,
    grid_m: int,
    *,
    categories: Sequence[PostCategory] | None = None,
) -> list[dict[str, Any]]:
    """Count active posts per grid cell; each point is a cell center with its weight."""
    if viewport.crosses_antimeridian:
        lng_clause = or_(Post.lng >= viewport.sw_lng, Post.lng <= viewport.ne_lng)
    else:
        lng_clause = and_(Post.lng >= viewport.sw_lng, Post.lng <= viewport.ne_lng)
    stmt = select(Post.lat, Post.lng).where(
        Post.status == PostStatus.ACTIVE,
        Post.lat >= viewport.sw_lat,
        Post.lat <= viewport.ne_lat,
        lng_clause,
    )
    if categories:
        stmt = stmt.where(Post.category.in_(list(categories)))

    lat_step, lng_step = _grid_steps(viewport, grid_m)
    cells: Counter[tuple[int, int]] = Counter()
    for lat, lng in db.execute(stmt).all():
        cells[(math.floor(lat / lat_step), math.floor(lng / lng_step))] += 1

    return [
        {
            "lat": round((row + 0.5) * lat_step, 6),
            "lng": round((col + 0.5) * lng_step, 6),
            "weight": weight,
        }
        for (row, col), weight in sorted(cells.items())
    ]


def build_heatmap(
    db: Session,
    viewport: Viewport,
    *,
    resolution: Resolution = Resolution.MEDIUM,
    categories: Sequence[PostCategory] | None = None,
    cache: Cache | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Heatmap payload for ``viewport``, read through the advisory cache."""
    now = now or utcnow()
    grid_m = resolution.grid_meters
    category_key = ",".join(sorted(c.value for c in categories)) if categories else "all"
    key = f"heatmap:{viewport.cache_key()}:{category_key}:{grid_m}"
    ttl = settings.heatmap_cache_seconds

    points = (cache or NullCache()).get_or_compute(
        key, ttl, lambda: compute_heatmap_points(db, viewport, grid_m, categories=categories)
    )
    return {
        "resolution": resolution.value,
        "grid_size": grid_m,
        "points": points,
        "generated_at": now.isoformat(),
        "expires_at": (now + timedelta(seconds=ttl)).isoformat(),
    }
