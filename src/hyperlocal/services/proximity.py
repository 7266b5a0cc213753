"""Nearby-post queries over a grid-bucketed spatial index.

Every post is bucketed into a fixed lat/lng grid in ``proximity_cell``. A
query turns the search circle into a bounding box, lets the database narrow
candidates by grid cell and box, then applies the exact great-circle distance
and ordering in Python.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.orm import Session

from hyperlocal.models.post import Post, PostCategory, PostStatus
from hyperlocal.models.proximity import ProximityCell
from hyperlocal.services.geofuzz import EARTH_RADIUS_METERS, haversine_distance

logger = logging.getLogger(__name__)

# ~1.1 km of latitude per cell; a 2 km query touches at most a 5x5 block.
CELL_SIZE_DEGREES = 0.01


class SortOrder(str, Enum):
    NEAREST = "nearest"
    RECENT = "recent"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class NearbyPost:
    post: Post
    distance_meters: float


@dataclass(frozen=True)
class NearbyPage:
    items: list[NearbyPost]
    # Matches before limit/offset were applied.
    total: int


@dataclass(frozen=True)
class _BoundingBox:
    min_lat: float
    max_lat: float
    # One or two longitude spans (two when the box crosses the antimeridian).
    lng_spans: tuple[tuple[float, float], ...]


def cell_for(lat: float, lng: float, cell_size: float = CELL_SIZE_DEGREES) -> tuple[int, int]:
    """Return the (row, col) grid bucket containing a coordinate."""
    return math.floor(lat / cell_size), math.floor(lng / cell_size)


def _bounding_box(lat: float, lng: float, radius_m: float) -> _BoundingBox:
    angular = math.degrees(radius_m / EARTH_RADIUS_METERS)
    min_lat = lat - angular
    max_lat = lat + angular
    if min_lat <= -90.0 or max_lat >= 90.0:
        return _BoundingBox(max(min_lat, -90.0), min(max_lat, 90.0), ((-180.0, 180.0),))

    cos_lat = math.cos(math.radians(lat))
    lng_delta = angular / cos_lat if cos_lat > 1e-12 else 360.0
    if lng_delta >= 180.0:
        return _BoundingBox(min_lat, max_lat, ((-180.0, 180.0),))

    west = lng - lng_delta
    east = lng + lng_delta
    if west < -180.0:
        spans = ((west + 360.0, 180.0), (-180.0, east))
    elif east > 180.0:
        spans = ((west, 180.0), (-180.0, east - 360.0))
    else:
        spans = ((west, east),)
    return _BoundingBox(min_lat, max_lat, spans)


def _sort_key(order: SortOrder):
    if order is SortOrder.NEAREST:
        return lambda item: (item.distance_meters, -item.post.created_at.timestamp(), item.post.id)
    if order is SortOrder.CONFIRMED:
        return lambda item: (
            -item.post.reaction_confirm,
            -item.post.created_at.timestamp(),
            item.post.id,
        )
    return lambda item: (-item.post.created_at.timestamp(), item.post.id)


class ProximityIndex:
    """Spatial index of posts backed by the ``proximity_cell`` table."""

    def __init__(self, db: Session, *, cell_size: float = CELL_SIZE_DEGREES) -> None:
        self.db = db
        self.cell_size = cell_size

    def insert(self, post: Post) -> None:
        """Index ``post``; re-inserting an indexed id updates its entry."""
        row, col = cell_for(post.lat, post.lng, self.cell_size)
        self.db.merge(
            ProximityCell(
                post_id=post.id,
                cell_row=row,
                cell_col=col,
                lat=post.lat,
                lng=post.lng,
                category=post.category,
                created_at=post.created_at,
            )
        )
        self.db.flush()

    def remove_from_active(self, post_id: str) -> None:
        """Drop ``post_id`` from the index. Unknown ids are a no-op."""
        self.db.execute(delete(ProximityCell).where(ProximityCell.post_id == post_id))

    def query(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        *,
        since: datetime | None = None,
        categories: Sequence[PostCategory] | None = None,
        sort: SortOrder = SortOrder.NEAREST,
        limit: int = 50,
        offset: int = 0,
    ) -> NearbyPage:
        """Return active posts within ``radius_m`` (inclusive) of the center.

        Only posts with status ``active`` qualify, and when ``since`` is given
        only those created at or after it.
        Ties are broken by ``created_at`` descending, then id.
        """
        box = _bounding_box(lat, lng, radius_m)
        min_row = math.floor(box.min_lat / self.cell_size)
        max_row = math.floor(box.max_lat / self.cell_size)

        span_clauses = []
        for west, east in box.lng_spans:
            span_clauses.append(
                and_(
                    ProximityCell.cell_col >= math.floor(west / self.cell_size),
                    ProximityCell.cell_col <= math.floor(east / self.cell_size),
                    ProximityCell.lng >= west,
                    ProximityCell.lng <= east,
                )
            )

        stmt = (
            select(Post)
            .join(ProximityCell, ProximityCell.post_id == Post.id)
            .where(
                ProximityCell.cell_row >= min_row,
                ProximityCell.cell_row <= max_row,
                ProximityCell.lat >= box.min_lat,
                ProximityCell.lat <= box.max_lat,
                or_(*span_clauses),
                Post.status == PostStatus.ACTIVE,
            )
        )
        if since is not None:
            stmt = stmt.where(ProximityCell.created_at >= since)
        if categories:
            stmt = stmt.where(ProximityCell.category.in_(list(categories)))

        matches: list[NearbyPost] = []
        for post in self.db.execute(stmt).scalars():
            distance = haversine_distance(lat, lng, post.lat, post.lng)
            if distance <= radius_m:
                matches.append(NearbyPost(post=post, distance_meters=distance))

        matches.sort(key=_sort_key(sort))
        page = matches[offset : offset + limit] if limit > 0 else []
        logger.debug(
            "Nearby query r=%.0fm matched %d posts (page %d)", radius_m, len(matches), len(page)
        )
        return NearbyPage(items=page, total=len(matches))
