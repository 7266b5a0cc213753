# src/hyperlocal/services/search.py
"""Keyword search over active posts near a point.

Candidates come from the proximity index, so only active posts inside the
radius are ever scored. Relevance is the share of the query's trigrams found
in the post text, which tolerates plurals and small typos the way pg_trgm's
``word_similarity`` does.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from hyperlocal.core.errors import InvalidInput
from hyperlocal.core.settings import settings
from hyperlocal.models.post import Post
from hyperlocal.services.duplicates import trigrams
from hyperlocal.services.geofuzz import is_valid_coordinate
from hyperlocal.services.proximity import ProximityIndex, SortOrder

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 100
MIN_RADIUS_KM = 0.1
MIN_RELEVANCE = 0.5
RESULT_LIMIT = 20
# Nearest-first cap on posts scored for one query.
SEARCH_CANDIDATES = 500


@dataclass(frozen=True)
class SearchHit:
    post: Post
    relevance: float
    distance_meters: float


def relevance(query: str, content: str) -> float:
    """Fraction of ``query`` trigrams present in ``content``, in [0, 1]."""
    wanted = trigrams(query)
    if not wanted:
        return 0.0
    return len(wanted & trigrams(content)) / len(wanted)


def search_posts(
    db: Session,
    q: str,
    lat: float,
    lng: float,
    *,
    radius_km: float | None = None,
    limit: int = RESULT_LIMIT,
) -> list[SearchHit]:
    """Active posts within ``radius_km`` matching ``q``.

    Results are ordered by relevance descending, then distance ascending,
    and capped at ``limit``.

    Raises:
        InvalidInput: If the query, coordinate or radius is out of range.
    """
    query = q.strip() if isinstance(q, str) else ""
    if not MIN_QUERY_LENGTH <= len(query) <= MAX_QUERY_LENGTH:
        raise InvalidInput(
            f"Search query must be {MIN_QUERY_LENGTH}-{MAX_QUERY_LENGTH} characters",
            code="INVALID_QUERY",
        )
    if not is_valid_coordinate(lat, lng):
        raise InvalidInput("Latitude/longitude out of range", code="INVALID_LOCATION")
    radius_km = settings.max_radius_km if radius_km is None else radius_km
    if not MIN_RADIUS_KM <= radius_km <= settings.max_radius_km:
        raise InvalidInput(
            f"radius_km must be in [{MIN_RADIUS_KM}, {settings.max_radius_km}]",
            code="INVALID_RADIUS",
        )

    page = ProximityIndex(db).query(
        lat, lng, radius_km * 1000.0, sort=SortOrder.NEAREST, limit=SEARCH_CANDIDATES
    )
    hits = []
    for candidate in page.items:
        score = relevance(query, candidate.post.content)
        if score >= MIN_RELEVANCE:
            hits.append(SearchHit(candidate.post, score, candidate.distance_meters))

    hits.sort(key=lambda hit: (-hit.relevance, hit.distance_meters, hit.post.id))
    logger.debug("Search %r matched %d of %d nearby posts", query, len(hits), len(page.items))
    return hits[:limit]
