"""Search endpoint for the Hyperlocal API."""

from __future__ import annotations

from fastapi import APIRouter, Query

from hyperlocal.api.v1.dependencies import SessionDep
from hyperlocal.schemas.search import SearchResponse, SearchResult
from hyperlocal.services.search import search_posts

router = APIRouter(prefix="/search", tags=["search"])


@router.get("/", response_model=SearchResponse)
def search(
    db: SessionDep,
    q: str = Query(..., description="Keywords, 2-100 characters"),
    lat: float = Query(...),
    lng: float = Query(...),
    radius_km: float = Query(2.0),
) -> SearchResponse:
    """Active nearby posts matching ``q``, most relevant first."""
    hits = search_posts(db, q, lat, lng, radius_km=radius_km)
    results = [
        SearchResult(
            id=hit.post.id,
            content=hit.post.content,
            category=hit.post.category.value,
            relevance_score=round(hit.relevance, 2),
            distance_meters=round(hit.distance_meters),
            created_at=hit.post.created_at,
        )
        for hit in hits
    ]
    return SearchResponse(results=results, total=len(results))
