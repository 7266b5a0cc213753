"""Search response schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class SearchResult(BaseModel):
    id: str
    content: str
    category: str
    relevance_score: float
    distance_meters: int
    created_at: datetime


class SearchResponse(BaseModel):
    results: list[SearchResult]
    total: int
