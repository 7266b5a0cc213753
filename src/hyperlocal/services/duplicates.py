"""Near-duplicate detection for incoming posts.

Candidates are active posts of the same category inside a small spatial and
temporal window. Each is scored by a :class:`DuplicateScorer`; the default
blends trigram text similarity with spatial proximity so that near-identical
text posted very close by dominates.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from hyperlocal.core.settings import settings
from hyperlocal.db.time import utcnow
from hyperlocal.models.post import PostCategory
from hyperlocal.services.proximity import ProximityIndex, SortOrder

_WORD_RE = re.compile(r"[^\W_]+", re.UNICODE)

# Upper bound on candidates pulled from the index for one submission.
MAX_CANDIDATES = 200


def trigrams(text: str) -> set[str]:
    """Word trigrams padded the way pg_trgm pads them (two spaces before, one after)."""
    grams: set[str] = set()
    for word in _WORD_RE.findall(text.lower()):
        padded = f"  {word} "
        for i in range(len(padded) - 2):
            grams.add(padded[i : i + 3])
    return grams


def trigram_similarity(left: str, right: str) -> float:
    """Jaccard similarity of the two strings' trigram sets, in [0, 1]."""
    a = trigrams(left)
    b = trigrams(right)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


class DuplicateScorer(Protocol):
    def score(self, new_content: str, existing_content: str, distance_m: float) -> float:
        """Return a composite score in [0, 1] for one candidate."""
        ...


@dataclass(frozen=True)
class WeightedDuplicateScorer:
    """``text_weight * trigram + (1 - text_weight) * (1 - distance / radius)``."""

    radius_m: float = settings.duplicate_radius_meters
    text_weight: float = settings.duplicate_text_weight

    def score(self, new_content: str, existing_content: str, distance_m: float) -> float:
        text_score = trigram_similarity(new_content, existing_content)
        if self.radius_m <= 0:
            spatial_score = 1.0 if distance_m <= 0 else 0.0
        else:
            spatial_score = max(0.0, 1.0 - distance_m / self.radius_m)
        composite = self.text_weight * text_score + (1.0 - self.text_weight) * spatial_score
        return min(1.0, max(0.0, composite))


@dataclass(frozen=True)
class DuplicateCandidate:
    existing_post_id: str
    composite_score: float
    distance_meters: float


class DuplicateDetector:
    """Score a prospective post against recent nearby posts of its category."""

    def __init__(
        self,
        index: ProximityIndex,
        scorer: DuplicateScorer | None = None,
        *,
        radius_m: float | None = None,
        window: timedelta | None = None,
    ) -> None:
        self.index = index
        self.radius_m = radius_m if radius_m is not None else settings.duplicate_radius_meters
        self.window = window or timedelta(hours=settings.duplicate_window_hours)
        self.scorer = scorer or WeightedDuplicateScorer(radius_m=self.radius_m)

    def score(
        self,
        content: str,
        fuzzed_lat: float,
        fuzzed_lng: float,
        category: PostCategory,
        *,
        now: datetime | None = None,
    ) -> list[DuplicateCandidate]:
        """Return candidates ranked by composite score, highest first.

        An empty list means nothing was inside the window (score 0).
        """
        now = now or utcnow()
        page = self.index.query(
            fuzzed_lat,
            fuzzed_lng,
            self.radius_m,
            since=now - self.window,
            categories=[category],
            sort=SortOrder.NEAREST,
            limit=MAX_CANDIDATES,
        )
        candidates = [
            DuplicateCandidate(
                existing_post_id=item.post.id,
                composite_score=self.scorer.score(content, item.post.content, item.distance_meters),
                distance_meters=item.distance_meters,
            )
            for item in page.items
        ]
        candidates.sort(key=lambda c: (-c.composite_score, c.distance_meters, c.existing_post_id))
        return candidates

    def best_match(
        self,
        content: str,
        fuzzed_lat: float,
        fuzzed_lng: float,
        category: PostCategory,
        *,
        now: datetime | None = None,
    ) -> DuplicateCandidate | None:
        """Highest-scoring candidate, or None when the window is empty."""
        candidates = self.score(content, fuzzed_lat, fuzzed_lng, category, now=now)
        return candidates[0] if candidates else None
