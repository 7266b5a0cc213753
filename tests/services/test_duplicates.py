# tests/services/test_duplicates.py
"""Tests for near-duplicate scoring."""

from collections.abc import Callable
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from hyperlocal.db.time import utcnow
from hyperlocal.models import Post
from hyperlocal.models.post import PostCategory
from hyperlocal.services.duplicates import (
    DuplicateDetector,
    WeightedDuplicateScorer,
    trigram_similarity,
    trigrams,
)
from hyperlocal.services.geofuzz import destination_point
from hyperlocal.services.proximity import ProximityIndex

ORIGIN = (14.5995, 120.9842)


def test_trigrams_pad_words_like_pg_trgm() -> None:
    assert trigrams("cat") == {"  c", " ca", "cat", "at "}


def test_trigram_similarity_bounds() -> None:
    assert trigram_similarity("fishballs at the corner", "Fishballs at the corner!") == 1.0
    assert trigram_similarity("fishballs", "blackout") < 0.1
    assert trigram_similarity("", "anything") == 0.0
    assert 0.0 < trigram_similarity("fishballs at the corner", "fishballs near the corner") < 1.0


def test_weighted_scorer_blends_text_and_distance() -> None:
    scorer = WeightedDuplicateScorer(radius_m=150, text_weight=0.7)

    assert scorer.score("same text", "same text", 0) == pytest.approx(1.0)
    assert scorer.score("same text", "same text", 150) == pytest.approx(0.7)
    assert scorer.score("same text", "same text", 75) == pytest.approx(0.85)
    assert scorer.score("same text", "same text", 400) == pytest.approx(0.7)
    assert scorer.score("abc", "xyz", 0) == pytest.approx(0.3)


def test_detector_ranks_candidates_by_score(db_session: Session, make_post: Callable[..., Post]) -> None:
    exact = make_post(content="Fishballs at the corner")
    lat, lng = destination_point(*ORIGIN, 90, 60)
    make_post(content="Kwek-kwek cart by the church", lat=lat, lng=lng)

    detector = DuplicateDetector(ProximityIndex(db_session))
    candidates = detector.score("fishballs at the corner", *ORIGIN, PostCategory.STREET_FOOD)

    assert len(candidates) == 2
    assert candidates[0].existing_post_id == exact.id
    assert candidates[0].composite_score == pytest.approx(1.0)
    assert candidates[0].composite_score > candidates[1].composite_score


def test_detector_ignores_other_categories_far_posts_and_old_posts(
    db_session: Session, make_post: Callable[..., Post]
) -> None:
    now = utcnow()
    make_post(content="Fishballs at the corner", category=PostCategory.GENERAL)
    lat, lng = destination_point(*ORIGIN, 0, 400)
    make_post(content="Fishballs at the corner", lat=lat, lng=lng)
    make_post(content="Fishballs at the corner", created_at=now - timedelta(hours=5))

    detector = DuplicateDetector(ProximityIndex(db_session))

    assert detector.best_match("Fishballs at the corner", *ORIGIN, PostCategory.STREET_FOOD, now=now) is None


def test_detector_accepts_custom_scorer(db_session: Session, make_post: Callable[..., Post]) -> None:
    class FixedScorer:
        def score(self, new_content: str, existing_content: str, distance_m: float) -> float:
            return 0.42

    post = make_post()
    best = DuplicateDetector(ProximityIndex(db_session), FixedScorer()).best_match(
        "anything", *ORIGIN, PostCategory.STREET_FOOD
    )

    assert best is not None
    assert best.existing_post_id == post.id
    assert best.composite_score == 0.42
