# tests/services/test_categories.py
"""Tests for the immutable category configuration snapshot."""

import pytest
from sqlalchemy.orm import Session

from hyperlocal.core.categories import (
    CategoryConfig,
    CategorySnapshot,
    default_snapshot,
    get_category_snapshot,
    invalidate_category_snapshot,
    load_category_snapshot,
)
from hyperlocal.core.errors import InvalidConfig, InvalidInput
from hyperlocal.models import CategoryConfigRow
from hyperlocal.models.post import PostCategory


def test_default_snapshot_covers_every_category() -> None:
    snapshot = default_snapshot()
    for category in PostCategory:
        assert category in snapshot

    street_food = snapshot.get("street_food")
    assert (street_food.fuzz_min_meters, street_food.fuzz_max_meters) == (30, 50)
    assert street_food.default_ttl_hours == 4
    assert snapshot.get(PostCategory.BARANGAY_ANNOUNCEMENT).is_exact_location
    assert not snapshot.get(PostCategory.NOISE_COMPLAINT).extensions_enabled


def test_unknown_or_inactive_category_is_invalid_input() -> None:
    inactive = CategoryConfig(PostCategory.GENERAL, 10, 20, 6, 3, 1, is_active=False)
    snapshot = CategorySnapshot([inactive])

    with pytest.raises(InvalidInput) as exc_info:
        snapshot.get("karaoke")
    assert exc_info.value.code == "INVALID_CATEGORY"

    with pytest.raises(InvalidInput):
        snapshot.get(PostCategory.GENERAL)


@pytest.mark.parametrize(
    "fuzz_min,fuzz_max,ttl",
    [(60, 30, 4), (-5, 30, 4), (30, 50, 0)],
)
def test_inconsistent_config_is_rejected(fuzz_min: int, fuzz_max: int, ttl: int) -> None:
    with pytest.raises(InvalidConfig):
        CategoryConfig(PostCategory.GENERAL, fuzz_min, fuzz_max, ttl, 0, 0)


def test_snapshot_is_read_only_and_versioned() -> None:
    first = default_snapshot()
    second = default_snapshot()
    assert second.version > first.version
    with pytest.raises(TypeError):
        first._configs[PostCategory.GENERAL] = None  # type: ignore[index]


def test_rows_override_defaults_until_invalidated(db_session: Session) -> None:
    assert load_category_snapshot(db_session).get(PostCategory.GENERAL).default_ttl_hours == 6
    cached = get_category_snapshot(db_session)

    db_session.add(
        CategoryConfigRow(
            category="general",
            fuzz_min_meters=10,
            fuzz_max_meters=20,
            default_ttl_hours=12,
            max_extension_hours=0,
            max_extensions=0,
            is_active=True,
        )
    )
    db_session.commit()

    assert get_category_snapshot(db_session) is cached
    invalidate_category_snapshot()
    reloaded = get_category_snapshot(db_session)
    assert reloaded is not cached
    assert reloaded.get(PostCategory.GENERAL).default_ttl_hours == 12
    assert PostCategory.STREET_FOOD not in reloaded


def test_bad_row_raises_invalid_config(db_session: Session) -> None:
    db_session.add(
        CategoryConfigRow(
            category="general",
            fuzz_min_meters=80,
            fuzz_max_meters=20,
            default_ttl_hours=6,
            max_extension_hours=0,
            max_extensions=0,
            is_active=True,
        )
    )
    db_session.commit()

    with pytest.raises(InvalidConfig):
        load_category_snapshot(db_session)
