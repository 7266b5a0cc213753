# tests/services/test_geofuzz.py
"""Tests for location fuzzing and great-circle helpers."""

import math
import random

import pytest

from hyperlocal.core.errors import InvalidConfig
from hyperlocal.services.geofuzz import (
    destination_point,
    fuzz,
    haversine_distance,
    is_valid_coordinate,
)

TOLERANCE_M = 1e-3

SAMPLE_POINTS = [
    (14.5995, 120.9842),
    (0.0, 0.0),
    (-33.8688, 151.2093),
    (64.1466, -21.9426),
    (0.0, 179.9999),
    (0.0, -179.9999),
    (89.999, 45.0),
]


@pytest.mark.parametrize("lat,lng", SAMPLE_POINTS)
def test_fuzz_distance_stays_within_configured_range(lat: float, lng: float) -> None:
    """The displacement is always between the minimum and maximum radius."""
    rng = random.Random(42)
    for _ in range(200):
        result = fuzz(lat, lng, 30, 50, rng=rng)
        distance = haversine_distance(lat, lng, result.lat, result.lng)
        assert 30 - TOLERANCE_M <= distance <= 50 + TOLERANCE_M
        assert math.isclose(distance, result.radius_used_m, abs_tol=1e-3)
        assert is_valid_coordinate(result.lat, result.lng)


def test_fuzz_with_zero_maximum_returns_input_unchanged() -> None:
    result = fuzz(14.5995, 120.9842, 0, 0)
    assert (result.lat, result.lng) == (14.5995, 120.9842)
    assert result.radius_used_m == 0.0


def test_fuzz_uses_fixed_radius_when_min_equals_max() -> None:
    result = fuzz(14.5995, 120.9842, 40, 40, rng=random.Random(1))
    assert result.radius_used_m == 40
    assert haversine_distance(14.5995, 120.9842, result.lat, result.lng) == pytest.approx(40, abs=1e-6)


@pytest.mark.parametrize("minimum,maximum", [(50, 30), (-1, 10)])
def test_fuzz_rejects_empty_radius_range(minimum: float, maximum: float) -> None:
    with pytest.raises(InvalidConfig):
        fuzz(14.5995, 120.9842, minimum, maximum)


def test_fuzz_is_not_deterministic_with_system_random() -> None:
    """Two fuzzes of the same point should not land in the same place."""
    first = fuzz(14.5995, 120.9842, 30, 50)
    second = fuzz(14.5995, 120.9842, 30, 50)
    assert (first.lat, first.lng) != (second.lat, second.lng)


def test_destination_point_wraps_across_antimeridian() -> None:
    lat, lng = destination_point(0.0, 179.9999, 90.0, 100.0)
    assert -180.0 <= lng < 180.0
    assert lng < 0
    assert haversine_distance(0.0, 179.9999, lat, lng) == pytest.approx(100.0, abs=1e-6)


@pytest.mark.parametrize(
    "lat,lng,expected",
    [
        (0, 0, True),
        (90, 180, True),
        (-90, -180, True),
        (90.0001, 0, False),
        (0, -180.5, False),
        (float("nan"), 0, False),
        (0, float("inf"), False),
        (True, 0, False),
        ("14.5", 120.9, False),
        (None, 0, False),
    ],
)
def test_is_valid_coordinate(lat: object, lng: object, expected: bool) -> None:
    assert is_valid_coordinate(lat, lng) is expected


def test_haversine_distance_one_degree_latitude() -> None:
    assert haversine_distance(0, 0, 1, 0) == pytest.approx(111_195, rel=1e-3)
