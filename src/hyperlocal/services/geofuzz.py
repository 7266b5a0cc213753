"""Location privacy fuzzing and great-circle primitives.

``fuzz`` applies an irreversible random displacement to a submitted coordinate.
It keeps no state between calls; callers must drop the raw coordinate as soon
as it returns.
"""

from __future__ import annotations

import math
import random
from typing import NamedTuple

from hyperlocal.core.errors import InvalidConfig

EARTH_RADIUS_METERS = 6_371_000.0

_SYSTEM_RANDOM = random.SystemRandom()


class FuzzedLocation(NamedTuple):
    lat: float
    lng: float
    radius_used_m: float


def is_valid_coordinate(lat: object, lng: object) -> bool:
    """Return True for finite numbers with lat in [-90, 90] and lng in [-180, 180]."""
    if isinstance(lat, bool) or isinstance(lng, bool):
        return False
    if not isinstance(lat, int | float) or not isinstance(lng, int | float):
        return False
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters on a spherical earth."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(max(0.0, 1 - a)))
    return EARTH_RADIUS_METERS * c


def destination_point(lat: float, lng: float, bearing_deg: float, distance_m: float) -> tuple[float, float]:
    """Point reached from (lat, lng) travelling ``distance_m`` along ``bearing_deg``."""
    phi1 = math.radians(lat)
    lambda1 = math.radians(lng)
    theta = math.radians(bearing_deg)
    delta = distance_m / EARTH_RADIUS_METERS

    phi2 = math.asin(
        math.sin(phi1) * math.cos(delta)
        + math.cos(phi1) * math.sin(delta) * math.cos(theta)
    )
    lambda2 = lambda1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )

    lng2 = math.degrees(lambda2)
    # Normalise to [-180, 180) after crossing the antimeridian.
    lng2 = (lng2 + 540.0) % 360.0 - 180.0
    return math.degrees(phi2), lng2


def fuzz(
    lat: float,
    lng: float,
    min_radius_m: float,
    max_radius_m: float,
    rng: random.Random | None = None,
) -> FuzzedLocation:
    """Displace a coordinate by a random distance in [min, max] on a random bearing.

    Args:
        lat: Submitted latitude.
        lng: Submitted longitude.
        min_radius_m: Lower bound of the displacement in meters.
        max_radius_m: Upper bound of the displacement in meters. ``0`` means
            exact-location category: the input is returned unchanged.
        rng: Random source; defaults to the OS entropy pool.

    Returns:
        The displaced coordinate and the radius actually applied.

    Raises:
        InvalidConfig: If the radius range is empty or negative.
    """
    if min_radius_m < 0 or min_radius_m > max_radius_m:
        raise InvalidConfig(f"Fuzz radius range [{min_radius_m}, {max_radius_m}] is empty")
    if max_radius_m == 0:
        return FuzzedLocation(lat, lng, 0.0)

    source = rng or _SYSTEM_RANDOM
    radius = source.uniform(min_radius_m, max_radius_m)
    bearing = source.random() * 360.0
    fuzzed_lat, fuzzed_lng = destination_point(lat, lng, bearing, radius)
    return FuzzedLocation(fuzzed_lat, fuzzed_lng, radius)
