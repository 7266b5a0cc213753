"""Immutable, versioned category configuration.

Category policy is read from the ``category_config`` table once and frozen into
a :class:`CategorySnapshot`. Requests only ever see a whole snapshot; operators
who edit rows call :func:`invalidate_category_snapshot` to publish a new one.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from itertools import count
from threading import Lock
from types import MappingProxyType

from sqlalchemy import select
from sqlalchemy.orm import Session

from hyperlocal.core.errors import InvalidConfig, InvalidInput
from hyperlocal.models.category import CategoryConfigRow
from hyperlocal.models.post import PostCategory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryConfig:
    category: PostCategory
    fuzz_min_meters: int
    fuzz_max_meters: int
    default_ttl_hours: int
    max_extension_hours: int
    max_extensions: int
    is_active: bool = True

    def __post_init__(self) -> None:
        if self.fuzz_min_meters < 0 or self.fuzz_min_meters > self.fuzz_max_meters:
            raise InvalidConfig(
                f"Category {self.category.value}: fuzz range "
                f"[{self.fuzz_min_meters}, {self.fuzz_max_meters}] is empty",
            )
        if self.default_ttl_hours <= 0:
            raise InvalidConfig(f"Category {self.category.value}: default TTL must be positive")
        if self.max_extension_hours < 0 or self.max_extensions < 0:
            raise InvalidConfig(f"Category {self.category.value}: negative extension policy")

    @property
    def extensions_enabled(self) -> bool:
        return self.max_extension_hours > 0 and self.max_extensions > 0

    @property
    def is_exact_location(self) -> bool:
        return self.fuzz_max_meters == 0


def _cfg(category: PostCategory, fuzz: tuple[int, int], ttl: int, ext_hours: int, ext: int) -> CategoryConfig:
    return CategoryConfig(
        category=category,
        fuzz_min_meters=fuzz[0],
        fuzz_max_meters=fuzz[1],
        default_ttl_hours=ttl,
        max_extension_hours=ext_hours,
        max_extensions=ext,
    )


DEFAULT_CATEGORY_CONFIGS: tuple[CategoryConfig, ...] = (
    _cfg(PostCategory.STREET_FOOD, (30, 50), 4, 2, 1),
    _cfg(PostCategory.LOST_FOUND, (50, 100), 72, 24, 2),
    _cfg(PostCategory.SAFETY_ALERT, (20, 50), 12, 6, 2),
    _cfg(PostCategory.TRAFFIC_ROAD, (20, 40), 6, 3, 1),
    _cfg(PostCategory.COMMUNITY_EVENT, (30, 80), 24, 12, 1),
    _cfg(PostCategory.UTILITY_ISSUE, (30, 60), 48, 24, 2),
    _cfg(PostCategory.NOISE_COMPLAINT, (50, 100), 3, 0, 0),
    _cfg(PostCategory.FREE_STUFF, (30, 60), 8, 4, 1),
    # Authority-issued: exact location, no fuzzing.
    _cfg(PostCategory.BARANGAY_ANNOUNCEMENT, (0, 0), 168, 0, 0),
    _cfg(PostCategory.GENERAL, (50, 100), 6, 3, 1),
)

_VERSION_COUNTER = count(1)


class CategorySnapshot:
    """Read-only mapping of category to policy, tagged with a version."""

    def __init__(self, configs: Iterable[CategoryConfig], *, version: int | None = None) -> None:
        by_category: dict[PostCategory, CategoryConfig] = {}
        for config in configs:
            by_category[config.category] = config
        self._configs: Mapping[PostCategory, CategoryConfig] = MappingProxyType(by_category)
        self.version = version if version is not None else next(_VERSION_COUNTER)

    def __contains__(self, category: object) -> bool:
        return category in self._configs

    def __iter__(self) -> Iterator[CategoryConfig]:
        return iter(self._configs.values())

    def get(self, category: PostCategory | str) -> CategoryConfig:
        """Return the active config for ``category`` or raise ``InvalidInput``."""
        try:
            key = PostCategory(category)
        except ValueError as err:
            raise InvalidInput(f"Unknown category {category!r}", code="INVALID_CATEGORY") from err
        config = self._configs.get(key)
        if config is None or not config.is_active:
            raise InvalidInput("Category is not available", code="INVALID_CATEGORY")
        return config


def default_snapshot() -> CategorySnapshot:
    return CategorySnapshot(DEFAULT_CATEGORY_CONFIGS)


def load_category_snapshot(db: Session) -> CategorySnapshot:
    """Build a snapshot from ``category_config`` rows, falling back to defaults.

    Raises:
        InvalidConfig: If any row carries an inconsistent policy.
    """
    rows = db.execute(select(CategoryConfigRow)).scalars().all()
    if not rows:
        return default_snapshot()

    configs = []
    for row in rows:
        try:
            category = PostCategory(row.category)
        except ValueError as err:
            raise InvalidConfig(f"Unknown category row {row.category!r}") from err
        configs.append(
            CategoryConfig(
                category=category,
                fuzz_min_meters=row.fuzz_min_meters,
                fuzz_max_meters=row.fuzz_max_meters,
                default_ttl_hours=row.default_ttl_hours,
                max_extension_hours=row.max_extension_hours,
                max_extensions=row.max_extensions,
                is_active=row.is_active,
            )
        )
    snapshot = CategorySnapshot(configs)
    logger.info("Loaded category snapshot v%d with %d categories", snapshot.version, len(configs))
    return snapshot


_SNAPSHOT: CategorySnapshot | None = None
_SNAPSHOT_LOCK = Lock()


def get_category_snapshot(db: Session) -> CategorySnapshot:
    """Return the process-wide snapshot, loading it on first use."""
    global _SNAPSHOT
    snapshot = _SNAPSHOT
    if snapshot is not None:
        return snapshot
    with _SNAPSHOT_LOCK:
        if _SNAPSHOT is None:
            _SNAPSHOT = load_category_snapshot(db)
        return _SNAPSHOT


def invalidate_category_snapshot() -> None:
    """Drop the cached snapshot so the next request reloads from the table."""
    global _SNAPSHOT
    with _SNAPSHOT_LOCK:
        _SNAPSHOT = None
