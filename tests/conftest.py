# tests/conftest.py
from __future__ import annotations

import os
import random
from collections.abc import Callable, Generator, Iterator
from datetime import datetime, timedelta
from itertools import count
from typing import Any

import pytest
from limits.storage import MemoryStorage

os.environ.setdefault("SWEEPER_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from hyperlocal.api.v1.dependencies import (
    get_broadcaster,
    get_cache,
    get_rate_limiter,
    get_rng,
)
from hyperlocal.core.categories import invalidate_category_snapshot
from hyperlocal.core.security import create_access_token
from hyperlocal.db.session import Base
from hyperlocal.db.session import get_db as app_get_session
from hyperlocal.db.time import utcnow
from hyperlocal.main import app as fastapi_app
from hyperlocal.models import Post, User
from hyperlocal.models.post import ModerationStatus, PostCategory, PostStatus
from hyperlocal.models.user import UserRole
from hyperlocal.services.cache import NullCache
from hyperlocal.services.proximity import ProximityIndex
from hyperlocal.services.broadcast import BroadcastEvent
from hyperlocal.services.ratelimit import WindowRateLimiter

TEST_DB_URL = "sqlite://"

# Quezon City, roughly the middle of the neighbourhood used throughout the tests.
ORIGIN = (14.5995, 120.9842)

_USER_COUNTER = count(1)


class RecordingBroadcaster:
    """Keeps published events in memory so tests can assert on them."""

    def __init__(self) -> None:
        self.events: list[tuple[BroadcastEvent, dict[str, Any]]] = []

    def publish(self, event: BroadcastEvent, data: dict[str, Any]) -> None:
        self.events.append((event, data))

    def of_type(self, event: BroadcastEvent) -> list[dict[str, Any]]:
        return [data for kind, data in self.events if kind is event]


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(engine: Engine, session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Services commit, so wipe every table to give each test a clean database.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(autouse=True)
def fresh_category_snapshot() -> Iterator[None]:
    invalidate_category_snapshot()
    yield
    invalidate_category_snapshot()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture()
def rate_limiter() -> WindowRateLimiter:
    return WindowRateLimiter(MemoryStorage())


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    broadcaster: RecordingBroadcaster,
    rate_limiter: WindowRateLimiter,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    overrides: dict[Callable[..., Any], Callable[..., Any]] = {
        app_get_session: _get_session_override,
        get_broadcaster: lambda: broadcaster,
        get_rate_limiter: lambda: rate_limiter,
        get_cache: NullCache,
        get_rng: lambda: random.Random(1234),
    }
    app.dependency_overrides.update(overrides)
    try:
        yield
    finally:
        for dependency in overrides:
            app.dependency_overrides.pop(dependency, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Factory for persisted users; ``trust_score`` defaults to a trusted neighbour."""

    def _make_user(
        *,
        trust_score: int = 60,
        role: UserRole = UserRole.USER,
        display_name: str | None = None,
        mute_expires_at: datetime | None = None,
        ban_expires_at: datetime | None = None,
    ) -> User:
        n = next(_USER_COUNTER)
        user = User(
            id=f"user-{n:04d}",
            display_name=display_name or f"Neighbor {n}",
            role=role,
            trust_score=trust_score,
            mute_expires_at=mute_expires_at,
            ban_expires_at=ban_expires_at,
            is_active=True,
            created_at=utcnow(),
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture()
def test_user(make_user: Callable[..., User]) -> User:
    return make_user(display_name="Test User")


@pytest.fixture()
def other_user(make_user: Callable[..., User]) -> User:
    return make_user(display_name="Other User")


@pytest.fixture()
def moderator(make_user: Callable[..., User]) -> User:
    return make_user(trust_score=300, role=UserRole.MODERATOR, display_name="Mod")


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest.fixture()
def make_post(db_session: Session, test_user: User) -> Callable[..., Post]:
    """Insert a post row directly, bypassing the submission pipeline.

    Active posts are also added to the proximity index.
    """

    def _make_post(
        *,
        author: User | None = None,
        content: str = "Fresh fishballs at the corner",
        category: PostCategory = PostCategory.STREET_FOOD,
        lat: float = ORIGIN[0],
        lng: float = ORIGIN[1],
        status: PostStatus = PostStatus.ACTIVE,
        created_at: datetime | None = None,
        expires_at: datetime | None = None,
        **fields: Any,
    ) -> Post:
        created_at = created_at or utcnow()
        values: dict[str, Any] = {
            "author_id": (author or test_user).id,
            "category": category,
            "content": content,
            "lat": lat,
            "lng": lng,
            "fuzz_radius_used": 40,
            "status": status,
            "moderation_status": (
                ModerationStatus.PENDING
                if status is PostStatus.PENDING_MODERATION
                else ModerationStatus.AUTO_APPROVED
            ),
            "duplicate_score": 0.0,
            "expires_at": expires_at or created_at + timedelta(hours=4),
            "extensions_used": 0,
            "reaction_confirm": 0,
            "reaction_still_active": 0,
            "reaction_no_longer_valid": 0,
            "reaction_thanks": 0,
            "view_count": 0,
            "created_at": created_at,
            "updated_at": created_at,
        }
        values.update(fields)
        post = Post(**values)
        db_session.add(post)
        db_session.flush()
        if status in (PostStatus.ACTIVE, PostStatus.PENDING_MODERATION):
            ProximityIndex(db_session).insert(post)
        db_session.commit()
        return post

    return _make_post
