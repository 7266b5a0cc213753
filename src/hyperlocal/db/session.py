"""Database session configuration."""

from __future__ import annotations

import logging
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from hyperlocal.core.errors import Conflict
from hyperlocal.core.settings import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Import the model modules so Base.metadata is complete for Alembic and create_all.
import hyperlocal.models  # noqa: E402,F401

_engine_kwargs: dict[str, object] = {"pool_pre_ping": True, "echo": settings.sql_debug}
if settings.effective_database_url.startswith("sqlite"):
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    # Bounded wait for a pooled connection; no request blocks indefinitely.
    _engine_kwargs["pool_timeout"] = settings.database_pool_timeout_seconds

engine = create_engine(settings.effective_database_url, **_engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit_or_conflict(db: Session, *, context: str) -> None:
    """Commit the unit of work, mapping lost optimistic races to ``Conflict``.

    A ``StaleDataError`` means another transaction bumped the post version
    between our read and write; an ``IntegrityError`` means a uniqueness guard
    (for instance one open queue item per post) was won by someone else.
    """
    try:
        db.commit()
    except (StaleDataError, IntegrityError) as err:
        db.rollback()
        logger.warning("Conflict while committing %s: %s", context, err)
        raise Conflict(
            f"Concurrent update while {context}; retry the request",
            details={"retryable": True},
        ) from err
