"""Shared API dependencies for authentication and common functionality."""

import random
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from hyperlocal.core.redis import get_rate_limit_storage, get_redis
from hyperlocal.core.security import decode_access_token
from hyperlocal.core.settings import settings
from hyperlocal.db.session import get_db
from hyperlocal.models import User
from hyperlocal.models.user import MODERATOR_ROLES, UserRole
from hyperlocal.services.broadcast import Broadcaster, RedisBroadcaster
from hyperlocal.services.cache import Cache, RedisCache
from hyperlocal.services.notifications import NotificationDispatcher
from hyperlocal.services.posts import PostService
from hyperlocal.services.ratelimit import RateLimiter, WindowRateLimiter

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()
optional_bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _user_from_token(token: str, db: Session) -> User:
    try:
        payload = decode_access_token(token)
    except JWTError as err:
        raise _credentials_error() from err
    subject = payload.get("sub")
    if not subject:
        raise _credentials_error()

    user = db.get(User, subject)
    if user is None:
        raise _credentials_error("User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    return user


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Raises:
        HTTPException: If token is invalid or user not found
    """
    return _user_from_token(credentials.credentials, db)


def get_optional_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(optional_bearer_scheme)],
    db: SessionDep,
) -> User | None:
    """Like ``get_current_user`` but anonymous callers get ``None``."""
    if credentials is None:
        return None
    return _user_from_token(credentials.credentials, db)


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]
OptionalUserDep = Annotated[User | None, Depends(get_optional_user)]


def require_moderator(user: CurrentUserDep) -> User:
    if user.role not in MODERATOR_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Moderator role required")
    return user


ModeratorDep = Annotated[User, Depends(require_moderator)]


def require_admin(user: CurrentUserDep) -> User:
    if user.role is not UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return user


AdminDep = Annotated[User, Depends(require_admin)]


def get_rate_limiter() -> RateLimiter:
    return WindowRateLimiter(get_rate_limit_storage())


def get_broadcaster() -> Broadcaster:
    return RedisBroadcaster(get_redis(), settings.broadcast_channel)


def get_cache() -> Cache:
    return RedisCache(get_redis())


def get_rng() -> random.Random | None:
    """Random source for location fuzzing; ``None`` selects the system CSPRNG."""
    return None


RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter)]
BroadcasterDep = Annotated[Broadcaster, Depends(get_broadcaster)]
CacheDep = Annotated[Cache, Depends(get_cache)]


def get_post_service(
    db: SessionDep,
    rate_limiter: RateLimiterDep,
    broadcaster: BroadcasterDep,
    rng: Annotated[random.Random | None, Depends(get_rng)],
) -> PostService:
    return PostService(
        db,
        rate_limiter=rate_limiter,
        broadcaster=broadcaster,
        dispatcher=NotificationDispatcher(db),
        rng=rng,
    )


PostServiceDep = Annotated[PostService, Depends(get_post_service)]
