"""Exception handlers translating service errors into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from hyperlocal.core.errors import (
    Conflict,
    HyperlocalError,
    InvalidInput,
    InvariantViolation,
    NotFound,
    PolicyRejection,
    RateLimited,
)

logger = logging.getLogger(__name__)

# Policy codes that are not plain 400s.
_POLICY_STATUS = {
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "USER_MUTED": status.HTTP_403_FORBIDDEN,
    "ACCOUNT_BANNED": status.HTTP_403_FORBIDDEN,
    "DUPLICATE_POST": status.HTTP_409_CONFLICT,
    "ALREADY_REPORTED": status.HTTP_409_CONFLICT,
}


def _body(code: str, message: str, details: dict | None = None) -> dict:
    return {"error": {"code": code, "message": message, "details": details or {}}}


def status_for(exc: HyperlocalError) -> int:
    if isinstance(exc, InvalidInput):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, PolicyRejection):
        return _POLICY_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, RateLimited):
        return status.HTTP_429_TOO_MANY_REQUESTS
    if isinstance(exc, NotFound):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, Conflict):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def hyperlocal_error_handler(request: Request, exc: HyperlocalError) -> JSONResponse:
    if isinstance(exc, InvariantViolation):
        logger.error("Invariant violation on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_body("INTERNAL_ERROR", "Internal server error"),
        )

    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after)}
    elif isinstance(exc, Conflict):
        logger.warning("Conflict on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status_for(exc),
        content=_body(exc.code, exc.message, exc.details),
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_body(
            "VALIDATION_ERROR",
            "Request validation failed",
            {"errors": jsonable_encoder(exc.errors())},
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HyperlocalError, hyperlocal_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
