"""Error taxonomy shared by the lifecycle engine and the API layer.

Validation and policy errors are returned to the caller with a reason code.
Conflicts are retryable. Invariant violations are programming or configuration
errors and must never be swallowed.
"""

from __future__ import annotations

from typing import Any


class HyperlocalError(Exception):
    """Base exception carrying a machine-readable code and optional details."""

    code: str = "ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}


class InvalidInput(HyperlocalError):
    """Malformed coordinate, content length or category. No side effects applied."""

    code = "INVALID_INPUT"


class PolicyRejection(HyperlocalError):
    """Request was well-formed but a policy rule forbids it."""

    code = "POLICY_REJECTED"


class RateLimited(HyperlocalError):
    """Caller exceeded a sliding-window limit."""

    code = "RATE_LIMIT"

    def __init__(self, message: str, *, retry_after: int, remaining: int = 0) -> None:
        super().__init__(
            message,
            details={"retry_after": retry_after, "remaining": remaining},
        )
        self.retry_after = retry_after


class NotFound(HyperlocalError):
    code = "NOT_FOUND"


class Conflict(HyperlocalError):
    """A concurrent mutation invalidated a guard; the caller may retry."""

    code = "CONFLICT"


class InvariantViolation(HyperlocalError):
    """Programming or configuration error. Fail loud."""

    code = "INVARIANT_VIOLATION"


class InvalidConfig(InvariantViolation):
    code = "INVALID_CONFIG"


class IllegalTransition(InvariantViolation):
    """Attempted a lifecycle edge that does not exist, e.g. terminal -> active."""

    code = "ILLEGAL_TRANSITION"


__all__ = [
    "Conflict",
    "HyperlocalError",
    "IllegalTransition",
    "InvalidConfig",
    "InvalidInput",
    "InvariantViolation",
    "NotFound",
    "PolicyRejection",
    "RateLimited",
]
