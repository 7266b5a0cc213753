"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    code: str = Field(..., description="Machine-readable reason code.")
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Body returned for every handled error."""

    error: ErrorDetail


class Location(BaseModel):
    lat: float
    lng: float
    # Always true: only fuzzed coordinates ever leave the service.
    fuzzed: bool = True
