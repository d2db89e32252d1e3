"""Shared Pydantic response models for the event store API.

Provides the error envelope used by the generic exception handlers and the
health-check response.
"""

from __future__ import annotations

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Structured error payload."""

    code: str
    message: str
    details: dict | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Health-check response."""

    status: str
