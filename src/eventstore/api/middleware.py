"""API error handling and response hardening middleware.

Registers FastAPI exception handlers that convert failures into JSON bodies.

Status code mapping:
- asyncpg ``PostgresError`` / ``InterfaceError`` → 500 with the scheduler
  client's ``{"action": "error", "message": "..."}`` shape
- ``EventNotFoundError`` → 404 ``{"error": {"code": "EVENT_NOT_FOUND", ...}}``
- ``ValueError`` → 400 ``VALIDATION_ERROR``
- ``RequestValidationError`` → 422 ``VALIDATION_ERROR``
- Any other ``Exception`` → 500 ``INTERNAL_ERROR``
"""

from __future__ import annotations

import logging

import asyncpg
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from eventstore.api.models import ErrorDetail, ErrorResponse
from eventstore.api.models.events import ActionResponse
from eventstore.events import EventAction, EventNotFoundError

logger = logging.getLogger(__name__)

SECURITY_HEADERS: dict[str, str] = {
    "Content-Security-Policy": (
        "default-src 'self';base-uri 'self';font-src 'self' https: data:;"
        "form-action 'self';frame-ancestors 'self';img-src 'self' data:;"
        "object-src 'none';script-src 'self';script-src-attr 'none';"
        "style-src 'self' https: 'unsafe-inline';upgrade-insecure-requests"
    ),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


async def _handle_storage_error(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Return 500 in the client's action shape when the database fails."""
    logger.error(
        "Storage failure on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
    )
    body = ActionResponse(action=str(EventAction.ERROR), message=str(exc))
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


async def _handle_event_not_found(
    request: Request,
    exc: EventNotFoundError,
) -> JSONResponse:
    """Return 404 when an operation targets a missing event id."""
    logger.info("Event not found: %s", exc.event_id)
    body = ErrorResponse(
        error=ErrorDetail(
            code="EVENT_NOT_FOUND",
            message=str(exc),
            details={"id": exc.event_id},
        )
    )
    return JSONResponse(status_code=404, content=body.model_dump())


async def _handle_value_error(
    request: Request,
    exc: ValueError,
) -> JSONResponse:
    """Return 400 for malformed values that escaped request validation."""
    logger.info("Validation error: %s", exc)
    body = ErrorResponse(
        error=ErrorDetail(
            code="VALIDATION_ERROR",
            message=str(exc),
        )
    )
    return JSONResponse(status_code=400, content=body.model_dump())


async def _handle_request_validation(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Return 422 with the list of field errors."""
    logger.info("Request validation failed on %s %s", request.method, request.url.path)
    body = ErrorResponse(
        error=ErrorDetail(
            code="VALIDATION_ERROR",
            message="Request validation failed",
            details={"errors": [_plain_error(err) for err in exc.errors()]},
        )
    )
    return JSONResponse(status_code=422, content=body.model_dump())


def _plain_error(err: dict) -> dict:
    """Keep only JSON-safe keys of a pydantic error entry."""
    return {
        "loc": [str(part) for part in err.get("loc", ())],
        "msg": str(err.get("msg", "")),
        "type": str(err.get("type", "")),
    }


class CatchAllErrorMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that catches any unhandled exception and returns a 500.

    Sits above the Starlette exception handler layer so exceptions without a
    registered handler still produce the standard error envelope.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.error(
                "Unhandled exception on %s %s",
                request.method,
                request.url.path,
                exc_info=True,
            )
            body = ErrorResponse(
                error=ErrorDetail(
                    code="INTERNAL_ERROR",
                    message="Internal server error",
                )
            )
            return JSONResponse(status_code=500, content=body.model_dump())


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach conservative security headers to every response."""

    def __init__(self, app, headers: dict[str, str] | None = None) -> None:
        super().__init__(app)
        self._headers = dict(SECURITY_HEADERS if headers is None else headers)

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in self._headers.items():
            response.headers.setdefault(name, value)
        if "x-powered-by" in response.headers:
            del response.headers["x-powered-by"]
        return response


def register_error_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI application.

    Call this from ``create_app()`` after constructing the ``FastAPI`` instance.
    """
    app.add_exception_handler(asyncpg.PostgresError, _handle_storage_error)
    app.add_exception_handler(asyncpg.InterfaceError, _handle_storage_error)
    app.add_exception_handler(EventNotFoundError, _handle_event_not_found)  # type: ignore[arg-type]
    app.add_exception_handler(ValueError, _handle_value_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_request_validation)  # type: ignore[arg-type]
    app.add_middleware(CatchAllErrorMiddleware)
