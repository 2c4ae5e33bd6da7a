"""
api/errors.py -- Transport boundary for failures.

Domain code raises the tagged errors from core/errors.py and never picks an
HTTP status. This module owns the one table mapping error class to status
code, plus the FastAPI exception handlers that render every failure into the
same ErrorResponse envelope:

    {"error": {"code": "...", "message": "...", "detail": null}}

Store-specific errors are translated here as well so their shapes never leak:
IntegrityError (a unique index fired) becomes a Conflict.

Every handler logs before responding: 4xx at WARNING, 5xx with traceback.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException

from api.models import ErrorDetail, ErrorResponse
from core.errors import (
    AppError,
    Conflict,
    Forbidden,
    InvalidOrExpiredToken,
    NotFound,
    SessionUnavailable,
    Unauthenticated,
    ValidationFailed,
)

logger = logging.getLogger("tradepost.api")

STATUS_CODES: dict[type[AppError], int] = {
    ValidationFailed: 400,
    InvalidOrExpiredToken: 400,
    Unauthenticated: 401,
    Forbidden: 403,
    NotFound: 404,
    Conflict: 409,
    SessionUnavailable: 500,
}


def status_for(exc: AppError) -> int:
    """Resolve the status for exc, walking the MRO so subclasses inherit it."""
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


def _render(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


def _log(request: Request, status_code: int, code: str) -> None:
    if status_code >= 500:
        logger.error("%s %s failed: %s (%d)", request.method, request.url.path, code, status_code)
    else:
        logger.warning("%s %s rejected: %s (%d)", request.method, request.url.path, code, status_code)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    status_code = status_for(exc)
    _log(request, status_code, exc.code)
    response = _render(status_code, exc.code, exc.message, exc.detail)
    if status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body or query params failed validation -- rendered as ValidationFailed."""
    status_code = STATUS_CODES[ValidationFailed]
    _log(request, status_code, ValidationFailed.code)
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return _render(status_code, ValidationFailed.code, ValidationFailed.default_message, "; ".join(messages))


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """A unique index fired outside a path that already translated it."""
    status_code = STATUS_CODES[Conflict]
    _log(request, status_code, Conflict.code)
    return _render(status_code, Conflict.code, "Duplicate entry.", "Resource already exists.")


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Structured error for FastAPI/Starlette HTTP exceptions (404 routes, 405, ...)."""
    _log(request, exc.status_code, f"http_{exc.status_code}")
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _render(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    _log(request, 429, "rate_limited")
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _render(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _render(500, "internal_error", "An unexpected error occurred.")


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
