"""
core/errors.py -- Closed set of domain failures raised by Tradepost services.

Every failure a service can signal is one of the classes below. Each carries a
stable machine-readable ``code`` and a human message; none of them knows about
HTTP. The status-code mapping lives in api/errors.py, the only place that
turns these into transport responses.

Messages for authentication failures are deliberately generic ("Invalid email
or password.") so callers cannot tell a missing account from a wrong password.
Validation and conflict messages are specific.

Layer rule: core/ is the kernel. This module imports nothing from the project.
"""

from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base class for every domain failure."""

    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


class ValidationFailed(AppError):
    """Input is malformed (shape, range, or cross-field rule)."""

    code = "validation_failed"
    default_message = "Request validation failed."


class Conflict(AppError):
    """A uniqueness rule would be violated (duplicate email or username)."""

    code = "conflict"
    default_message = "Resource already exists."


class Unauthenticated(AppError):
    """No usable credential accompanied the request."""

    code = "unauthenticated"
    default_message = "Authentication required."


class TokenExpired(Unauthenticated):
    code = "token_expired"
    default_message = "Invalid or expired token."


class TokenMalformed(Unauthenticated):
    code = "token_malformed"
    default_message = "Invalid or expired token."


class Forbidden(AppError):
    """Authenticated, but the caller does not own the target resource."""

    code = "forbidden"
    default_message = "You do not have permission to modify this resource."


class NotFound(AppError):
    code = "not_found"
    default_message = "Resource not found."


class InvalidOrExpiredToken(AppError):
    """Password reset token did not match an unexpired ticket."""

    code = "invalid_reset_token"
    default_message = "Password reset token is invalid or has expired."


class SessionUnavailable(AppError):
    """The session middleware is not installed on the request pipeline.

    A deployment/configuration error, never caused by client input.
    """

    code = "session_unavailable"
    default_message = "Session support is not configured."
