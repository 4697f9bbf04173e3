"""Typed application errors and the standardized error payload."""
from __future__ import annotations

import enum
from typing import Any

from app.utils.time import utcnow


class ErrorKind(str, enum.Enum):
    VALIDATION = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL = "INTERNAL_ERROR"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.SERVICE_UNAVAILABLE: 503,
    ErrorKind.INTERNAL: 500,
}


class AppError(Exception):
    """Base class for errors that map onto an API error response."""

    kind: ErrorKind = ErrorKind.INTERNAL
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, *, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.kind.value

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION
    default_message = "Invalid request"


class UnauthorizedError(AppError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Authentication required"


class ForbiddenError(AppError):
    kind = ErrorKind.FORBIDDEN
    default_message = "Access denied"


class NotFoundError(AppError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Resource not found"


class InvalidStateError(AppError):
    kind = ErrorKind.INVALID_STATE
    default_message = "Operation not allowed in the current state"


class ServiceUnavailableError(AppError):
    kind = ErrorKind.SERVICE_UNAVAILABLE
    default_message = "Service temporarily unavailable"


class InternalError(AppError):
    kind = ErrorKind.INTERNAL


def error_response(code: str, message: str, details: Any = None) -> dict[str, Any]:
    """Return a standardized error payload."""

    payload: dict[str, Any] = {
        "success": False,
        "error": {"code": code, "message": message},
        "timestamp": utcnow().isoformat(),
    }
    if details:
        payload["error"]["details"] = details
    return payload


__all__ = [
    "AppError",
    "ErrorKind",
    "ForbiddenError",
    "InternalError",
    "InvalidStateError",
    "NotFoundError",
    "ServiceUnavailableError",
    "STATUS_BY_KIND",
    "UnauthorizedError",
    "ValidationError",
    "error_response",
]
