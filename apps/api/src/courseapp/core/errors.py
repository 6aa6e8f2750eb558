"""
Service Error Taxonomy

Every failure a use case can signal is an exception deriving from
``ServiceError``. Routers let them propagate; the handlers installed by
``register_exception_handlers`` render them as ``{status, message, errors?}``.

| Error               | HTTP | Surfaced to caller |
|---------------------|------|--------------------|
| InvalidInputError   | 400  | yes, with all violations |
| UnauthenticatedError| 401  | yes |
| ForbiddenError      | 403  | yes |
| NotFoundError       | 404  | yes |
| RateLimitedError    | 429  | yes, with Retry-After |
| StorageError        | 500  | yes (generic message) |
| PersistenceError    | 500  | yes (generic message) |
| NotificationError   | -    | never, logged only |
"""

import logging
import traceback
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from courseapp.core.config import settings

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base exception for use-case failures."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class InvalidInputError(ServiceError):
    """Raised when input fails validation. Carries every violation found."""

    def __init__(self, violations: list[dict[str, str]], message: str = "Validation failed"):
        self.violations = violations
        super().__init__(
            message=message,
            error_code="INVALID_INPUT",
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class UnauthenticatedError(ServiceError):
    """Raised when no usable bearer token was presented."""

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(
            message=message,
            error_code="UNAUTHENTICATED",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class ForbiddenError(ServiceError):
    """Raised when a valid principal lacks the admin capability."""

    def __init__(self, message: str = "Access denied. Admin privileges required."):
        super().__init__(
            message=message,
            error_code="FORBIDDEN",
            status_code=status.HTTP_403_FORBIDDEN,
        )


class NotFoundError(ServiceError):
    """Raised when a referenced resource does not exist."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class RateLimitedError(ServiceError):
    """Raised when a client exceeded a rate limit policy."""

    def __init__(
        self,
        retry_after_seconds: int,
        message: str = "Too many requests, please try again later.",
        limit: int | None = None,
    ):
        self.retry_after_seconds = retry_after_seconds
        self.limit = limit
        super().__init__(
            message=message,
            error_code="RATE_LIMITED",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        )


class StorageError(ServiceError):
    """Raised when the object storage provider fails."""

    def __init__(self, message: str = "File storage operation failed"):
        super().__init__(
            message=message,
            error_code="STORAGE_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class PersistenceError(ServiceError):
    """Raised when the document store fails."""

    def __init__(self, message: str = "Failed to save data"):
        super().__init__(
            message=message,
            error_code="PERSISTENCE_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class NotificationError(ServiceError):
    """Raised when a notification could not be delivered. Never surfaced."""

    def __init__(self, message: str = "Notification delivery failed"):
        super().__init__(
            message=message,
            error_code="NOTIFICATION_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


# ============================================
# Response rendering
# ============================================


def error_body(
    status_code: int,
    message: str,
    errors: list[dict[str, str]] | None = None,
    exc: BaseException | None = None,
) -> dict[str, Any]:
    """
    Build the error response body.

    ``status`` is "fail" for client errors and "error" for server errors.
    A stack trace is only attached outside production.
    """
    body: dict[str, Any] = {
        "status": "fail" if 400 <= status_code < 500 else "error",
        "message": message,
    }
    if errors:
        body["errors"] = errors
    if exc is not None and not settings.is_production:
        body["stack"] = "".join(traceback.format_exception(exc))
    return body


def violations_from_pydantic(errors: list[dict[str, Any]], skip_prefix: tuple[str, ...] = ()) -> list[dict[str, str]]:
    """Convert pydantic error dicts into ``{field, message}`` violations."""
    violations = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if str(part) not in skip_prefix]
        field = ".".join(loc) or "body"
        message = str(err.get("msg", "Invalid value"))
        # "Value error, ..." prefixes come from custom validators
        if message.startswith("Value error, "):
            message = message[len("Value error, ") :]
        violations.append({"field": field, "message": message})
    return violations


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    headers = None
    errors = None

    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
        if exc.limit is not None:
            headers["RateLimit-Limit"] = str(exc.limit)
            headers["RateLimit-Remaining"] = "0"
            headers["RateLimit-Reset"] = str(exc.retry_after_seconds)
    if isinstance(exc, InvalidInputError):
        errors = exc.violations
    if isinstance(exc, UnauthenticatedError):
        headers = {"WWW-Authenticate": "Bearer"}

    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.status_code, exc.message, exc=exc),
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, exc.message, errors),
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    violations = violations_from_pydantic(list(exc.errors()), skip_prefix=("body", "query", "path"))
    logger.warning(f"Validation failed on {request.url.path}: {violations}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(status.HTTP_400_BAD_REQUEST, "Validation failed", violations),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = "Route not found"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, message),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unexpected error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", exc=exc),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the error handlers on a FastAPI application."""
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = [
    "ServiceError",
    "InvalidInputError",
    "UnauthenticatedError",
    "ForbiddenError",
    "NotFoundError",
    "RateLimitedError",
    "StorageError",
    "PersistenceError",
    "NotificationError",
    "error_body",
    "violations_from_pydantic",
    "register_exception_handlers",
]
