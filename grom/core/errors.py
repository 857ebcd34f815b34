"""Application-level exception types.

This module defines the errors raised across the toolkit, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional; ``http_status`` overrides the status code derived
    from the error type when present.
    """

    hint: str
    http_status: int
    retry_after: float
    limit: int
    errors: list[Any]
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input validation fails."""


class RateLimitAppError(AppError):
    """Raised when a client exceeds its request budget.

    Attributes:
        headers: Response headers describing the limit (Retry-After, ...).
    """

    def __init__(
        self,
        code: str = "rate_limit_exceeded",
        message: str = "Too many requests, slow down!",
        details: ErrorDetails | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.headers = headers or {}
        super().__init__(code=code, message=message, details=details)


class ApiError(AppError):
    """Generic HTTP error with an explicit status code and error list."""

    def __init__(
        self,
        status_code: int = 500,
        message: str = "Something Went Wrong",
        errors: Any = None,
        *,
        code: str = "api_error",
    ) -> None:
        if errors is None:
            errors = []
        elif not isinstance(errors, list):
            errors = [errors]
        self.status_code = status_code
        self.errors = errors
        details: ErrorDetails = {"http_status": status_code}
        if errors:
            details["errors"] = errors
        super().__init__(code=code, message=message, details=details)
