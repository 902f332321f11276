"""Application-level exception types.

Two families matter to callers of the throttle:

- Configuration errors (``ValidationAppError`` / ``FormatError``) are raised
  synchronously while a limiter is being built and are never recoverable.
- Store errors (``StoreError``) are raised while a decision is running and are
  surfaced to the caller, which applies its own fail-open/fail-closed policy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability."""

    code: str
    message: str
    hint: str
    field: str
    value: str
    timeout_seconds: float
    operation: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for throttle failures.

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
    """Raised when limiter configuration is invalid."""


class FormatError(ValidationAppError):
    """Raised when a rate string does not match ``X/Yt(:fixed)``."""


class StoreError(AppError):
    """Raised when a bucket store cannot load or save a bucket."""
