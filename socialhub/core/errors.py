"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep shapes consistent across the codebase
    without forcing every error to fill all of them.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: float
    tier: str
    client_ip: str
    event_type: str
    handler: str
    attempts: int
    resource_id: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

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
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when the caller is not authenticated."""


class PermissionAppError(AppError):
    """Raised when the caller may not perform the operation."""


class NotFoundAppError(AppError):
    """Raised when a requested resource does not exist."""


class AdmissionRejected(AppError):
    """Raised when a client exceeded its budget for a rate limit tier."""


class StoreUnavailable(AppError):
    """Raised when the shared counting store cannot be reached in time."""


class BrokerUnavailable(AppError):
    """Raised when the event broker cannot be reached in time."""


class HandlerFailure(AppError):
    """Raised (and logged) when an event handler keeps failing after retries."""


class DatabaseUnavailable(AppError):
    """Raised when the document database cannot be reached in time."""
