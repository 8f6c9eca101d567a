"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- AdmissionRejected → 429 with the fixed body {"success": false, "message": "Too many requests"}
- Other AppError subclasses → mapped status with success/message/code/request_id
- Unexpected Exception → generic 500 (safety net)
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from socialhub.core.config import settings
from socialhub.core.errors import (
    AdmissionRejected,
    AppError,
    AuthenticationAppError,
    BrokerUnavailable,
    DatabaseUnavailable,
    HandlerFailure,
    NotFoundAppError,
    PermissionAppError,
    StoreUnavailable,
)
from socialhub.core.logging import get_request_id

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[AppError], int]] = [
    (AdmissionRejected, 429),
    (AuthenticationAppError, 401),
    (PermissionAppError, 403),
    (NotFoundAppError, 404),
    (StoreUnavailable, 503),
    (BrokerUnavailable, 503),
    (DatabaseUnavailable, 503),
    (HandlerFailure, 500),
]


def status_code_for(exc: AppError) -> int:
    """Map a domain error to its HTTP status (default 400, client fault)."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


def _rate_limit_headers(exc: AdmissionRejected) -> dict[str, str]:
    if not settings.rate_limit.include_headers or not exc.details:
        return {}
    context = exc.details.get("context", {})
    return {
        "Retry-After": str(int(exc.details.get("retry_after", 0))),
        "X-RateLimit-Limit": str(context.get("limit", 0)),
        "X-RateLimit-Remaining": str(context.get("remaining", 0)),
        "X-RateLimit-Reset": str(context.get("reset_at", 0)),
    }


async def admission_rejected_handler(request: Request, exc: AdmissionRejected) -> JSONResponse:
    """Surface a rate-limit rejection as HTTP 429.

    The gate already logged the rejection with client and tier.
    """
    return JSONResponse(
        status_code=429,
        content={"success": False, "message": "Too many requests"},
        headers=_rate_limit_headers(exc) or None,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    All responses include:
    - success: always false
    - message: Human-readable message
    - code: Machine-readable error code
    - request_id: For distributed tracing
    - details: Optional structured context

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = status_code_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    content: dict = {
        "success": False,
        "message": exc.message,
        "code": exc.code,
        "request_id": get_request_id(),
    }
    if exc.details:
        content["details"] = exc.details

    return JSONResponse(status_code=status_code, content=content)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message.
    No stack traces or exception text reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Internal server error",
            "code": "internal_server_error",
            "request_id": get_request_id(),
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Must be called during app initialization. The most specific handler
    wins, so registration order does not matter.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AdmissionRejected)(admission_rejected_handler)
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
