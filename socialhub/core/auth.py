"""Caller identification for service endpoints.

Two mechanisms:
- End users: the API gateway validates the access token and forwards the
  user id in a header (APP_USER_ID_HEADER, default X-User-Id). Services only
  read that header; token issuance lives elsewhere.
- Admin endpoints: static API keys from APP_ADMIN_API_KEYS, sent as X-API-Key.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated

from fastapi import Header, Request

from socialhub.core.config import settings
from socialhub.core.errors import AuthenticationAppError, PermissionAppError

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> parse_api_keys("key1, key2 , key3 ")
        {'key1', 'key2', 'key3'}
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()

    return {key.strip() for key in keys_string.split(",") if key.strip()}


def validate_admin_api_key(provided_key: str | None) -> None:
    """Validate that the provided key matches a configured admin key.

    Pure validation logic without FastAPI dependencies for easy testing.

    Raises:
        PermissionAppError: If the key is missing/invalid or no keys are configured.
    """
    if not settings.app.admin_api_key_required:
        return

    valid_keys = parse_api_keys(settings.app.admin_api_keys)

    if not valid_keys:
        logger.error(
            "admin_auth.failed",
            extra={"reason": "admin_api_keys_not_configured"},
        )
        raise PermissionAppError(
            code="admin_api_keys_not_configured",
            message="Admin authentication is enabled but no admin keys are configured",
            details={"hint": "Set APP_ADMIN_API_KEYS or disable with APP_ADMIN_API_KEY_REQUIRED=false"},
        )

    if not provided_key or provided_key not in valid_keys:
        logger.warning(
            "admin_auth.failed",
            extra={
                "reason": "invalid_api_key" if provided_key else "missing_api_key",
                "api_key_hash": hashlib.sha256(provided_key.encode()).hexdigest()[:16]
                if provided_key
                else None,
            },
        )
        raise PermissionAppError(
            code="invalid_admin_api_key",
            message="Invalid or missing admin API key",
        )


async def verify_admin_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency guarding admin endpoints.

    Usage:
        @router.get("/admin/stats", dependencies=[Depends(verify_admin_api_key)])
    """
    validate_admin_api_key(x_api_key)


async def get_current_user_id(request: Request) -> str:
    """FastAPI dependency returning the authenticated user id.

    Raises:
        AuthenticationAppError: 401 when the gateway did not forward a user id.
    """
    user_id = request.headers.get(settings.app.user_id_header, "").strip()
    if not user_id:
        logger.warning(
            "auth.missing_user_id",
            extra={"request_path": request.url.path},
        )
        raise AuthenticationAppError(
            code="authentication_required",
            message="Authentication required! Please login to continue",
        )
    return user_id
