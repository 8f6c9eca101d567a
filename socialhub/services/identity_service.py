"""Identity admin operations: user inspection and development resets."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from socialhub.adapters.storage.base import AbstractCollection, Document
from socialhub.core.errors import PermissionAppError

logger = logging.getLogger(__name__)


class IdentityAdminService:
    def __init__(
        self,
        users: AbstractCollection,
        refresh_tokens: AbstractCollection,
        *,
        environment: str = "development",
        database_name: str = "social_media",
    ) -> None:
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.environment = environment
        self.database_name = database_name

    async def list_users(self) -> dict[str, Any]:
        """All users newest first, with aggregate stats."""
        users = await self.users.find(sort_key="created_at", descending=True)
        return {
            "users": users,
            "stats": {
                "total_users": len(users),
                "total_active_tokens": await self.refresh_tokens.count(),
                "latest_registration": users[0]["created_at"] if users else None,
            },
        }

    async def stats(self, now: datetime | None = None) -> dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(hours=24)
        return {
            "total_users": await self.users.count(),
            "total_active_tokens": await self.refresh_tokens.count(),
            "new_users_today": await self.users.count({"created_at": {"$gte": since}}),
            "database_name": self.database_name,
            "timestamp": now,
        }

    async def clear_all(self) -> dict[str, int]:
        """Delete every user and refresh token.

        Raises:
            PermissionAppError: In production.
        """
        if self.environment == "production":
            raise PermissionAppError(
                code="forbidden_in_production",
                message="This operation is not allowed in production",
            )

        logger.warning("admin.clearing_users")
        deleted_users = await self.users.delete_many({})
        deleted_tokens = await self.refresh_tokens.delete_many({})
        return {"deleted_users": deleted_users, "deleted_tokens": deleted_tokens}

    async def add_user(self, username: str, email: str, *, created_at: datetime | None = None) -> Document:
        """Insert a user record; returns it with its assigned ``_id``."""
        created = created_at or datetime.now(timezone.utc)
        return await self.users.insert_one(
            {"username": username, "email": email, "created_at": created, "updated_at": created}
        )
