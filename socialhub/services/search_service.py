"""Search service business logic.

Maintains a search document per post from post.created / post.deleted
events and answers case-insensitive substring queries over post content.
Both event handlers are idempotent so redelivered events are harmless.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from socialhub.adapters.events.base import DomainEvent
from socialhub.adapters.storage.base import AbstractCollection, Document
from socialhub.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


def _parse_timestamp(value: str | None) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Missing or unparseable values fall back to now; values without an offset
    are taken as UTC.
    """
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        logger.warning("search.invalid_created_at", extra={"value": str(value)})
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class SearchService:
    def __init__(self, search_posts: AbstractCollection, *, results_limit: int = 10) -> None:
        self.search_posts = search_posts
        self.results_limit = results_limit

    async def search(self, query: str) -> list[Document]:
        """Return posts whose content contains ``query``, newest first.

        Raises:
            ValidationAppError: If the query is blank.
        """
        needle = query.strip().lower()
        if not needle:
            raise ValidationAppError(code="empty_query", message="Search query must not be empty")

        return await self.search_posts.find(
            {"content": {"$regex": re.escape(needle), "$options": "i"}},
            sort_key="created_at",
            descending=True,
            limit=self.results_limit,
        )

    async def handle_post_created(self, event: DomainEvent) -> None:
        payload = event.payload or {}
        post_id = payload.get("postId")
        if not post_id:
            logger.warning("search.post_created_ignored", extra={"event_id": event.event_id, "reason": "missing_post_id"})
            return

        await self.search_posts.upsert_one(
            str(post_id),
            {
                "post_id": str(post_id),
                "user_id": str(payload.get("userId", "")),
                "content": str(payload.get("content", "")),
                "created_at": _parse_timestamp(payload.get("createdAt")),
            },
        )
        logger.info("search.post_indexed", extra={"post_id": post_id, "event_id": event.event_id})

    async def handle_post_deleted(self, event: DomainEvent) -> None:
        payload = event.payload or {}
        post_id = payload.get("postId")
        if not post_id:
            logger.warning("search.post_deleted_ignored", extra={"event_id": event.event_id, "reason": "missing_post_id"})
            return

        removed = await self.search_posts.delete_one(str(post_id))
        logger.info(
            "search.post_unindexed",
            extra={"post_id": post_id, "event_id": event.event_id, "removed": removed},
        )
