"""Media service business logic.

Keeps media metadata (the files themselves live in the storage backend) and
reacts to post deletions by removing the media attached to the post.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from socialhub.adapters.events.base import DomainEvent
from socialhub.adapters.storage.base import AbstractCollection, Document

logger = logging.getLogger(__name__)


class MediaService:
    def __init__(self, media: AbstractCollection) -> None:
        self.media = media

    async def register_media(
        self,
        user_id: str,
        *,
        original_name: str,
        mime_type: str,
        url: str,
        public_id: str | None = None,
    ) -> Document:
        media_id = public_id or uuid.uuid4().hex
        document = await self.media.upsert_one(
            media_id,
            {
                "public_id": media_id,
                "original_name": original_name,
                "mime_type": mime_type,
                "url": url,
                "user_id": user_id,
                "created_at": datetime.now(timezone.utc),
            },
        )
        logger.info("media.registered", extra={"media_id": media_id, "mime_type": mime_type})
        return document

    async def list_media(self, user_id: str) -> list[Document]:
        return await self.media.find(
            {"user_id": user_id},
            sort_key="created_at",
            descending=True,
        )

    async def delete_media(self, media_ids: list[str]) -> int:
        """Delete media by id; ids that are already gone are skipped."""
        deleted = 0
        for media_id in media_ids:
            if await self.media.delete_one(media_id):
                deleted += 1
        return deleted

    async def handle_post_deleted(self, event: DomainEvent) -> None:
        """Remove the media of a deleted post.

        Idempotent: a redelivered event finds nothing left to delete.
        """
        payload = event.payload or {}
        media_ids = [str(m) for m in payload.get("mediaIds") or []]
        deleted = await self.delete_media(media_ids)
        logger.info(
            "media.post_deleted_processed",
            extra={
                "post_id": payload.get("postId"),
                "event_id": event.event_id,
                "requested": len(media_ids),
                "deleted": deleted,
            },
        )
