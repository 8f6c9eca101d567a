"""Post service business logic.

Handles post creation, listing and deletion. Reads go through a TTL cache;
writes invalidate it and announce the change to other services through the
event relay (post.created / post.deleted). Publishing is best-effort: a
broker outage never fails the write.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any

from socialhub.adapters.events.base import POST_CREATED, POST_DELETED
from socialhub.adapters.storage.base import AbstractCollection, Document
from socialhub.core.errors import NotFoundAppError, PermissionAppError, ValidationAppError
from socialhub.services.event_relay import EventRelay
from socialhub.utils.simple_cache import SimpleTTLCache, post_key, posts_page_key

logger = logging.getLogger(__name__)


class PostService:
    """CRUD over posts with cache invalidation and event publishing."""

    def __init__(
        self,
        posts: AbstractCollection,
        relay: EventRelay,
        cache: SimpleTTLCache,
        *,
        max_page_size: int = 100,
    ) -> None:
        self.posts = posts
        self.relay = relay
        self.cache = cache
        self.max_page_size = max_page_size

    async def create_post(self, user_id: str, content: str, media_ids: list[str] | None = None) -> Document:
        content = content.strip()
        if not content:
            raise ValidationAppError(code="empty_content", message="Post content must not be empty")

        post = await self.posts.insert_one(
            {
                "user_id": user_id,
                "content": content,
                "media_ids": list(media_ids or []),
                "created_at": datetime.now(timezone.utc),
            }
        )
        self.cache.delete_prefix("posts:")
        logger.info("post.created", extra={"post_id": post["_id"], "media_count": len(post["media_ids"])})

        await self.relay.publish(
            POST_CREATED,
            {
                "postId": post["_id"],
                "userId": user_id,
                "content": post["content"],
                "createdAt": post["created_at"].isoformat(),
            },
        )
        return post

    async def list_posts(self, page: int = 1, limit: int = 10) -> dict[str, Any]:
        """Return one page of posts, newest first.

        Raises:
            ValidationAppError: If page/limit are out of range.
        """
        if page < 1:
            raise ValidationAppError(code="invalid_page", message="page must be >= 1")
        if limit < 1 or limit > self.max_page_size:
            raise ValidationAppError(
                code="invalid_limit",
                message=f"limit must be between 1 and {self.max_page_size}",
            )

        cache_key = posts_page_key(page, limit)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        total = await self.posts.count()
        posts = await self.posts.find(
            sort_key="created_at",
            descending=True,
            skip=(page - 1) * limit,
            limit=limit,
        )
        result = {
            "posts": posts,
            "current_page": page,
            "total_pages": math.ceil(total / limit),
            "total_posts": total,
        }
        self.cache.set(cache_key, result)
        return result

    async def get_post(self, post_id: str) -> Document:
        cached = self.cache.get(post_key(post_id))
        if cached is not None:
            return cached

        post = await self.posts.find_one(post_id)
        if post is None:
            raise NotFoundAppError(
                code="post_not_found",
                message="Post not found",
                details={"resource_id": post_id},
            )
        self.cache.set(post_key(post_id), post)
        return post

    async def delete_post(self, post_id: str, user_id: str) -> Document:
        """Delete a post owned by ``user_id`` and announce it.

        Raises:
            NotFoundAppError: If the post does not exist.
            PermissionAppError: If the caller is not the author.
        """
        post = await self.posts.find_one(post_id)
        if post is None:
            raise NotFoundAppError(
                code="post_not_found",
                message="Post not found",
                details={"resource_id": post_id},
            )
        if post["user_id"] != user_id:
            raise PermissionAppError(
                code="post_not_owned",
                message="You can only delete your own posts",
                details={"resource_id": post_id},
            )

        await self.posts.delete_one(post_id)
        self.cache.delete(post_key(post_id))
        self.cache.delete_prefix("posts:")
        logger.info("post.deleted", extra={"post_id": post_id})

        await self.relay.publish(
            POST_DELETED,
            {"postId": post_id, "userId": user_id, "mediaIds": post["media_ids"]},
        )
        return post
