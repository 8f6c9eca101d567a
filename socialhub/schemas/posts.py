"""Pydantic schemas for post endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import Field

from socialhub.schemas.common import ApiModel


class CreatePostRequest(ApiModel):
    """Body of POST /api/posts."""

    content: str = Field(
        ...,
        min_length=1,
        max_length=5000,
        description="Post text.",
    )
    media_ids: List[str] = Field(
        default_factory=list,
        description="Ids of media previously registered with the media service.",
    )


class PostOut(ApiModel):
    """Public representation of a post."""

    id: str = Field(..., description="Post id.")
    user_id: str = Field(..., description="Author id.")
    content: str = Field(..., description="Post text.")
    media_ids: List[str] = Field(default_factory=list, description="Attached media ids.")
    created_at: datetime = Field(..., description="Creation time (UTC).")


class PostResponse(ApiModel):
    success: bool = True
    message: str | None = None
    post: PostOut


class PostListResponse(ApiModel):
    """One page of posts, newest first."""

    success: bool = True
    posts: List[PostOut] = Field(default_factory=list)
    current_page: int = Field(..., description="1-based page number.")
    total_pages: int = Field(..., description="Number of pages at this page size.")
    total_posts: int = Field(..., description="Total number of posts.")
