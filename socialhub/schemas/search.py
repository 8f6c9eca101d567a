"""Pydantic schemas for search endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import Field

from socialhub.schemas.common import ApiModel


class SearchHit(ApiModel):
    post_id: str = Field(..., description="Id of the matching post.")
    user_id: str = Field(..., description="Author id.")
    content: str = Field(..., description="Indexed post text.")
    created_at: datetime = Field(..., description="Post creation time (UTC).")


class SearchResponse(ApiModel):
    success: bool = True
    results: List[SearchHit] = Field(default_factory=list)
