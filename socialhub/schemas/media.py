"""Pydantic schemas for media endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import Field

from socialhub.schemas.common import ApiModel


class RegisterMediaRequest(ApiModel):
    """Metadata of an upload already stored by the media backend."""

    original_name: str = Field(..., min_length=1, max_length=255, description="Client filename.")
    mime_type: str = Field(..., min_length=1, max_length=127, description="MIME type, e.g. image/png.")
    url: str = Field(..., min_length=1, description="Public URL returned by the storage backend.")
    public_id: str | None = Field(
        default=None,
        description="Storage backend id; used as the media id when given.",
    )


class MediaOut(ApiModel):
    id: str
    public_id: str
    original_name: str
    mime_type: str
    url: str
    user_id: str
    created_at: datetime


class MediaResponse(ApiModel):
    success: bool = True
    message: str | None = None
    media: MediaOut


class MediaListResponse(ApiModel):
    success: bool = True
    media: List[MediaOut] = Field(default_factory=list)
