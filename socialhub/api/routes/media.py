from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from socialhub.core.auth import get_current_user_id
from socialhub.core.dependencies import get_media_service
from socialhub.core.rate_limit import enforce_sensitive_rate_limit
from socialhub.schemas.media import MediaListResponse, MediaOut, MediaResponse, RegisterMediaRequest
from socialhub.services.media_service import MediaService

router = APIRouter(prefix="/api/media", tags=["Media"])


def _to_media_out(document: dict) -> MediaOut:
    return MediaOut(
        id=document["_id"],
        public_id=document["public_id"],
        original_name=document["original_name"],
        mime_type=document["mime_type"],
        url=document["url"],
        user_id=document["user_id"],
        created_at=document["created_at"],
    )


@router.post(
    "",
    response_model=MediaResponse,
    status_code=201,
    dependencies=[Depends(enforce_sensitive_rate_limit)],
)
async def register_media(
    body: RegisterMediaRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[MediaService, Depends(get_media_service)],
) -> MediaResponse:
    """Record metadata of an uploaded file for the authenticated user."""
    media = await service.register_media(
        user_id,
        original_name=body.original_name,
        mime_type=body.mime_type,
        url=body.url,
        public_id=body.public_id,
    )
    return MediaResponse(message="Media registered successfully", media=_to_media_out(media))


@router.get("", response_model=MediaListResponse)
async def list_media(
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[MediaService, Depends(get_media_service)],
) -> MediaListResponse:
    media = await service.list_media(user_id)
    return MediaListResponse(media=[_to_media_out(m) for m in media])
