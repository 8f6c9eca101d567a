from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from socialhub.core.auth import get_current_user_id
from socialhub.core.dependencies import get_post_service
from socialhub.core.rate_limit import enforce_sensitive_rate_limit
from socialhub.schemas.common import MessageResponse
from socialhub.schemas.posts import CreatePostRequest, PostListResponse, PostOut, PostResponse
from socialhub.services.post_service import PostService

router = APIRouter(prefix="/api/posts", tags=["Posts"])


def _to_post_out(document: dict) -> PostOut:
    return PostOut(
        id=document["_id"],
        user_id=document["user_id"],
        content=document["content"],
        media_ids=document["media_ids"],
        created_at=document["created_at"],
    )


@router.post(
    "",
    response_model=PostResponse,
    status_code=201,
    dependencies=[Depends(enforce_sensitive_rate_limit)],
)
async def create_post(
    body: CreatePostRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[PostService, Depends(get_post_service)],
) -> PostResponse:
    """Create a post for the authenticated user and announce post.created."""
    post = await service.create_post(user_id, body.content, body.media_ids)
    return PostResponse(message="Post created successfully", post=_to_post_out(post))


@router.get("", response_model=PostListResponse)
async def list_posts(
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[PostService, Depends(get_post_service)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1)] = 10,
) -> PostListResponse:
    result = await service.list_posts(page, limit)
    return PostListResponse(
        posts=[_to_post_out(p) for p in result["posts"]],
        current_page=result["current_page"],
        total_pages=result["total_pages"],
        total_posts=result["total_posts"],
    )


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[PostService, Depends(get_post_service)],
) -> PostResponse:
    post = await service.get_post(post_id)
    return PostResponse(post=_to_post_out(post))


@router.delete(
    "/{post_id}",
    response_model=MessageResponse,
    dependencies=[Depends(enforce_sensitive_rate_limit)],
)
async def delete_post(
    post_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[PostService, Depends(get_post_service)],
) -> MessageResponse:
    """Delete one of the caller's posts and announce post.deleted.

    The response does not wait for other services to react.
    """
    await service.delete_post(post_id, user_id)
    return MessageResponse(message="Post deleted successfully")
