from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from socialhub.core.auth import get_current_user_id
from socialhub.core.dependencies import get_search_service
from socialhub.schemas.search import SearchHit, SearchResponse
from socialhub.services.search_service import SearchService

router = APIRouter(prefix="/api/search", tags=["Search"])


@router.get("/posts", response_model=SearchResponse)
async def search_posts(
    query: Annotated[str, Query(min_length=1, max_length=200)],
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[SearchService, Depends(get_search_service)],
) -> SearchResponse:
    """Search indexed posts by content (case-insensitive substring)."""
    hits = await service.search(query)
    return SearchResponse(
        results=[
            SearchHit(
                post_id=h["post_id"],
                user_id=h["user_id"],
                content=h["content"],
                created_at=h["created_at"],
            )
            for h in hits
        ]
    )
