from __future__ import annotations

from socialhub.api.routes.admin import router as admin_router
from socialhub.api.routes.health import router as health_router
from socialhub.api.routes.media import router as media_router
from socialhub.api.routes.posts import router as posts_router
from socialhub.api.routes.search import router as search_router

__all__ = ["admin_router", "health_router", "media_router", "posts_router", "search_router"]
