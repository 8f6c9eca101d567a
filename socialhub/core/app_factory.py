"""Application factory shared by the four services.

Every service runs the same stack (logging, request ids, the global rate
limit tier, error handlers, health, event relay lifecycle) and mounts only
its own routers on top.
"""

from __future__ import annotations

from fastapi import Depends, FastAPI

from socialhub.api.routes import admin_router, health_router, media_router, posts_router, search_router
from socialhub.core.config import ServiceName, settings
from socialhub.core.exception_handlers import setup_exception_handlers
from socialhub.core.lifecycle import create_lifespan_manager
from socialhub.core.logging import configure_logging
from socialhub.core.middleware import request_id_middleware
from socialhub.core.openapi import apply_openapi_customizations
from socialhub.core.rate_limit import enforce_global_rate_limit

SERVICE_ROUTERS = {
    "identity": [admin_router],
    "post": [posts_router],
    "media": [media_router],
    "search": [search_router],
}


def create_app(service_name: ServiceName | None = None) -> FastAPI:
    """Create and configure the FastAPI application for one service.

    Args:
        service_name: Service to build; defaults to ``APP_SERVICE_NAME``.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and lifespan.
    """
    name = service_name or settings.app.service_name
    if name not in SERVICE_ROUTERS:
        raise ValueError(f"Unknown service: {name}")

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log, service_name=name)

    app = FastAPI(
        title=f"Social Media {name.capitalize()} Service",
        description=(
            "Part of the social media microservices. Every request passes the "
            "per-IP global rate limit; write routes also pass the sensitive tier."
        ),
        version="0.1.0",
        lifespan=create_lifespan_manager(name),
        dependencies=[Depends(enforce_global_rate_limit)],
    )

    app.state.service_name = name
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router)
    for router in SERVICE_ROUTERS[name]:
        app.include_router(router)

    apply_openapi_customizations(app)

    return app
