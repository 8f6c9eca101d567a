from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from socialhub.core.config import settings
from socialhub.core.dependencies import get_event_relay
from socialhub.schemas.common import HealthResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request) -> HealthResponse:
    """Health check endpoint.

    Reports the running service and whether the event relay is connected.
    The service stays up (status "ok") while the broker is unreachable;
    it just stops consuming events.
    """

    return HealthResponse(
        status="ok",
        service=getattr(request.app.state, "service_name", settings.app.service_name),
        timestamp=datetime.now(timezone.utc),
        broker_connected=get_event_relay().connected,
        rate_limit_backend=settings.rate_limit.backend,
    )
