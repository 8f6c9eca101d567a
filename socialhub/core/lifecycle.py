"""Application lifecycle management.

Startup registers the running service's event subscriptions and starts the
event relay in the background; the HTTP server does not wait for the broker.
Shutdown stops the relay and closes the shared Redis and MongoDB clients.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from socialhub.adapters.events.base import POST_CREATED, POST_DELETED
from socialhub.adapters.mongo_client import close_mongo_clients
from socialhub.adapters.redis_client import close_redis_clients
from socialhub.core.dependencies import (
    get_event_relay,
    get_media_service,
    get_search_service,
    set_service_name,
)
from socialhub.services.event_relay import EventRelay

logger = logging.getLogger(__name__)


def register_subscriptions(service_name: str, relay: EventRelay) -> None:
    """Subscribe the event handlers owned by ``service_name``."""

    if service_name == "media":
        media = get_media_service()
        relay.subscribe(POST_DELETED, media.handle_post_deleted, name="media.handle_post_deleted")
    elif service_name == "search":
        search = get_search_service()
        relay.subscribe(POST_CREATED, search.handle_post_created, name="search.handle_post_created")
        relay.subscribe(POST_DELETED, search.handle_post_deleted, name="search.handle_post_deleted")


def create_lifespan_manager(service_name: str):
    """Create the lifespan manager for one service."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        set_service_name(service_name)
        relay = get_event_relay()
        register_subscriptions(service_name, relay)
        relay.start()
        logger.info(
            "application_startup",
            extra={"subscriptions": {k: list(v) for k, v in relay.subscriptions.items()}},
        )

        yield

        await relay.stop()
        await close_redis_clients()
        await close_mongo_clients()
        logger.info("application_shutdown")

    return lifespan
