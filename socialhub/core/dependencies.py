"""Process-wide service singletons and their FastAPI dependency getters.

Every getter builds its object on first use and returns the same instance
afterwards, so routes and event subscriptions share state. Tests call
reset_dependencies() to start from a clean slate.
"""

from __future__ import annotations

import logging
import socket

from socialhub.adapters.events.base import AbstractEventBroker
from socialhub.adapters.events.in_memory import InMemoryEventBroker
from socialhub.adapters.events.redis_streams import RedisStreamsEventBroker
from socialhub.adapters.mongo_client import get_mongo_database
from socialhub.adapters.redis_client import get_redis_client
from socialhub.adapters.storage.base import AbstractCollection
from socialhub.adapters.storage.in_memory import InMemoryCollection
from socialhub.adapters.storage.mongo import MongoCollection
from socialhub.core.config import settings
from socialhub.core.rate_limit import reset_rate_limiter_gate
from socialhub.services.event_relay import EventRelay
from socialhub.services.identity_service import IdentityAdminService
from socialhub.services.media_service import MediaService
from socialhub.services.post_service import PostService
from socialhub.services.search_service import SearchService
from socialhub.utils.simple_cache import SimpleTTLCache

logger = logging.getLogger(__name__)

_instances: dict[str, object] = {}


def set_service_name(name: str) -> None:
    """Record which service this process runs; defaults to APP_SERVICE_NAME."""
    _instances["service_name"] = name


def current_service_name() -> str:
    return _instances.get("service_name", settings.app.service_name)  # type: ignore[return-value]


def _collection(name: str) -> AbstractCollection:
    """Return the collection ``name`` from the store picked by MONGO_BACKEND."""
    key = f"collection:{name}"
    if key not in _instances:
        if settings.mongo.backend == "memory":
            _instances[key] = InMemoryCollection(name)
        else:
            _instances[key] = MongoCollection(get_mongo_database()[name])
    return _instances[key]  # type: ignore[return-value]


def build_event_broker() -> AbstractEventBroker:
    """Create the broker configured by BROKER_BACKEND."""

    cfg = settings.broker
    if cfg.backend == "memory":
        return InMemoryEventBroker()

    service_name = current_service_name()

    # Blocking reads need a socket timeout longer than the block interval.
    read_timeout = settings.redis.socket_timeout_seconds + cfg.read_block_ms / 1000
    return RedisStreamsEventBroker(
        get_redis_client(cfg.url, socket_timeout=read_timeout),
        group=f"{service_name}-service",
        consumer_name=f"{socket.gethostname()}-{service_name}",
        stream_prefix=cfg.stream_prefix,
        maxlen=cfg.stream_maxlen,
        block_ms=cfg.read_block_ms,
        batch_size=cfg.read_batch_size,
        timeout_seconds=cfg.publish_timeout_seconds,
    )


def get_event_relay() -> EventRelay:
    if "relay" not in _instances:
        cfg = settings.broker
        _instances["relay"] = EventRelay(
            build_event_broker(),
            service_name=current_service_name(),
            connect_delay_seconds=cfg.connect_delay_seconds,
            connect_max_attempts=cfg.connect_max_attempts,
            connect_initial_backoff_seconds=cfg.connect_initial_backoff_seconds,
            connect_max_backoff_seconds=cfg.connect_max_backoff_seconds,
            handler_max_retries=cfg.handler_max_retries,
            handler_retry_backoff_seconds=cfg.handler_retry_backoff_seconds,
        )
    return _instances["relay"]  # type: ignore[return-value]


def get_post_service() -> PostService:
    if "post" not in _instances:
        _instances["post"] = PostService(
            _collection("posts"),
            get_event_relay(),
            SimpleTTLCache(
                ttl_seconds=settings.app.posts_cache_ttl_seconds,
                max_entries=settings.app.posts_cache_max_entries,
            ),
            max_page_size=settings.app.posts_page_size_max,
        )
    return _instances["post"]  # type: ignore[return-value]


def get_media_service() -> MediaService:
    if "media" not in _instances:
        _instances["media"] = MediaService(_collection("media"))
    return _instances["media"]  # type: ignore[return-value]


def get_search_service() -> SearchService:
    if "search" not in _instances:
        _instances["search"] = SearchService(
            _collection("search_posts"),
            results_limit=settings.app.search_results_limit,
        )
    return _instances["search"]  # type: ignore[return-value]


def get_identity_service() -> IdentityAdminService:
    if "identity" not in _instances:
        _instances["identity"] = IdentityAdminService(
            _collection("users"),
            _collection("refresh_tokens"),
            environment=settings.app.environment,
            database_name=settings.mongo.database,
        )
    return _instances["identity"]  # type: ignore[return-value]


def reset_dependencies() -> None:
    """Forget every singleton, including the rate limiter gate."""

    _instances.clear()
    reset_rate_limiter_gate()
