"""Process-wide asyncio MongoDB client.

The driver connects lazily, so services start even while MongoDB is still
coming up; individual operations fail with DatabaseUnavailable until it is
reachable.
"""

from __future__ import annotations

import logging

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from socialhub.core.config import settings

logger = logging.getLogger(__name__)

_clients: dict[str, AsyncMongoClient] = {}


def get_mongo_client(url: str | None = None) -> AsyncMongoClient:
    """Return the shared client for ``url`` (default: MONGO_URL).

    The client is timezone-aware so stored datetimes come back in UTC.
    """

    resolved = url or settings.mongo.url
    client = _clients.get(resolved)
    if client is None:
        client = AsyncMongoClient(
            resolved,
            tz_aware=True,
            serverSelectionTimeoutMS=settings.mongo.server_selection_timeout_ms,
            connectTimeoutMS=settings.mongo.connect_timeout_ms,
        )
        _clients[resolved] = client
        logger.debug("mongo.client_created", extra={"database": settings.mongo.database})
    return client


def get_mongo_database(name: str | None = None) -> AsyncDatabase:
    return get_mongo_client()[name or settings.mongo.database]


async def close_mongo_clients() -> None:
    """Close every cached client; used on graceful shutdown."""

    while _clients:
        _, client = _clients.popitem()
        try:
            await client.close()
        except Exception as exc:
            logger.warning(
                "mongo.close_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
    logger.debug("mongo.clients_closed")
