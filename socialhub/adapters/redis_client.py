"""Process-wide asyncio Redis clients.

Creating a client does not open a connection; the pool connects on first
use. That keeps service startup independent of Redis availability: the
counting store and the broker decide how to degrade when calls fail.
"""

from __future__ import annotations

import logging

from redis.asyncio import Redis

from socialhub.core.config import settings

logger = logging.getLogger(__name__)

_clients: dict[tuple[str, float], Redis] = {}


def get_redis_client(url: str | None = None, *, socket_timeout: float | None = None) -> Redis:
    """Return the shared client for ``url`` (default: REDIS_URL).

    Args:
        url: Redis URL.
        socket_timeout: Read timeout override; blocking stream reads need one
            longer than their block interval.

    Returns:
        Redis: asyncio Redis client with bounded socket timeouts.
    """

    resolved = url or settings.redis.url
    timeout = socket_timeout or settings.redis.socket_timeout_seconds
    cache_key = (resolved, timeout)
    client = _clients.get(cache_key)
    if client is None:
        client = Redis.from_url(
            resolved,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=settings.redis.socket_connect_timeout_seconds,
        )
        _clients[cache_key] = client
        logger.debug("redis.client_created", extra={"socket_timeout_s": timeout})
    return client


async def close_redis_clients() -> None:
    """Close every cached client; used on graceful shutdown."""

    while _clients:
        _, client = _clients.popitem()
        try:
            await client.aclose()
        except Exception as exc:
            logger.warning(
                "redis.close_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
    logger.debug("redis.clients_closed")
