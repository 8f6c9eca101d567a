"""Redis Streams event broker.

Layout:
- one stream per event type: ``{stream_prefix}:{event_type}``
- one consumer group per service, so every service sees every event once
- entries are acknowledged only after the callback returns; on start each
  reader drains its own pending entries first, which gives at-least-once
  delivery across crashes
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError, ResponseError

from socialhub.adapters.events.base import AbstractEventBroker, DomainEvent, EventCallback
from socialhub.core.errors import BrokerUnavailable

logger = logging.getLogger(__name__)

_PENDING = "0"
_NEW = ">"


class RedisStreamsEventBroker(AbstractEventBroker):
    """Broker built on XADD / XREADGROUP / XACK."""

    backend_name = "redis"

    def __init__(
        self,
        redis: Redis,
        *,
        group: str,
        consumer_name: str,
        stream_prefix: str = "social_events",
        maxlen: int = 10_000,
        block_ms: int = 1000,
        batch_size: int = 10,
        timeout_seconds: float = 2.0,
        error_backoff_seconds: float = 1.0,
    ) -> None:
        self._redis = redis
        self._group = group
        self._consumer_name = consumer_name
        self._stream_prefix = stream_prefix
        self._maxlen = maxlen
        self._block_ms = block_ms
        self._batch_size = batch_size
        self._timeout = timeout_seconds
        self._error_backoff = error_backoff_seconds
        self._connected = False
        self._readers: list[asyncio.Task] = []

    @property
    def connected(self) -> bool:
        return self._connected

    def stream_name(self, event_type: str) -> str:
        return f"{self._stream_prefix}:{event_type}"

    def _unavailable(self, code: str, exc: BaseException) -> BrokerUnavailable:
        return BrokerUnavailable(
            code=code,
            message="Event broker is unreachable",
            details={"context": {"error_type": type(exc).__name__}},
        )

    async def connect(self) -> None:
        try:
            await asyncio.wait_for(self._redis.ping(), timeout=self._timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise self._unavailable("broker_connect_failed", exc) from exc
        self._connected = True

    async def publish(self, event: DomainEvent) -> None:
        if not self._connected:
            raise BrokerUnavailable(
                code="broker_not_connected",
                message="Event broker is not connected",
            )
        try:
            await asyncio.wait_for(
                self._redis.xadd(
                    self.stream_name(event.event_type),
                    {"event": event.to_message()},
                    maxlen=self._maxlen,
                    approximate=True,
                ),
                timeout=self._timeout,
            )
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise self._unavailable("broker_publish_failed", exc) from exc

    async def _ensure_group(self, stream: str) -> None:
        try:
            # "$" starts the group at the end of the stream: no replay of history.
            await asyncio.wait_for(
                self._redis.xgroup_create(stream, self._group, id="$", mkstream=True),
                timeout=self._timeout,
            )
        except ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise self._unavailable("broker_group_create_failed", exc) from exc
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise self._unavailable("broker_group_create_failed", exc) from exc

    async def consume(self, event_type: str, callback: EventCallback) -> None:
        if not self._connected:
            raise BrokerUnavailable(
                code="broker_not_connected",
                message="Event broker is not connected",
            )
        stream = self.stream_name(event_type)
        await self._ensure_group(stream)
        task = asyncio.create_task(
            self._read_loop(stream, callback),
            name=f"event-consumer:{stream}",
        )
        task.add_done_callback(self._on_reader_done)
        self._readers.append(task)
        logger.info(
            "event.consumer_started",
            extra={"stream": stream, "group": self._group, "consumer": self._consumer_name},
        )

    async def _read_loop(self, stream: str, callback: EventCallback) -> None:
        last_id = _PENDING
        while True:
            try:
                last_id = await self._read_batch(stream, last_id, callback)
            except (RedisError, OSError) as exc:
                logger.warning(
                    "event.read_failed",
                    extra={
                        "stream": stream,
                        "error_type": type(exc).__name__,
                        "error_msg": str(exc),
                        "retry_in_s": self._error_backoff,
                    },
                )
                await asyncio.sleep(self._error_backoff)
            except Exception as exc:
                logger.exception(
                    "event.read_loop_error",
                    extra={
                        "stream": stream,
                        "error_type": type(exc).__name__,
                        "retry_in_s": self._error_backoff,
                    },
                )
                await asyncio.sleep(self._error_backoff)

    async def _read_batch(self, stream: str, last_id: str, callback: EventCallback) -> str:
        """Read and deliver one batch; returns the id to read from next."""
        response = await self._redis.xreadgroup(
            self._group,
            self._consumer_name,
            {stream: last_id},
            count=self._batch_size,
            block=self._block_ms,
        )

        entries: list[tuple[str, dict[str, Any]]] = response[0][1] if response else []
        if last_id != _NEW and not entries:
            # Own pending backlog drained; switch to new entries.
            return _NEW

        for message_id, fields in entries:
            await self._deliver(stream, message_id, fields, callback)

        if last_id != _NEW:
            return entries[-1][0]
        return last_id

    def _on_reader_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "event.consumer_stopped",
                extra={"task": task.get_name(), "error_type": type(exc).__name__, "error_msg": str(exc)},
            )

    async def _deliver(
        self,
        stream: str,
        message_id: str,
        fields: dict[str, Any],
        callback: EventCallback,
    ) -> None:
        try:
            event = DomainEvent.from_message(fields.get("event", ""))
        except ValueError as exc:
            # Unparseable entries can never succeed; ack so they do not block the group.
            logger.error(
                "event.malformed",
                extra={"stream": stream, "message_id": message_id, "error_msg": str(exc)},
            )
            await self._ack(stream, message_id)
            return

        try:
            await callback(event)
        except Exception:
            logger.exception(
                "event.callback_failed",
                extra={"stream": stream, "message_id": message_id, "event_id": event.event_id},
            )
            return

        await self._ack(stream, message_id)

    async def _ack(self, stream: str, message_id: str) -> None:
        try:
            await self._redis.xack(stream, self._group, message_id)
        except (RedisError, OSError) as exc:
            logger.warning(
                "event.ack_failed",
                extra={"stream": stream, "message_id": message_id, "error_type": type(exc).__name__},
            )

    async def close(self) -> None:
        for task in self._readers:
            task.cancel()
        await asyncio.gather(*self._readers, return_exceptions=True)
        self._readers.clear()
        self._connected = False
