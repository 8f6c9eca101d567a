"""In-process event broker.

Fans events out to consumers registered in the same process, one FIFO
queue and pump task per consumer. Used for development and tests; it gives
no cross-process delivery.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from socialhub.adapters.events.base import AbstractEventBroker, DomainEvent, EventCallback
from socialhub.core.errors import BrokerUnavailable

logger = logging.getLogger(__name__)


@dataclass
class _Consumer:
    event_type: str
    queue: asyncio.Queue
    task: asyncio.Task


class InMemoryEventBroker(AbstractEventBroker):
    """Broker keeping per-consumer asyncio queues."""

    backend_name = "memory"

    def __init__(self) -> None:
        self._connected = False
        self._consumers: dict[str, list[_Consumer]] = {}

    @property
    def connected(self) -> bool:
        return self._connected

    def _require_connection(self) -> None:
        if not self._connected:
            raise BrokerUnavailable(
                code="broker_not_connected",
                message="Event broker is not connected",
            )

    async def connect(self) -> None:
        self._connected = True

    async def publish(self, event: DomainEvent) -> None:
        self._require_connection()
        for consumer in self._consumers.get(event.event_type, []):
            consumer.queue.put_nowait(event)

    async def consume(self, event_type: str, callback: EventCallback) -> None:
        self._require_connection()
        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(
            self._pump(event_type, queue, callback),
            name=f"event-consumer:{event_type}",
        )
        self._consumers.setdefault(event_type, []).append(
            _Consumer(event_type=event_type, queue=queue, task=task)
        )

    async def _pump(self, event_type: str, queue: asyncio.Queue, callback: EventCallback) -> None:
        while True:
            event = await queue.get()
            try:
                await callback(event)
            except Exception:
                logger.exception(
                    "event.callback_failed",
                    extra={"event_type": event_type, "event_id": event.event_id},
                )
            finally:
                queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued event has been handed to its consumer."""
        for consumers in list(self._consumers.values()):
            for consumer in consumers:
                await consumer.queue.join()

    async def close(self) -> None:
        tasks = [c.task for consumers in self._consumers.values() for c in consumers]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._consumers.clear()
        self._connected = False
