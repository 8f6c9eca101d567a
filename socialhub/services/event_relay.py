"""Event relay between services.

Responsibilities:
- Explicit subscription registry: event type -> ordered {handler name: handler}
- Best-effort publishing that never fails the originating request
- Supervised background connection to the broker with exponential backoff,
  so the HTTP server serves before the broker is reachable
- Per-handler isolation with retries; a failing handler never affects the
  other subscribers of the same event
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Coroutine, Mapping

from socialhub.adapters.events.base import AbstractEventBroker, DomainEvent
from socialhub.core.errors import BrokerUnavailable, HandlerFailure

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], Awaitable[None]]
Sleep = Callable[[float], Awaitable[Any]]


class EventRelay:
    """Publish/subscribe bridge on top of an :class:`AbstractEventBroker`."""

    def __init__(
        self,
        broker: AbstractEventBroker,
        *,
        service_name: str,
        connect_delay_seconds: float = 0.0,
        connect_max_attempts: int = 0,
        connect_initial_backoff_seconds: float = 1.0,
        connect_max_backoff_seconds: float = 30.0,
        handler_max_retries: int = 3,
        handler_retry_backoff_seconds: float = 0.5,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the relay.

        Args:
            broker: Broker adapter; the relay owns its lifecycle.
            service_name: Name of the running service, used in logs.
            connect_delay_seconds: Wait before the first connection attempt.
            connect_max_attempts: Attempts before degraded mode (0 = forever).
            connect_initial_backoff_seconds: First reconnect delay (doubles).
            connect_max_backoff_seconds: Cap for the reconnect delay.
            handler_max_retries: Retries for a failing handler.
            handler_retry_backoff_seconds: First retry delay (doubles).
            sleep: Awaitable sleep, injectable for tests.
        """
        self._broker = broker
        self._service_name = service_name
        self._connect_delay = connect_delay_seconds
        self._connect_max_attempts = connect_max_attempts
        self._initial_backoff = connect_initial_backoff_seconds
        self._max_backoff = connect_max_backoff_seconds
        self._handler_max_retries = handler_max_retries
        self._handler_backoff = handler_retry_backoff_seconds
        self._sleep = sleep

        self._subscriptions: dict[str, dict[str, EventHandler]] = {}
        self._consuming: set[str] = set()
        self._connect_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self._connected_event = asyncio.Event()
        self._degraded = False

    @property
    def broker(self) -> AbstractEventBroker:
        return self._broker

    @property
    def connected(self) -> bool:
        return self._connected_event.is_set() and self._broker.connected

    @property
    def degraded(self) -> bool:
        """True once a finite connection budget was exhausted."""
        return self._degraded

    @property
    def subscriptions(self) -> Mapping[str, tuple[str, ...]]:
        """Snapshot of the registry: event type -> handler names in order."""
        return {event_type: tuple(handlers) for event_type, handlers in self._subscriptions.items()}

    def subscribe(self, event_type: str, handler: EventHandler, *, name: str | None = None) -> str:
        """Register ``handler`` for ``event_type``.

        Re-registering an existing name replaces the handler in place. When the
        relay is already connected, a consumer for a new type starts right
        away; events published before that are not replayed.

        Returns:
            The handler name used in the registry.
        """
        if not event_type:
            raise ValueError("event_type must be a non-empty string")

        handler_name = name or getattr(handler, "__qualname__", repr(handler))
        self._subscriptions.setdefault(event_type, {})[handler_name] = handler
        logger.info(
            "event.subscribed",
            extra={"event_type": event_type, "handler": handler_name},
        )

        if self.connected and event_type not in self._consuming:
            self._spawn(self._start_consumer(event_type), name=f"event-subscribe:{event_type}")

        return handler_name

    async def publish(self, event_type: str, payload: Any) -> DomainEvent | None:
        """Hand an event to the broker; never raises for broker problems.

        Returns:
            The published event, or None when it could not be handed off.

        Raises:
            ValueError: If the type is empty or the payload is not JSON-serialisable.
        """
        event = DomainEvent.create(event_type, payload)
        log_extra = {"event_type": event.event_type, "event_id": event.event_id, "service": self._service_name}

        if not self._broker.connected:
            logger.warning(
                "event.publish_skipped",
                extra={**log_extra, "reason": "broker_not_connected"},
            )
            return None

        try:
            await self._broker.publish(event)
        except BrokerUnavailable as exc:
            logger.error(
                "event.publish_failed",
                extra={**log_extra, "error_code": exc.code, "error_msg": exc.message},
            )
            return None
        except Exception as exc:
            logger.error(
                "event.publish_failed",
                extra={**log_extra, "error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            return None

        logger.info("event.published", extra=log_extra)
        return event

    def start(self) -> asyncio.Task:
        """Start the background connection task and return immediately."""
        if self._connect_task is not None and not self._connect_task.done():
            return self._connect_task

        self._degraded = False
        self._connect_task = asyncio.create_task(self._connect_loop(), name="event-relay-connect")
        self._connect_task.add_done_callback(self._on_background_done)
        return self._connect_task

    async def stop(self) -> None:
        """Cancel background work and close the broker."""
        tasks = list(self._background)
        if self._connect_task is not None:
            tasks.append(self._connect_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._background.clear()
        self._connect_task = None

        await self._broker.close()
        self._consuming.clear()
        self._connected_event = asyncio.Event()
        logger.info("event.relay_stopped", extra={"broker": self._broker.backend_name})

    async def wait_until_connected(self, timeout: float | None = None) -> bool:
        """Wait for the broker connection; False when ``timeout`` elapses first."""
        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def dispatch(self, event: DomainEvent) -> list[HandlerFailure]:
        """Run every handler subscribed to the event's type, one after another.

        Returns:
            One HandlerFailure per handler that failed after all retries.
        """
        failures: list[HandlerFailure] = []
        handlers = list(self._subscriptions.get(event.event_type, {}).items())
        for handler_name, handler in handlers:
            failure = await self._run_handler(handler_name, handler, event)
            if failure is not None:
                failures.append(failure)
        return failures

    def _backoff(self, attempt: int) -> float:
        return min(self._initial_backoff * 2 ** (attempt - 1), self._max_backoff)

    async def _connect_loop(self) -> None:
        if self._connect_delay:
            await self._sleep(self._connect_delay)

        attempt = 0
        while True:
            attempt += 1
            try:
                await self._broker.connect()
                break
            except Exception as exc:
                error_extra = {
                    "attempt": attempt,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                }
                if self._connect_max_attempts and attempt >= self._connect_max_attempts:
                    self._degraded = True
                    logger.error(
                        "event.broker_unavailable",
                        extra={**error_extra, "mode": "degraded"},
                    )
                    return
                delay = self._backoff(attempt)
                logger.warning(
                    "event.broker_connect_failed",
                    extra={**error_extra, "retry_in_s": delay},
                )
                await self._sleep(delay)

        logger.info(
            "event.broker_connected",
            extra={"attempts": attempt, "broker": self._broker.backend_name},
        )
        for event_type in list(self._subscriptions):
            await self._start_consumer(event_type)
        self._connected_event.set()

        # Pick up subscriptions registered while consumers were starting.
        for event_type in list(self._subscriptions):
            await self._start_consumer(event_type)

    async def _start_consumer(self, event_type: str) -> None:
        if event_type in self._consuming:
            return
        self._consuming.add(event_type)
        try:
            await self._broker.consume(event_type, self._deliver)
        except Exception as exc:
            self._consuming.discard(event_type)
            logger.error(
                "event.consumer_start_failed",
                extra={
                    "event_type": event_type,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            return
        logger.info("event.consuming", extra={"event_type": event_type})

    async def _deliver(self, event: DomainEvent) -> None:
        await self.dispatch(event)

    async def _run_handler(
        self, handler_name: str, handler: EventHandler, event: DomainEvent
    ) -> HandlerFailure | None:
        max_attempts = self._handler_max_retries + 1
        for attempt in range(1, max_attempts + 1):
            try:
                await handler(event)
                return None
            except Exception as exc:
                log_extra = {
                    "event_type": event.event_type,
                    "event_id": event.event_id,
                    "handler": handler_name,
                    "attempt": attempt,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                }
                if attempt < max_attempts:
                    delay = self._handler_backoff * 2 ** (attempt - 1)
                    logger.warning("event.handler_retry", extra={**log_extra, "retry_in_s": delay})
                    await self._sleep(delay)
                    continue

                logger.error("event.handler_failed", extra=log_extra)
                return HandlerFailure(
                    code="event_handler_failed",
                    message=f"Handler {handler_name!r} failed for {event.event_type}",
                    details={
                        "event_type": event.event_type,
                        "handler": handler_name,
                        "attempts": attempt,
                        "context": {"event_id": event.event_id, "error_type": type(exc).__name__},
                    },
                )
        return None

    def _spawn(self, coro: Coroutine[Any, Any, None], *, name: str) -> None:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "event.background_task_failed",
                extra={"task": task.get_name(), "error_type": type(exc).__name__, "error_msg": str(exc)},
            )
