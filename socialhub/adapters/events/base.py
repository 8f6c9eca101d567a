"""Domain event record and broker interface.

Services depend on this abstraction so the Redis Streams broker used in
deployment and the in-process broker used in tests are interchangeable.
"""

from __future__ import annotations

import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

POST_CREATED = "post.created"
POST_DELETED = "post.deleted"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_event_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class DomainEvent:
    """Immutable notification of a state change.

    Attributes:
        event_type: Type tag such as ``post.deleted``.
        payload: JSON-serialisable body, opaque to the relay.
        published_at: UTC timestamp taken when the event was created.
        event_id: Unique id, stable across redeliveries of the same event.
    """

    event_type: str
    payload: Any
    published_at: datetime = field(default_factory=_utcnow)
    event_id: str = field(default_factory=_new_event_id)

    @classmethod
    def create(cls, event_type: str, payload: Any) -> "DomainEvent":
        """Build an event, detaching the payload from the caller's objects.

        Raises:
            ValueError: If the type is empty or the payload is not JSON-serialisable.
        """
        if not event_type:
            raise ValueError("event_type must be a non-empty string")
        try:
            detached = json.loads(json.dumps(payload))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"payload for {event_type!r} is not JSON-serialisable") from exc
        return cls(event_type=event_type, payload=detached)

    def to_message(self) -> str:
        """Serialise to the JSON text carried by the broker."""
        return json.dumps(
            {
                "event_id": self.event_id,
                "event_type": self.event_type,
                "published_at": self.published_at.isoformat(),
                "payload": self.payload,
            }
        )

    @classmethod
    def from_message(cls, message: str | bytes) -> "DomainEvent":
        """Parse JSON text produced by :meth:`to_message`.

        Raises:
            ValueError: If the message is not a valid event.
        """
        try:
            data = json.loads(message)
            return cls(
                event_type=str(data["event_type"]),
                payload=data.get("payload"),
                published_at=datetime.fromisoformat(data["published_at"]),
                event_id=str(data["event_id"]),
            )
        except (TypeError, KeyError, json.JSONDecodeError) as exc:
            raise ValueError(f"malformed event message: {exc}") from exc


EventCallback = Callable[[DomainEvent], Awaitable[None]]


class AbstractEventBroker(ABC):
    """Interface for publish/consume brokers."""

    backend_name: str = "abstract"

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether :meth:`connect` succeeded and :meth:`close` was not called."""

    @abstractmethod
    async def connect(self) -> None:
        """Establish broker connectivity.

        Raises:
            BrokerUnavailable: If the broker cannot be reached.
        """

    @abstractmethod
    async def publish(self, event: DomainEvent) -> None:
        """Hand an event to the broker without waiting for consumers.

        Raises:
            BrokerUnavailable: If the broker is not connected or the call fails.
        """

    @abstractmethod
    async def consume(self, event_type: str, callback: EventCallback) -> None:
        """Start delivering events of ``event_type`` to ``callback`` in the background.

        Only events published after this call are delivered.

        Raises:
            BrokerUnavailable: If the broker is not connected or the call fails.
        """

    @abstractmethod
    async def close(self) -> None:
        """Stop consumers and release broker resources."""
