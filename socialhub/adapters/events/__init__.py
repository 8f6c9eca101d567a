"""Event broker adapters used by the event relay."""

from socialhub.adapters.events.base import (
    POST_CREATED,
    POST_DELETED,
    AbstractEventBroker,
    DomainEvent,
    EventCallback,
)
from socialhub.adapters.events.in_memory import InMemoryEventBroker
from socialhub.adapters.events.redis_streams import RedisStreamsEventBroker

__all__ = [
    "POST_CREATED",
    "POST_DELETED",
    "AbstractEventBroker",
    "DomainEvent",
    "EventCallback",
    "InMemoryEventBroker",
    "RedisStreamsEventBroker",
]
