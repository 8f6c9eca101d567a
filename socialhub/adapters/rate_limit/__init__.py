"""Counting store adapters for per-client rate limiting.

This package provides a small abstraction layer so the admission gate can
run against the shared Redis store in deployment and an in-memory store in
development and tests without changing the API layer.
"""

from socialhub.adapters.rate_limit.base import AbstractCountingStore, RateLimitResult
from socialhub.adapters.rate_limit.in_memory import InMemoryCountingStore
from socialhub.adapters.rate_limit.redis_store import RedisCountingStore

__all__ = [
    "AbstractCountingStore",
    "InMemoryCountingStore",
    "RateLimitResult",
    "RedisCountingStore",
]
