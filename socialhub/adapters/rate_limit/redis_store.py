"""Redis-backed counting store shared by every service instance.

The check and the decrement run as a single Lua script, so Redis serialises
concurrent requests from the same client and a rejected request never
touches the stored counter.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Callable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from socialhub.adapters.rate_limit.base import (
    AbstractCountingStore,
    RateLimitResult,
    validate_budget_args,
)
from socialhub.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

# KEYS[1] = budget key; ARGV = max_points, window_ms, cost.
# The key holds the points consumed in the current window and expires with it.
# Returns {allowed (0/1), consumed, ttl_ms}.
CHECK_AND_DECREMENT_LUA = """
local max_points = tonumber(ARGV[1])
local window_ms = tonumber(ARGV[2])
local cost = tonumber(ARGV[3])
local ttl = redis.call('PTTL', KEYS[1])
local consumed = 0
if ttl > 0 then
  consumed = tonumber(redis.call('GET', KEYS[1]) or '0')
end
if consumed + cost > max_points then
  if ttl <= 0 then
    ttl = window_ms
  end
  return {0, consumed, ttl}
end
if ttl > 0 then
  consumed = redis.call('INCRBY', KEYS[1], cost)
else
  redis.call('SET', KEYS[1], cost, 'PX', window_ms)
  consumed = cost
  ttl = window_ms
end
return {1, consumed, ttl}
"""


class RedisCountingStore(AbstractCountingStore):
    """Fixed-window budgets stored as expiring counters in Redis."""

    backend_name = "redis"

    def __init__(
        self,
        redis: Redis,
        *,
        timeout_seconds: float = 0.5,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store.

        Args:
            redis: Shared asyncio Redis client.
            timeout_seconds: Upper bound for one store round trip.
            clock: Time source used to turn TTLs into reset timestamps.
        """
        self._redis = redis
        self._timeout = timeout_seconds
        self._clock = clock
        self._script = redis.register_script(CHECK_AND_DECREMENT_LUA)

    async def check_and_decrement(
        self,
        key: str,
        *,
        window_seconds: float,
        max_points: int,
        cost: int = 1,
    ) -> RateLimitResult:
        validate_budget_args(key, window_seconds=window_seconds, max_points=max_points, cost=cost)

        window_ms = max(1, int(window_seconds * 1000))
        try:
            allowed, consumed, ttl_ms = await asyncio.wait_for(
                self._script(keys=[key], args=[max_points, window_ms, cost]),
                timeout=self._timeout,
            )
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            logger.debug(
                "rate_limit.store_call_failed",
                extra={"error_type": type(exc).__name__, "timeout_s": self._timeout},
            )
            raise StoreUnavailable(
                code="rate_limit_store_unavailable",
                message="Counting store is unreachable",
                details={"context": {"error_type": type(exc).__name__}},
            ) from exc

        now = self._clock()
        ttl_seconds = max(0.0, int(ttl_ms) / 1000)
        reset_at = int(math.ceil(now + ttl_seconds))
        remaining = max(0, max_points - int(consumed))

        if int(allowed) == 1:
            return RateLimitResult(
                allowed=True,
                limit=max_points,
                remaining=remaining,
                reset_at=reset_at,
                retry_after_seconds=None,
            )

        return RateLimitResult(
            allowed=False,
            limit=max_points,
            remaining=remaining,
            reset_at=reset_at,
            retry_after_seconds=max(1, int(math.ceil(ttl_seconds))),
        )
