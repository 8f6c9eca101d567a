"""In-memory fixed-window counting store.

Notes:
- Per-process only: running multiple instances multiplies the effective limit.
- Safe under asyncio: the check and the update happen without yielding to
  the event loop, so interleaved requests cannot observe a half-applied
  decrement.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable

from socialhub.adapters.rate_limit.base import (
    AbstractCountingStore,
    RateLimitResult,
    validate_budget_args,
)


@dataclass
class _Budget:
    remaining: int
    reset_at: float


class InMemoryCountingStore(AbstractCountingStore):
    """Counting store keeping one fixed-window budget per key in a dict.

    The window of a key starts with its first request and the budget is
    reinitialised on the first access after the reset deadline.
    """

    backend_name = "memory"

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._budgets: dict[str, _Budget] = {}

    def _get_or_reset_budget(
        self, key: str, now: float, *, window_seconds: float, max_points: int
    ) -> _Budget:
        budget = self._budgets.get(key)
        if budget is None or now >= budget.reset_at:
            budget = _Budget(remaining=max_points, reset_at=now + window_seconds)
            self._budgets[key] = budget
        return budget

    async def check_and_decrement(
        self,
        key: str,
        *,
        window_seconds: float,
        max_points: int,
        cost: int = 1,
    ) -> RateLimitResult:
        validate_budget_args(key, window_seconds=window_seconds, max_points=max_points, cost=cost)

        now = self._clock()
        budget = self._get_or_reset_budget(
            key, now, window_seconds=window_seconds, max_points=max_points
        )
        reset_at = int(math.ceil(budget.reset_at))

        if budget.remaining >= cost:
            budget.remaining -= cost
            return RateLimitResult(
                allowed=True,
                limit=max_points,
                remaining=budget.remaining,
                reset_at=reset_at,
                retry_after_seconds=None,
            )

        return RateLimitResult(
            allowed=False,
            limit=max_points,
            remaining=budget.remaining,
            reset_at=reset_at,
            retry_after_seconds=max(1, int(math.ceil(budget.reset_at - now))),
        )

    def clear(self) -> None:
        """Forget every budget."""
        self._budgets.clear()
