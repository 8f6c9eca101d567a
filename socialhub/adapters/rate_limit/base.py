"""Counting store interfaces.

The admission gate depends on this abstraction (not the concrete
implementation) so the shared Redis store and the per-process store used in
development can be swapped without touching the HTTP layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a check-and-decrement operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max points per window.
        remaining: Remaining points in the current window (never negative).
        reset_at: UNIX epoch seconds when the current window resets.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


def validate_budget_args(key: str, *, window_seconds: float, max_points: int, cost: int) -> None:
    """Reject arguments that cannot describe a budget.

    Raises:
        ValueError: If any argument is out of range.
    """
    if not key:
        raise ValueError("key must be a non-empty string")
    if cost < 1:
        raise ValueError("cost must be >= 1")
    if max_points < 1:
        raise ValueError("max_points must be >= 1")
    if window_seconds <= 0:
        raise ValueError("window_seconds must be > 0")


class AbstractCountingStore(ABC):
    """Interface for shared per-key point budgets."""

    backend_name: str = "abstract"

    @abstractmethod
    async def check_and_decrement(
        self,
        key: str,
        *,
        window_seconds: float,
        max_points: int,
        cost: int = 1,
    ) -> RateLimitResult:
        """Atomically consume points from the budget stored under ``key``.

        The budget is created lazily with ``max_points`` and a reset deadline
        ``window_seconds`` from its first use. A call that cannot be satisfied
        leaves the budget untouched.

        Args:
            key: Budget key, already namespaced by tier (e.g. ``sensitive:1.2.3.4``).
            window_seconds: Window length used when the budget is (re)created.
            max_points: Budget size per window.
            cost: Points to consume (default 1).

        Returns:
            RateLimitResult describing whether it was allowed.

        Raises:
            StoreUnavailable: If the store cannot be reached in time.
            ValueError: If arguments are invalid.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release resources owned by the store (default: nothing)."""
