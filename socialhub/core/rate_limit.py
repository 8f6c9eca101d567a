"""Per-client admission control for FastAPI routes.

This module wires the counting store adapters into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on dependency functions only.
- Swap-friendly: the counting store (Redis or in-memory) sits behind an
  abstract interface.
- Explicit failure policy: when the store is unreachable the gate fails open
  (logs a warning and admits) unless RATE_LIMIT_FAIL_OPEN=false, in which
  case StoreUnavailable surfaces as HTTP 503.

Tiers:
- ``global``: coarse per-IP budget applied to every request.
- ``sensitive``: stricter per-IP budget for mutating endpoints.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request

from socialhub.adapters.rate_limit.base import AbstractCountingStore, RateLimitResult
from socialhub.adapters.rate_limit.in_memory import InMemoryCountingStore
from socialhub.adapters.rate_limit.redis_store import RedisCountingStore
from socialhub.adapters.redis_client import get_redis_client
from socialhub.core.config import RateLimitSettings, settings
from socialhub.core.errors import AdmissionRejected, StoreUnavailable

logger = logging.getLogger(__name__)

GLOBAL_TIER = "global"
SENSITIVE_TIER = "sensitive"


@dataclass(frozen=True)
class TierPolicy:
    """Budget definition for one tier."""

    name: str
    max_points: int
    window_seconds: float
    key_prefix: str

    def budget_key(self, client_id: str) -> str:
        return f"{self.key_prefix}:{client_id}"


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of :meth:`RateLimiterGate.admit`.

    Attributes:
        allowed: Whether the request may proceed.
        tier: Tier that was checked.
        client_id: Client identity the budget is keyed by.
        result: Store result; None when the store was skipped (degraded).
        degraded: True when admitted because the store was unreachable.
    """

    allowed: bool
    tier: str
    client_id: str
    result: RateLimitResult | None = None
    degraded: bool = False


class RateLimiterGate:
    """Two-tier admission filter over a shared counting store."""

    def __init__(
        self,
        store: AbstractCountingStore,
        tiers: list[TierPolicy],
        *,
        fail_open: bool = True,
    ) -> None:
        if not tiers:
            raise ValueError("at least one tier is required")
        self._store = store
        self._tiers = {tier.name: tier for tier in tiers}
        self._fail_open = fail_open

    @property
    def store(self) -> AbstractCountingStore:
        return self._store

    def tier(self, name: str) -> TierPolicy:
        try:
            return self._tiers[name]
        except KeyError:
            raise ValueError(f"unknown rate limit tier: {name!r}") from None

    async def admit(self, client_id: str, tier: str) -> AdmissionDecision:
        """Check and consume one point of ``client_id``'s budget for ``tier``.

        Returns:
            AdmissionDecision; rejections are returned, not raised.

        Raises:
            StoreUnavailable: Only when the gate is configured to fail closed.
            ValueError: If the tier is unknown.
        """
        policy = self.tier(tier)

        try:
            result = await self._store.check_and_decrement(
                policy.budget_key(client_id),
                window_seconds=policy.window_seconds,
                max_points=policy.max_points,
            )
        except StoreUnavailable as exc:
            if not self._fail_open:
                logger.error(
                    "rate_limit.store_unavailable",
                    extra={"tier": tier, "client_ip": client_id, "policy": "fail_closed", "error_code": exc.code},
                )
                raise
            logger.warning(
                "rate_limit.store_unavailable",
                extra={"tier": tier, "client_ip": client_id, "policy": "fail_open", "error_code": exc.code},
            )
            return AdmissionDecision(allowed=True, tier=tier, client_id=client_id, degraded=True)

        if not result.allowed:
            logger.warning(
                "rate_limit.exceeded",
                extra={
                    "tier": tier,
                    "client_ip": client_id,
                    "limit": result.limit,
                    "remaining": result.remaining,
                    "window_s": policy.window_seconds,
                    "retry_after_s": result.retry_after_seconds,
                },
            )
        else:
            logger.debug(
                "rate_limit.allowed",
                extra={"tier": tier, "client_ip": client_id, "remaining": result.remaining},
            )

        return AdmissionDecision(allowed=result.allowed, tier=tier, client_id=client_id, result=result)


def build_tiers(cfg: RateLimitSettings) -> list[TierPolicy]:
    """Build the global and sensitive tiers from configuration."""

    return [
        TierPolicy(
            name=GLOBAL_TIER,
            max_points=cfg.global_points,
            window_seconds=cfg.global_duration_seconds,
            key_prefix=cfg.global_key_prefix,
        ),
        TierPolicy(
            name=SENSITIVE_TIER,
            max_points=cfg.sensitive_points,
            window_seconds=cfg.sensitive_window_seconds,
            key_prefix=cfg.sensitive_key_prefix,
        ),
    ]


def build_counting_store(cfg: RateLimitSettings) -> AbstractCountingStore:
    if cfg.backend == "memory":
        return InMemoryCountingStore()
    return RedisCountingStore(get_redis_client(), timeout_seconds=cfg.store_timeout_seconds)


_gate: RateLimiterGate | None = None
_gate_config: RateLimitSettings | None = None


def get_rate_limiter_gate() -> RateLimiterGate:
    """Return a process-wide gate instance.

    The instance is cached in-module to preserve state across requests.
    If configuration changes (primarily in tests), the gate is rebuilt.
    """

    global _gate, _gate_config

    config = settings.rate_limit
    if _gate is None or _gate_config != config:
        _gate = RateLimiterGate(
            build_counting_store(config),
            build_tiers(config),
            fail_open=config.fail_open,
        )
        _gate_config = config.model_copy()

    return _gate


def reset_rate_limiter_gate() -> None:
    """Drop the cached gate (and its per-process budgets)."""

    global _gate, _gate_config
    _gate = None
    _gate_config = None


def client_identity(request: Request) -> str:
    """Client identity used for budgets: the peer address."""

    return request.client.host if request.client else "unknown"


async def _enforce(request: Request, tier: str) -> None:
    if not settings.rate_limit.enabled:
        return

    decision = await get_rate_limiter_gate().admit(client_identity(request), tier)
    if decision.allowed:
        return

    result = decision.result
    raise AdmissionRejected(
        code="too_many_requests",
        message="Too many requests",
        details={
            "tier": tier,
            "client_ip": decision.client_id,
            "retry_after": float(result.retry_after_seconds or 0) if result else 0.0,
            "context": {
                "limit": result.limit if result else 0,
                "remaining": result.remaining if result else 0,
                "reset_at": result.reset_at if result else 0,
            },
        },
    )


async def enforce_global_rate_limit(request: Request) -> None:
    """FastAPI dependency applying the global tier to every request.

    Raises:
        AdmissionRejected: When the client's global budget is exhausted.
        StoreUnavailable: When the store is down and the gate fails closed.
    """

    await _enforce(request, GLOBAL_TIER)


async def enforce_sensitive_rate_limit(request: Request) -> None:
    """FastAPI dependency applying the sensitive tier to mutating routes.

    Raises:
        AdmissionRejected: When the client's sensitive budget is exhausted.
        StoreUnavailable: When the store is down and the gate fails closed.
    """

    await _enforce(request, SENSITIVE_TIER)
