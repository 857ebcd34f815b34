"""Rate limiting dependency for FastAPI routes.

This module wires the sliding-window limiter into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on a callable dependency only.
- Explicit state: every ``RateLimit`` owns (or is handed) its window store;
  there is no module-level limiter, so routes can carry independent limits.
- Fail open: a fault inside the limiter is logged and the request proceeds.

Clients are identified by address (``ip:<addr>``). Behind a trusted proxy the
first ``X-Forwarded-For`` hop is used instead of the socket peer.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import math
from typing import Callable, Iterable

from fastapi import Request

from grom.adapters.rate_limit.base import AbstractWindowStore, RateLimitResult
from grom.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter, epoch_ms
from grom.core.config import AppSettings
from grom.core.errors import RateLimitAppError

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests, slow down!"


def client_identity(request: Request, *, trust_forwarded_for: bool = False) -> str:
    """Build the limiter key for the current request.

    Args:
        request: FastAPI request.
        trust_forwarded_for: Use the first X-Forwarded-For hop when present.

    Returns:
        str: Namespaced limiter key.
    """

    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return f"ip:{first_hop}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def build_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Render a verdict as Retry-After / X-RateLimit-* response headers."""

    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(math.ceil(result.reset_at_ms / 1000)),
    }
    if result.retry_after_ms is not None:
        headers["Retry-After"] = str(math.ceil(result.retry_after_ms / 1000))
    return headers


class RateLimit:
    """FastAPI dependency enforcing a sliding-window limit per client.

    Usage:
        >>> limit = RateLimit(max_requests=3, time_window_ms=1000)
        >>> @router.get("/ping", dependencies=[Depends(limit)])
        ... async def ping(): ...

    Construction fails fast (``ValueError``) on invalid limits, so a bad
    configuration surfaces at startup rather than on the request path.
    """

    def __init__(
        self,
        max_requests: int,
        time_window_ms: float,
        *,
        store: AbstractWindowStore | None = None,
        clock: Callable[[], float] = epoch_ms,
        include_headers: bool = True,
        trust_forwarded_for: bool = False,
        enabled: bool = True,
    ) -> None:
        self.limiter = SlidingWindowRateLimiter(
            max_requests=max_requests,
            time_window_ms=time_window_ms,
            store=store,
            clock=clock,
        )
        self.include_headers = include_headers
        self.trust_forwarded_for = trust_forwarded_for
        self.enabled = enabled

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"RateLimit(max_requests={self.limiter.max_requests}, "
            f"time_window_ms={self.limiter.time_window_ms}, enabled={self.enabled})"
        )

    async def __call__(self, request: Request) -> None:
        """Record the request and raise HTTP 429 when the client is over budget.

        Raises:
            RateLimitAppError: When the client exceeded the limit.
        """

        if not self.enabled:
            return

        key = client_identity(request, trust_forwarded_for=self.trust_forwarded_for)
        try:
            result = self.limiter.consume(key)
        except Exception:
            logger.exception(
                "rate_limit.error",
                extra={"key_hash": _hash_limiter_key(key)},
            )
            return

        if result.allowed:
            logger.debug(
                "rate_limit.allowed",
                extra={
                    "key_hash": _hash_limiter_key(key),
                    "limit": result.limit,
                    "remaining": result.remaining,
                    "window_ms": self.limiter.time_window_ms,
                },
            )
            return

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "key_hash": _hash_limiter_key(key),
                "limit": result.limit,
                "count": result.count,
                "window_ms": self.limiter.time_window_ms,
                "retry_after_ms": result.retry_after_ms,
            },
        )

        raise RateLimitAppError(
            message=RATE_LIMIT_MESSAGE,
            details={
                "http_status": 429,
                "limit": result.limit,
                "retry_after": result.retry_after_ms or 0,
            },
            headers=build_limit_headers(result) if self.include_headers else None,
        )

    def sweep(self) -> int:
        """Forget clients with no requests left in the window."""
        return self.limiter.sweep()

    def stats(self) -> dict[str, object]:
        """Return limiter configuration plus store metrics."""

        store_stats = self.limiter.store.stats()
        return {
            "enabled": self.enabled,
            "max_requests": self.limiter.max_requests,
            "time_window_ms": self.limiter.time_window_ms,
            **store_stats,
        }


def build_rate_limit(
    app_settings: AppSettings, *, store: AbstractWindowStore | None = None
) -> RateLimit:
    """Build the application-wide limiter from settings.

    Args:
        app_settings: Resolved application settings.
        store: Optional window store to share with other limiters that use
            the same window length.

    Returns:
        RateLimit: Configured dependency.
    """

    return RateLimit(
        max_requests=app_settings.rate_limit_max_requests,
        time_window_ms=app_settings.rate_limit_window_ms,
        store=store,
        include_headers=app_settings.rate_limit_include_headers,
        trust_forwarded_for=app_settings.rate_limit_trust_forwarded_for,
        enabled=app_settings.rate_limit_enabled,
    )


async def run_reaper(limiters: Iterable[RateLimit], interval_seconds: float) -> None:
    """Periodically drop idle clients from every limiter's store.

    Runs until cancelled. A failing sweep is logged and retried on the next
    tick.

    Args:
        limiters: Limiters to sweep.
        interval_seconds: Delay between sweeps.
    """

    limiters = list(limiters)
    while True:
        await asyncio.sleep(interval_seconds)
        for limit in limiters:
            try:
                removed = limit.sweep()
            except Exception:
                logger.exception("rate_limit.sweep_failed")
                continue
            if removed:
                logger.info(
                    "rate_limit.swept",
                    extra={"removed": removed, "limiter": repr(limit)},
                )


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency applying the app-wide limiter.

    The limiter is created at startup and stored on ``app.state.rate_limit``
    by the application factory; apps without one are not limited.

    Raises:
        RateLimitAppError: 429 when the client exceeded the limit.
    """

    limit: RateLimit | None = getattr(request.app.state, "rate_limit", None)
    if limit is None:
        return
    await limit(request)
