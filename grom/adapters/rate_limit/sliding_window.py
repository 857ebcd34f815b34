"""Sliding-window rate limiter (exact count).

Every request, admitted or not, is recorded in the client's window and
counts against the limit until it is older than the window.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Callable

from grom.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AbstractWindowStore,
    RateLimitResult,
)
from grom.adapters.rate_limit.window_store import InMemoryWindowStore

logger = logging.getLogger(__name__)


def epoch_ms() -> float:
    """Current UNIX time in milliseconds."""
    return time.time() * 1000


def _is_valid_instant(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # int too large to convert to float
        return False


class SlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests in a trailing window per key.

    A request at instant ``now`` is admitted when the number of requests
    recorded for its key in ``(now - time_window_ms, now]``, including itself,
    does not exceed ``max_requests``.

    The limiter holds no state of its own; all of it lives in the store, which
    may be shared between limiters that use the same key space and the same
    window length.
    """

    def __init__(
        self,
        *,
        max_requests: int,
        time_window_ms: float,
        store: AbstractWindowStore | None = None,
        clock: Callable[[], float] = epoch_ms,
    ) -> None:
        """Initialize the sliding-window rate limiter.

        Args:
            max_requests: Maximum requests per window; 0 rejects everything.
            time_window_ms: Window length in milliseconds.
            store: Window store to use; a private in-memory one by default.
            clock: Time source returning UNIX time in milliseconds.

        Raises:
            ValueError: If max_requests or time_window_ms are invalid, or if
                store is already bound to a different window length.
        """
        if isinstance(max_requests, bool) or not isinstance(max_requests, int):
            raise ValueError("max_requests must be an integer")
        if max_requests < 0:
            raise ValueError("max_requests must be >= 0")
        if not _is_valid_instant(time_window_ms) or time_window_ms <= 0:
            raise ValueError("time_window_ms must be a finite number > 0")

        self._max_requests = max_requests
        self._time_window_ms = time_window_ms
        self._store = store if store is not None else InMemoryWindowStore()
        self._store.bind_window(time_window_ms)
        self._clock = clock

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def time_window_ms(self) -> float:
        return self._time_window_ms

    @property
    def store(self) -> AbstractWindowStore:
        return self._store

    def _resolve_now(self, now: Any) -> float:
        """Return now when usable, otherwise the clock reading."""
        if now is None:
            return self._clock()
        if _is_valid_instant(now):
            return now

        logger.warning(
            "rate_limit.invalid_instant",
            extra={"instant_type": type(now).__name__},
        )
        return self._clock()

    def _build_allowed_result(self, *, count: int, reset_at_ms: float) -> RateLimitResult:
        """Build a RateLimitResult for an admitted request."""
        return RateLimitResult(
            allowed=True,
            limit=self._max_requests,
            count=count,
            remaining=self._max_requests - count,
            reset_at_ms=reset_at_ms,
        )

    def _build_blocked_result(
        self, *, count: int, now: float, oldest: float
    ) -> RateLimitResult:
        """Build a RateLimitResult for a rejected request."""
        window = self._time_window_ms
        retry_after = min(window, max(0, window - (now - oldest)))
        return RateLimitResult(
            allowed=False,
            limit=self._max_requests,
            count=count,
            remaining=0,
            reset_at_ms=oldest + window,
            retry_after_ms=retry_after,
        )

    def consume(self, key: str, *, now: float | None = None) -> RateLimitResult:
        """Record one request for key and decide whether it is admitted.

        Args:
            key: Client identity (e.g., "ip:203.0.113.7").
            now: Instant in epoch milliseconds; malformed values are ignored
                in favour of the clock.

        Returns:
            RateLimitResult with the admission decision and metadata.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        instant = self._resolve_now(now)
        count, timestamps = self._store.get_and_update(key, instant, self._time_window_ms)
        oldest = timestamps[0]

        if count <= self._max_requests:
            return self._build_allowed_result(
                count=count, reset_at_ms=oldest + self._time_window_ms
            )
        return self._build_blocked_result(count=count, now=instant, oldest=oldest)

    def sweep(self, now: float | None = None) -> int:
        """Forget clients with no requests left in the window.

        Returns:
            Number of identities removed from the store.
        """
        return self._store.sweep(self._resolve_now(now), self._time_window_ms)
