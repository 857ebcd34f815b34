"""Rate limiter interfaces.

The HTTP layer depends on these abstractions (not the concrete implementations)
so the in-memory store can be swapped for another backend with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class RateLimitResult:
    """Verdict of a single admission check.

    Attributes:
        allowed: Whether the request is admitted.
        limit: Max requests per window.
        count: Requests currently in the window, including this one.
        remaining: Requests left in the window (0 when blocked).
        reset_at_ms: Epoch milliseconds when the oldest in-window request ages out.
        retry_after_ms: Advisory wait in milliseconds when blocked, else None.
    """

    allowed: bool
    limit: int
    count: int
    remaining: int
    reset_at_ms: float
    retry_after_ms: float | None = None


class AbstractWindowStore(ABC):
    """Keyed storage of per-client request timestamps."""

    @abstractmethod
    def get(self, identity: str) -> tuple[float, ...]:
        """Return the stored timestamps for identity, or an empty tuple."""
        raise NotImplementedError

    @abstractmethod
    def put(self, identity: str, timestamps: Sequence[float]) -> None:
        """Replace the stored timestamps for identity."""
        raise NotImplementedError

    @abstractmethod
    def get_and_update(
        self, identity: str, now: float, time_window: float
    ) -> tuple[int, tuple[float, ...]]:
        """Prune stale timestamps, append now and store the result atomically.

        Args:
            identity: Client identity.
            now: Current instant in milliseconds.
            time_window: Window length in milliseconds.

        Returns:
            Tuple of (count, timestamps) after the update.
        """
        raise NotImplementedError

    @abstractmethod
    def sweep(self, now: float, time_window: float) -> int:
        """Drop identities with no timestamps left in the window.

        Returns:
            Number of identities removed.
        """
        raise NotImplementedError

    @abstractmethod
    def bind_window(self, time_window: float) -> None:
        """Pin the window length this store prunes with.

        Pruning with a shorter window drops entries a longer one still
        counts, so one store serves a single window length.

        Raises:
            ValueError: If the store is already bound to a different length.
        """
        raise NotImplementedError

    def stats(self) -> dict[str, int]:
        """Return lightweight store metrics; empty when the backend has none."""
        return {}


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def consume(self, key: str, *, now: float | None = None) -> RateLimitResult:
        """Record one request for key and decide whether it is admitted.

        Args:
            key: Unique identifier (e.g., client IP address).
            now: Optional instant in epoch milliseconds; defaults to the clock.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError
