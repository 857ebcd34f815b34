"""Rate limiting adapters.

This package keeps the limiting policy separate from where request history is
stored, so the in-memory store can later be replaced without touching the
policy or the HTTP layer.
"""

from grom.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AbstractWindowStore,
    RateLimitResult,
)
from grom.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter, epoch_ms
from grom.adapters.rate_limit.window_store import InMemoryWindowStore

__all__ = [
    "AbstractRateLimiter",
    "AbstractWindowStore",
    "InMemoryWindowStore",
    "RateLimitResult",
    "SlidingWindowRateLimiter",
    "epoch_ms",
]
