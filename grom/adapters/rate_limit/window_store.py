"""In-memory window store for sliding-window rate limiting.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: one lock per identity, so unrelated clients never wait on
  each other. The store-level lock only guards adding/removing identities.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Sequence

from grom.adapters.rate_limit.base import AbstractWindowStore

logger = logging.getLogger(__name__)


@dataclass
class _ClientWindow:
    timestamps: deque[float] = field(default_factory=deque)
    lock: threading.Lock = field(default_factory=threading.Lock)
    # Set by sweep() once the window has been removed from the mapping.
    retired: bool = False


def _prune(timestamps: deque[float], now: float, time_window: float) -> None:
    """Drop timestamps that fell out of the window (oldest first).

    Negative elapsed time (clock moved backwards) counts as in-window.
    """
    while timestamps and now - timestamps[0] >= time_window:
        timestamps.popleft()


class InMemoryWindowStore(AbstractWindowStore):
    """Maps a client identity to the timestamps of its recent requests.

    Timestamps are kept in insertion order, which is also chronological:
    an instant older than the newest stored one is recorded as the newest
    one, so the sequence never decreases.

    A store serves a single window length. The first call to bind_window(),
    get_and_update() or sweep() fixes it; a different length later raises
    ValueError.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._windows: dict[str, _ClientWindow] = {}
        self._time_window: float | None = None

    def __len__(self) -> int:
        return len(self._windows)

    def __contains__(self, identity: object) -> bool:
        return identity in self._windows

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryWindowStore(identities={len(self._windows)})"

    @property
    def time_window(self) -> float | None:
        return self._time_window

    def bind_window(self, time_window: float) -> None:
        """Fix the window length used for pruning.

        Args:
            time_window: Window length in milliseconds.

        Raises:
            ValueError: If a different length is already bound.
        """

        if time_window == self._time_window:
            return
        with self._lock:
            if self._time_window is None:
                self._time_window = time_window
            elif time_window != self._time_window:
                raise ValueError(
                    f"store is bound to a {self._time_window} ms window, got {time_window} ms"
                )

    def _get_or_create(self, identity: str) -> _ClientWindow:
        window = self._windows.get(identity)
        if window is not None:
            return window
        with self._lock:
            return self._windows.setdefault(identity, _ClientWindow())

    def get(self, identity: str) -> tuple[float, ...]:
        """Return the timestamps stored for identity without creating an entry."""

        window = self._windows.get(identity)
        if window is None:
            return ()
        with window.lock:
            return tuple(window.timestamps)

    def put(self, identity: str, timestamps: Sequence[float]) -> None:
        """Replace the timestamps stored for identity.

        Args:
            identity: Client identity.
            timestamps: New sequence, oldest first.
        """

        while True:
            window = self._get_or_create(identity)
            with window.lock:
                if window.retired:
                    continue
                window.timestamps = deque(timestamps)
                return

    def get_and_update(
        self, identity: str, now: float, time_window: float
    ) -> tuple[int, tuple[float, ...]]:
        """Atomically prune the window for identity and record now.

        Args:
            identity: Client identity.
            now: Current instant in milliseconds.
            time_window: Window length in milliseconds.

        Returns:
            Tuple of (count, timestamps) after appending now.

        Raises:
            ValueError: If time_window differs from the bound window length.
        """

        self.bind_window(time_window)
        while True:
            window = self._get_or_create(identity)
            with window.lock:
                if window.retired:
                    # Lost a race with sweep(); retry on a fresh entry.
                    continue
                timestamps = window.timestamps
                _prune(timestamps, now, time_window)
                if timestamps and now < timestamps[-1]:
                    now = timestamps[-1]
                timestamps.append(now)
                return len(timestamps), tuple(timestamps)

    def sweep(self, now: float, time_window: float) -> int:
        """Prune every window and forget identities left with no timestamps.

        Args:
            now: Current instant in milliseconds.
            time_window: Window length in milliseconds.

        Returns:
            Number of identities removed.
        """

        self.bind_window(time_window)
        removed = 0
        with self._lock:
            for identity, window in list(self._windows.items()):
                with window.lock:
                    _prune(window.timestamps, now, time_window)
                    if window.timestamps:
                        continue
                    window.retired = True
                    del self._windows[identity]
                    removed += 1

        logger.debug(
            "rate_limit.store.sweep",
            extra={
                "removed": removed,
                "identities": len(self._windows),
            },
        )
        return removed

    def clear(self) -> None:
        """Forget all identities."""

        with self._lock:
            for window in self._windows.values():
                with window.lock:
                    window.retired = True
            self._windows.clear()

    def stats(self) -> dict[str, int]:
        """Return lightweight store metrics without exposing identities."""

        with self._lock:
            windows = list(self._windows.values())
        return {
            "identities": len(windows),
            "timestamps": sum(len(w.timestamps) for w in windows),
        }
