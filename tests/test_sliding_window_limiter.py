"""Unit tests for the sliding-window rate limiter."""

import random
import threading

import pytest

from grom.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from grom.adapters.rate_limit.window_store import InMemoryWindowStore


def _verdicts(limiter: SlidingWindowRateLimiter, key: str, instants: list[float]) -> list[bool]:
    return [limiter.consume(key, now=t).allowed for t in instants]


def test_admits_up_to_limit_then_rejects_and_recovers() -> None:
    limiter = SlidingWindowRateLimiter(max_requests=3, time_window_ms=1000)

    assert _verdicts(limiter, "X", [0, 100, 200, 300]) == [True, True, True, False]
    # Every earlier request is at least one window old at t=1300
    assert limiter.consume("X", now=1300).allowed is True


def test_allowed_result_metadata() -> None:
    limiter = SlidingWindowRateLimiter(max_requests=3, time_window_ms=1000)

    result = limiter.consume("k", now=500)

    assert result.allowed is True
    assert result.limit == 3
    assert result.count == 1
    assert result.remaining == 2
    assert result.reset_at_ms == 1500
    assert result.retry_after_ms is None


def test_blocked_result_carries_retry_hint() -> None:
    limiter = SlidingWindowRateLimiter(max_requests=2, time_window_ms=1000)
    limiter.consume("k", now=0)
    limiter.consume("k", now=100)

    blocked = limiter.consume("k", now=300)

    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.count == 3
    assert blocked.retry_after_ms == 700
    assert blocked.reset_at_ms == 1000


def test_rejected_requests_count_toward_the_window() -> None:
    limiter = SlidingWindowRateLimiter(max_requests=1, time_window_ms=1000)

    assert _verdicts(limiter, "k", [0, 500, 1200]) == [True, False, False]
    assert limiter.consume("k", now=2200).allowed is True


def test_zero_max_requests_rejects_everything() -> None:
    limiter = SlidingWindowRateLimiter(max_requests=0, time_window_ms=1000)

    first = limiter.consume("k", now=0)

    assert first.allowed is False
    assert first.retry_after_ms == 1000
    assert limiter.consume("k", now=5000).allowed is False


def test_idle_client_is_admitted_again_after_a_window() -> None:
    limiter = SlidingWindowRateLimiter(max_requests=2, time_window_ms=1000)

    assert _verdicts(limiter, "k", [0, 10]) == [True, True]
    assert _verdicts(limiter, "k", [1010, 1020]) == [True, True]


def test_isolated_by_key() -> None:
    limiter = SlidingWindowRateLimiter(max_requests=1, time_window_ms=60_000)

    assert limiter.consume("k1", now=0).allowed is True
    assert limiter.consume("k1", now=1).allowed is False

    assert limiter.consume("k2", now=2).allowed is True
    assert limiter.store.get("k2") == (2,)


def test_verdicts_match_trailing_window_count() -> None:
    rng = random.Random(7)
    window = 1000
    max_requests = 4
    instants: list[float] = []
    t = 0
    for _ in range(300):
        t += rng.choice([0, 10, 50, 120, 400, 1100])
        instants.append(t)

    limiter = SlidingWindowRateLimiter(max_requests=max_requests, time_window_ms=window)
    verdicts = _verdicts(limiter, "k", instants)

    for i, ti in enumerate(instants):
        in_window = sum(1 for tj in instants[: i + 1] if ti - window < tj <= ti)
        assert verdicts[i] is (in_window <= max_requests), f"mismatch at index {i}"


def test_same_configuration_and_input_give_same_verdicts() -> None:
    instants = [0, 5, 5, 40, 900, 1000, 1001, 1900, 2000, 2000, 2003]

    first = SlidingWindowRateLimiter(max_requests=2, time_window_ms=1000)
    second = SlidingWindowRateLimiter(max_requests=2, time_window_ms=1000)

    assert _verdicts(first, "k", instants) == _verdicts(second, "k", instants)


def test_concurrent_requests_admit_exactly_the_limit() -> None:
    limit = 25
    requests = 200
    limiter = SlidingWindowRateLimiter(
        max_requests=limit, time_window_ms=60_000, clock=lambda: 1000.0
    )
    barrier = threading.Barrier(requests)
    verdicts: list[bool] = []
    verdicts_lock = threading.Lock()

    def _request() -> None:
        barrier.wait()
        allowed = limiter.consume("ip:10.0.0.1").allowed
        with verdicts_lock:
            verdicts.append(allowed)

    threads = [threading.Thread(target=_request) for _ in range(requests)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert verdicts.count(True) == limit
    assert verdicts.count(False) == requests - limit


def test_uses_clock_when_now_is_omitted(clock) -> None:
    limiter = SlidingWindowRateLimiter(max_requests=1, time_window_ms=1000, clock=clock)

    assert limiter.consume("k").allowed is True
    assert limiter.store.get("k") == (clock.current,)

    clock.advance(1000)
    assert limiter.consume("k").allowed is True


@pytest.mark.parametrize("bad_now", [float("nan"), float("inf"), 10**400, "soon", True, object()])
def test_malformed_now_falls_back_to_clock(clock, bad_now) -> None:
    limiter = SlidingWindowRateLimiter(max_requests=1, time_window_ms=1000, clock=clock)

    result = limiter.consume("k", now=bad_now)

    assert result.allowed is True
    assert limiter.store.get("k") == (clock.current,)


def test_backward_clock_does_not_fail_or_release_budget() -> None:
    limiter = SlidingWindowRateLimiter(max_requests=2, time_window_ms=1000)

    assert limiter.consume("k", now=5000).allowed is True
    assert limiter.consume("k", now=1000).allowed is True
    blocked = limiter.consume("k", now=900)

    assert blocked.allowed is False
    assert 0 <= blocked.retry_after_ms <= 1000
    timestamps = limiter.store.get("k")
    assert list(timestamps) == sorted(timestamps)


def test_limiters_can_share_a_store() -> None:
    store = InMemoryWindowStore()
    strict = SlidingWindowRateLimiter(max_requests=1, time_window_ms=1000, store=store)
    loose = SlidingWindowRateLimiter(max_requests=5, time_window_ms=1000, store=store)

    assert strict.consume("k", now=0).allowed is True
    assert loose.consume("k", now=1).allowed is True
    assert strict.consume("k", now=2).allowed is False


def test_shared_store_rejects_a_different_window_length() -> None:
    store = InMemoryWindowStore()
    long = SlidingWindowRateLimiter(max_requests=2, time_window_ms=10_000, store=store)

    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(max_requests=2, time_window_ms=1000, store=store)

    long.consume("k", now=0)
    long.consume("k", now=5000)
    assert long.consume("k", now=6000).allowed is False


def test_sweep_forgets_idle_clients() -> None:
    limiter = SlidingWindowRateLimiter(max_requests=1, time_window_ms=1000)
    limiter.consume("old", now=0)
    limiter.consume("new", now=900)

    assert limiter.sweep(now=1500) == 1
    assert "old" not in limiter.store
    assert "new" in limiter.store


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_requests": -1, "time_window_ms": 1000},
        {"max_requests": 1.5, "time_window_ms": 1000},
        {"max_requests": "3", "time_window_ms": 1000},
        {"max_requests": True, "time_window_ms": 1000},
        {"max_requests": 1, "time_window_ms": 0},
        {"max_requests": 1, "time_window_ms": -10},
        {"max_requests": 1, "time_window_ms": float("nan")},
        {"max_requests": 1, "time_window_ms": float("inf")},
        {"max_requests": 1, "time_window_ms": 10**400},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(**kwargs)


def test_empty_key_is_rejected() -> None:
    limiter = SlidingWindowRateLimiter(max_requests=1, time_window_ms=1000)

    with pytest.raises(ValueError):
        limiter.consume("")
