"""Unit tests for the in-memory window store."""

import threading

import pytest

from grom.adapters.rate_limit.window_store import InMemoryWindowStore


def test_get_unknown_identity_returns_empty_without_creating_entry() -> None:
    store = InMemoryWindowStore()

    assert store.get("ip:1.2.3.4") == ()
    assert "ip:1.2.3.4" not in store
    assert len(store) == 0


def test_first_update_creates_window() -> None:
    store = InMemoryWindowStore()

    count, timestamps = store.get_and_update("a", 1000.0, 1000)

    assert count == 1
    assert timestamps == (1000.0,)
    assert store.get("a") == (1000.0,)


def test_update_prunes_entries_outside_window() -> None:
    store = InMemoryWindowStore()
    store.put("a", [0, 100, 200])

    count, timestamps = store.get_and_update("a", 1150, 1000)

    assert count == 2
    assert timestamps == (200, 1150)


def test_entry_exactly_one_window_old_is_pruned() -> None:
    store = InMemoryWindowStore()
    store.put("a", [0])

    count, timestamps = store.get_and_update("a", 1000, 1000)

    assert count == 1
    assert timestamps == (1000,)


def test_backward_clock_keeps_entries_and_stays_ordered() -> None:
    store = InMemoryWindowStore()
    store.put("a", [1000])

    count, timestamps = store.get_and_update("a", 500, 1000)

    assert count == 2
    assert timestamps == (1000, 1000)
    assert list(timestamps) == sorted(timestamps)


def test_put_replaces_sequence() -> None:
    store = InMemoryWindowStore()
    store.get_and_update("a", 10, 1000)

    store.put("a", [20, 30])

    assert store.get("a") == (20, 30)


def test_sweep_removes_only_idle_identities() -> None:
    store = InMemoryWindowStore()
    store.put("idle", [0])
    store.put("active", [900])

    removed = store.sweep(1500, 1000)

    assert removed == 1
    assert "idle" not in store
    assert store.get("active") == (900,)
    assert len(store) == 1


def test_update_after_sweep_starts_a_fresh_window() -> None:
    store = InMemoryWindowStore()
    window = store._get_or_create("a")

    assert store.sweep(10_000, 1000) == 1
    assert window.retired is True

    count, timestamps = store.get_and_update("a", 10_000, 1000)

    assert count == 1
    assert timestamps == (10_000,)
    assert "a" in store


def test_stats_and_clear() -> None:
    store = InMemoryWindowStore()
    store.put("a", [1, 2])
    store.put("b", [3])

    assert store.stats() == {"identities": 2, "timestamps": 3}

    store.clear()

    assert store.stats() == {"identities": 0, "timestamps": 0}
    assert store.get("a") == ()


def test_concurrent_updates_are_not_lost() -> None:
    store = InMemoryWindowStore()
    workers = 20
    updates_per_worker = 50
    barrier = threading.Barrier(workers)

    def _writer() -> None:
        barrier.wait()
        for _ in range(updates_per_worker):
            store.get_and_update("shared", 1000, 60_000)

    threads = [threading.Thread(target=_writer) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store.get("shared")) == workers * updates_per_worker


def test_concurrent_updates_with_sweeps_are_not_lost() -> None:
    store = InMemoryWindowStore()
    workers = 8
    updates_per_worker = 100
    stop = threading.Event()

    def _sweeper() -> None:
        while not stop.is_set():
            store.sweep(1000, 60_000)

    def _writer(idx: int) -> None:
        for _ in range(updates_per_worker):
            store.get_and_update(f"k-{idx}", 1000, 60_000)

    sweeper = threading.Thread(target=_sweeper)
    sweeper.start()
    threads = [threading.Thread(target=_writer, args=(i,)) for i in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    stop.set()
    sweeper.join()

    for idx in range(workers):
        assert len(store.get(f"k-{idx}")) == updates_per_worker


def test_window_length_is_fixed_by_first_use() -> None:
    store = InMemoryWindowStore()
    store.get_and_update("a", 0, 10_000)

    with pytest.raises(ValueError):
        store.get_and_update("a", 5000, 1000)
    with pytest.raises(ValueError):
        store.sweep(5000, 1000)
    with pytest.raises(ValueError):
        store.bind_window(1000)

    assert store.time_window == 10_000
    assert store.get("a") == (0,)


def test_other_identities_do_not_wait_on_a_held_window() -> None:
    store = InMemoryWindowStore()
    held = store._get_or_create("a")
    results: list[int] = []

    def _update_other() -> None:
        count, _ = store.get_and_update("b", 1000, 1000)
        results.append(count)

    held.lock.acquire()
    try:
        worker = threading.Thread(target=_update_other)
        worker.start()
        worker.join(timeout=2)
        assert not worker.is_alive()
    finally:
        held.lock.release()

    assert results == [1]
