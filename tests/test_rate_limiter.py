from __future__ import annotations

import threading

from nfc_bridge_server.rate_limiter import RateLimiter


def test_window_boundary_is_inclusive() -> None:
    limiter = RateLimiter(window_ms=5000)
    t = 1_000_000
    assert limiter.accept("ABCD", t)
    assert not limiter.accept("ABCD", t + 4999)
    assert limiter.accept("ABCD", t + 5000)


def test_rejection_does_not_refresh_timestamp() -> None:
    limiter = RateLimiter(window_ms=100)
    assert limiter.accept("ABCD", 0)
    assert not limiter.accept("ABCD", 50)
    assert limiter.accept("ABCD", 100)


def test_identifiers_are_independent() -> None:
    limiter = RateLimiter(window_ms=5000)
    assert limiter.accept("AAAA", 10)
    assert limiter.accept("BBBB", 10)


def test_uses_injected_clock() -> None:
    now = [0]
    limiter = RateLimiter(window_ms=1000, clock=lambda: now[0])
    assert limiter.accept("ABCD")
    now[0] = 999
    assert not limiter.accept("ABCD")
    now[0] = 1000
    assert limiter.accept("ABCD")


def test_entries_persist_without_pruning() -> None:
    limiter = RateLimiter(window_ms=10)
    limiter.accept("AAAA", 0)
    limiter.accept("BBBB", 1000)
    assert len(limiter) == 2
    assert "AAAA" in limiter


def test_prune_expired_bounds_memory_to_recent_identifiers() -> None:
    limiter = RateLimiter(window_ms=10, prune_expired=True)
    limiter.accept("AAAA", 0)
    limiter.accept("BBBB", 5)
    limiter.accept("CCCC", 12)
    assert "AAAA" not in limiter
    assert "BBBB" in limiter
    # 淘汰不改变接受语义
    assert not limiter.accept("BBBB", 14)
    assert limiter.accept("BBBB", 15)


def test_concurrent_accepts_only_one_wins() -> None:
    limiter = RateLimiter(window_ms=5000)
    barrier = threading.Barrier(8)
    results = []

    def worker() -> None:
        barrier.wait()
        results.append(limiter.accept("ABCD", 42))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 1


def test_clear() -> None:
    limiter = RateLimiter(window_ms=5000)
    limiter.accept("ABCD", 0)
    limiter.clear()
    assert limiter.accept("ABCD", 1)
