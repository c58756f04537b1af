"""
Test the nonce replay cache.
"""

import asyncio
import threading

import pytest

from sentinel.tap.nonce import NonceCache


class FakeClock:
    def __init__(self, now_ms: int = 0):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


class TestNonceCache:
    def test_first_insert_wins(self):
        cache = NonceCache()
        assert cache.check_and_insert("n1") is True
        assert cache.check_and_insert("n1") is False
        assert "n1" in cache
        assert len(cache) == 1

    def test_sweep_evicts_only_expired(self):
        clock = FakeClock(0)
        cache = NonceCache(ttl_ms=1000, clock=clock)
        cache.check_and_insert("old")
        clock.now_ms = 900
        cache.check_and_insert("new")

        clock.now_ms = 1500
        assert cache.sweep() == 1
        assert "old" not in cache
        assert "new" in cache

    def test_nonce_reusable_after_eviction(self):
        clock = FakeClock(0)
        cache = NonceCache(ttl_ms=1000, clock=clock)
        cache.check_and_insert("n1")
        clock.now_ms = 5000
        cache.sweep()
        assert cache.check_and_insert("n1") is True

    def test_sweep_in_batches(self):
        clock = FakeClock(0)
        cache = NonceCache(ttl_ms=10, clock=clock, sweep_batch_size=3)
        for i in range(10):
            cache.check_and_insert(f"n{i}")
        clock.now_ms = 100
        assert cache.sweep() == 10
        assert len(cache) == 0

    def test_concurrent_inserts_accept_exactly_once(self):
        cache = NonceCache()
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(cache.check_and_insert("shared"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert results.count(False) == 7

    def test_inserts_during_sweep_survive(self):
        clock = FakeClock(0)
        cache = NonceCache(ttl_ms=1000, clock=clock, sweep_batch_size=50)
        for i in range(5000):
            cache.check_and_insert(f"stale-{i}")
        clock.now_ms = 10_000

        barrier = threading.Barrier(5)
        evicted = []
        accepted = []

        def sweeper():
            barrier.wait()
            evicted.append(cache.sweep())

        def inserter(worker: int):
            barrier.wait()
            for i in range(500):
                accepted.append(cache.check_and_insert(f"fresh-{worker}-{i}"))

        threads = [threading.Thread(target=sweeper)]
        threads += [threading.Thread(target=inserter, args=(w,)) for w in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert evicted == [5000]
        assert accepted.count(True) == 2000
        assert len(cache) == 2000
        assert all(f"fresh-{w}-499" in cache for w in range(4))


@pytest.mark.asyncio
class TestSweeper:
    async def test_background_sweep(self):
        clock = FakeClock(0)
        cache = NonceCache(ttl_ms=10, clock=clock)
        cache.check_and_insert("n1")
        clock.now_ms = 100

        task = cache.start_sweeper(interval_seconds=0.01)
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(cache) == 0
