"""
Nonce Replay Guard

Process-wide record of every TAP nonce seen, evicted only after a TTL.
"""

import asyncio
import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_NONCE_TTL_MS = 60 * 60 * 1000
DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0


def _now_ms() -> int:
    return int(time.time() * 1000)


class NonceCache:
    """
    Insert-only nonce store with TTL eviction.

    A nonce present in the cache is always rejected. Inserts, lookups and
    sweeps are serialized by a single lock; sweeps delete in batches so
    concurrent verifications are never blocked for a full scan.

    Usage:
        cache = NonceCache(ttl_ms=3_600_000)
        if not cache.check_and_insert(nonce):
            reject("Replay detected")
    """

    def __init__(
        self,
        ttl_ms: int = DEFAULT_NONCE_TTL_MS,
        clock: Optional[Callable[[], int]] = None,
        sweep_batch_size: int = 500,
    ):
        """
        Args:
            ttl_ms: How long a nonce stays in the cache
            clock: Returns the current time in milliseconds
            sweep_batch_size: Deletions per lock acquisition during a sweep
        """
        self.ttl_ms = ttl_ms
        self._clock = clock or _now_ms
        self._batch_size = max(1, sweep_batch_size)
        self._seen: dict[str, int] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def __contains__(self, nonce: str) -> bool:
        with self._lock:
            return nonce in self._seen

    def check_and_insert(self, nonce: str) -> bool:
        """Record the nonce; False if it was already present (first writer wins)"""
        now = self._clock()
        with self._lock:
            if nonce in self._seen:
                return False
            self._seen[nonce] = now
            return True

    def sweep(self) -> int:
        """Remove entries older than the TTL, returning how many were evicted"""
        cutoff = self._clock() - self.ttl_ms
        with self._lock:
            snapshot = list(self._seen.items())
        expired = [nonce for nonce, seen_at in snapshot if seen_at < cutoff]

        removed = 0
        for start in range(0, len(expired), self._batch_size):
            batch = expired[start:start + self._batch_size]
            with self._lock:
                for nonce in batch:
                    seen_at = self._seen.get(nonce)
                    if seen_at is not None and seen_at < cutoff:
                        del self._seen[nonce]
                        removed += 1

        if removed:
            logger.debug(f"Evicted {removed} expired TAP nonces")
        return removed

    async def run_sweeper(self, interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS) -> None:
        """Sweep forever at a fixed interval; stops when the task is cancelled"""
        while True:
            await asyncio.sleep(interval_seconds)
            self.sweep()

    def start_sweeper(
        self, interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS
    ) -> "asyncio.Task[None]":
        """Schedule the background sweep on the running event loop"""
        return asyncio.get_running_loop().create_task(self.run_sweeper(interval_seconds))
