"""
Fixed-window rate limiter for the Work Requests service.
"""

import math
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as redis

from shared.logging import get_logger


# Buckets whose window started longer ago than this are eligible for cleanup
STALE_BUCKET_AGE_MS = 10 * 60 * 1000
GC_PROBABILITY = 0.01


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_at: int  # epoch milliseconds of the next window start

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


class InMemoryBucketStore:
    """Process-local bucket table keyed by ``(identity, window_index)``."""

    def __init__(self):
        self._buckets: Dict[Tuple[str, int], int] = {}
        self._lock = threading.Lock()

    async def hit(self, identity: str, window_index: int, window_ms: int, max_requests: int) -> Tuple[bool, int]:
        """Atomically admit-and-increment. Returns (allowed, count before this hit)."""
        key = (identity, window_index)
        with self._lock:
            current = self._buckets.get(key, 0)
            if current >= max_requests:
                return False, current
            self._buckets[key] = current + 1
            return True, current

    async def sweep(self, cutoff_ms: int, window_ms: int, current_index: int) -> int:
        """Delete buckets whose window started before ``cutoff_ms``."""
        with self._lock:
            stale = [
                key for key in self._buckets
                if key[1] != current_index and key[1] * window_ms < cutoff_ms
            ]
            for key in stale:
                del self._buckets[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._buckets)

    async def close(self) -> None:
        with self._lock:
            self._buckets.clear()


class RedisBucketStore:
    """Bucket table shared between processes through Redis counters.

    ``INCR`` is atomic, so a request is admitted exactly when its increment
    lands at or below the cap. Keys expire on their own once the window
    is over, so ``sweep`` has nothing to do.
    """

    def __init__(self, redis_url: str, key_prefix: str = "rate_limit"):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.logger = get_logger("work-requests.rate_limit_store")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _make_key(self, identity: str, window_index: int) -> str:
        """Generate rate limit key."""
        return f"{self.key_prefix}:{identity}:{window_index}"

    async def hit(self, identity: str, window_index: int, window_ms: int, max_requests: int) -> Tuple[bool, int]:
        redis_client = await self._get_redis()
        key = self._make_key(identity, window_index)

        async with redis_client.pipeline(transaction=True) as pipeline:
            pipeline.incr(key)
            pipeline.pexpire(key, window_ms + STALE_BUCKET_AGE_MS)
            results = await pipeline.execute()

        new_count = int(results[0])
        if new_count > max_requests:
            return False, max_requests
        return True, new_count - 1

    async def sweep(self, cutoff_ms: int, window_ms: int, current_index: int) -> int:
        return 0

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


class FixedWindowRateLimiter:
    """Admit up to ``max_requests`` per ``window_ms`` for each identity."""

    def __init__(self, store, max_requests: int = 100, window_ms: int = 60000,
                 clock: Optional[Callable[[], int]] = None,
                 random_source: Optional[Callable[[], float]] = None,
                 gc_probability: float = GC_PROBABILITY):
        self.store = store
        self.max_requests = max_requests
        self.window_ms = window_ms
        self.gc_probability = gc_probability
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._random = random_source or random.random
        self.logger = get_logger("work-requests.rate_limiter")

    def window_index(self, now_ms: int) -> int:
        return math.floor(now_ms / self.window_ms)

    async def check(self, identity: str) -> RateLimitResult:
        """Count one request against ``identity`` in the current window."""
        now = self._clock()
        index = self.window_index(now)
        reset_at = (index + 1) * self.window_ms

        try:
            allowed, current = await self.store.hit(identity, index, self.window_ms, self.max_requests)
        except Exception as e:
            # Store outage admits the request rather than failing every call
            self.logger.error("Rate limit check error", error=str(e))
            return RateLimitResult(allowed=True, limit=self.max_requests,
                                   remaining=self.max_requests, reset_at=reset_at)

        if allowed and self._random() < self.gc_probability:
            removed = await self.store.sweep(now - STALE_BUCKET_AGE_MS, self.window_ms, index)
            if removed:
                self.logger.debug("Stale rate limit buckets removed", removed=removed)

        if not allowed:
            return RateLimitResult(allowed=False, limit=self.max_requests, remaining=0, reset_at=reset_at)

        return RateLimitResult(
            allowed=True,
            limit=self.max_requests,
            remaining=self.max_requests - current - 1,
            reset_at=reset_at,
        )

    async def close(self) -> None:
        await self.store.close()


def build_bucket_store(backend: str, redis_url: str):
    """Create the bucket store named by configuration."""
    if backend == "memory":
        return InMemoryBucketStore()
    if backend == "redis":
        return RedisBucketStore(redis_url)
    raise ValueError(f"Unknown rate limit backend: {backend}")
