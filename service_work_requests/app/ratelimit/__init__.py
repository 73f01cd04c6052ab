"""
Rate limiting package for the Work Requests service.

Holds the fixed-window limiter and its bucket stores (process-local or
Redis-backed) that enforce per-identity request budgets.
"""

from .fixed_window import (
    FixedWindowRateLimiter,
    InMemoryBucketStore,
    RateLimitResult,
    RedisBucketStore,
    build_bucket_store,
)

__all__ = [
    "FixedWindowRateLimiter",
    "InMemoryBucketStore",
    "RateLimitResult",
    "RedisBucketStore",
    "build_bucket_store",
]
