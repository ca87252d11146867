"""Distributed rate limiting on top of Redis atomic scripts.

Basic usage:
    >>> from distlimit import FixedWindowStrategy, Ratelimit, RedisStore
    >>> store = RedisStore(redis_url="redis://localhost:6379/0")
    >>> ratelimit = Ratelimit(FixedWindowStrategy(store, max_requests=5, window="1 m"))
    >>> results = await ratelimit.is_allowed("user-123")
"""

from distlimit.exceptions import (
    CompositeResetFailure,
    ConcurrencyLimitExceeded,
    RateLimitError,
    StoreError,
    StoreTimeout,
    StoreUnavailable,
)
from distlimit.limiters import (
    ConcurrencyStrategy,
    FixedWindowStrategy,
    Ratelimit,
    RateLimiterResult,
    RateLimiterStrategy,
    TokenBucketStrategy,
    WindowType,
    create_default_limiters,
    create_ratelimit,
)
from distlimit.store import AtomicStore, RedisStore

__version__ = "0.1.0"

__all__ = [
    # Limiters
    "RateLimiterStrategy",
    "FixedWindowStrategy",
    "TokenBucketStrategy",
    "ConcurrencyStrategy",
    "Ratelimit",
    "RateLimiterResult",
    "WindowType",
    "create_default_limiters",
    "create_ratelimit",
    # Store
    "AtomicStore",
    "RedisStore",
    # Errors
    "RateLimitError",
    "StoreError",
    "StoreUnavailable",
    "StoreTimeout",
    "ConcurrencyLimitExceeded",
    "CompositeResetFailure",
]
