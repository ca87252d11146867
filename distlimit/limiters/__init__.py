"""Rate limiting strategies backed by atomic Redis scripts.

Every read-modify-write sequence runs as a single Lua script, so replicas
sharing one Redis agree on each decision without coordinating.
"""

from distlimit.limiters.models import RateLimiterResult, WindowType
from distlimit.limiters.base import RateLimiterStrategy
from distlimit.limiters.fixed_window import FixedWindowStrategy
from distlimit.limiters.token_bucket import TokenBucketStrategy
from distlimit.limiters.concurrency import ConcurrencyStrategy
from distlimit.limiters.composite import Ratelimit
from distlimit.limiters.factory import (
    create_default_limiters,
    create_ratelimit,
    get_store,
    reset_store,
)

__all__ = [
    # Models
    "RateLimiterResult",
    "WindowType",
    # Strategies
    "RateLimiterStrategy",
    "FixedWindowStrategy",
    "TokenBucketStrategy",
    "ConcurrencyStrategy",
    # Composite
    "Ratelimit",
    # Factory
    "create_default_limiters",
    "create_ratelimit",
    "get_store",
    "reset_store",
]
