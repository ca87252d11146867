"""Build stores and limiters from settings."""

from typing import Any, Optional

from distlimit.core.config import Settings, settings as default_settings
from distlimit.limiters.base import RateLimiterStrategy
from distlimit.limiters.composite import Ratelimit
from distlimit.limiters.concurrency import ConcurrencyStrategy
from distlimit.limiters.fixed_window import FixedWindowStrategy
from distlimit.limiters.token_bucket import TokenBucketStrategy
from distlimit.store.base import AtomicStore
from distlimit.store.redis_store import RedisStore

# Global store instance (singleton pattern)
_store_instance: Optional[AtomicStore] = None


def get_store(
    redis_client: Optional[Any] = None,
    redis_url: Optional[str] = None,
    force_new: bool = False,
) -> AtomicStore:
    """Get or create the global store instance.

    Args:
        redis_client: Optional existing ``redis.asyncio`` client
        redis_url: Redis connection URL. If not provided, uses settings.redis_url.
        force_new: If True, create a new instance even if one exists.
    """
    global _store_instance
    if _store_instance is None or force_new:
        _store_instance = RedisStore(redis_client=redis_client, redis_url=redis_url)
    return _store_instance


def reset_store() -> None:
    """Reset the global store instance.

    This is primarily useful for testing.
    """
    global _store_instance
    _store_instance = None


def _prefix(config: Settings, kind: str) -> str:
    # Same trailing-colon form as the strategies' default prefixes
    if not config.key_prefix:
        return f"{kind}:"
    return f"{config.key_prefix}:{kind}:"


def create_default_limiters(
    store: AtomicStore,
    config: Optional[Settings] = None,
) -> list[RateLimiterStrategy]:
    """Create the fixed window, token bucket and concurrency strategies.

    Limits come from settings; every key is namespaced by ``key_prefix``.
    """
    config = config or default_settings
    return [
        FixedWindowStrategy(
            store,
            max_requests=config.fixed_window_max_requests,
            window=config.fixed_window_window,
            prefix=_prefix(config, "fixed-window"),
        ),
        TokenBucketStrategy(
            store,
            capacity=config.token_bucket_capacity,
            interval=config.token_bucket_interval,
            take_rate=config.token_bucket_take_rate,
            window_type=config.token_bucket_window_type,
            refill_rate=config.token_bucket_refill_rate,
            prefix=_prefix(config, "token-bucket"),
        ),
        ConcurrencyStrategy(
            store,
            max_concurrent_requests=config.concurrency_max_requests,
            timeout=config.concurrency_timeout,
            prefix=_prefix(config, "concurrency"),
        ),
    ]


def create_ratelimit(
    store: Optional[AtomicStore] = None,
    config: Optional[Settings] = None,
) -> Ratelimit:
    """Create a composite limiter over the default strategies."""
    return Ratelimit(create_default_limiters(store or get_store(), config))
