"""Atomic store adapters."""

from distlimit.store.base import AtomicStore
from distlimit.store.redis_store import RedisStore

__all__ = [
    "AtomicStore",
    "RedisStore",
]
