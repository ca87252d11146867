"""
Shared pytest fixtures.

Redis is replaced by fakeredis (with Lua support) so the real atomic scripts
run in-process. Limiter time is pinned through ``distlimit.core.utils.now_ms``.
"""

from unittest.mock import patch

import pytest
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis

from distlimit.limiters.factory import reset_store
from distlimit.store.redis_store import RedisStore

# Aligned to 1 minute, 10 seconds and 6 hours so every test window starts here
START_MS = 1_700_006_400_000


class FakeClock:
    """Callable replacement for ``now_ms`` that only moves when told to."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset global state before each test."""
    reset_store()
    yield
    reset_store()


@pytest.fixture
def redis_client():
    """Isolated in-process Redis for one test."""
    return FakeRedis(server=FakeServer())


@pytest.fixture
def store(redis_client):
    return RedisStore(redis_client=redis_client, operation_timeout=None)


@pytest.fixture
def clock():
    fake = FakeClock()
    with patch("distlimit.core.utils.now_ms", fake):
        yield fake
