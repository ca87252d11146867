"""Tests for building limiters from settings."""

from unittest.mock import patch

import pytest

from distlimit.core.config import Settings
from distlimit.limiters import (
    ConcurrencyStrategy,
    FixedWindowStrategy,
    TokenBucketStrategy,
    WindowType,
    create_default_limiters,
    create_ratelimit,
    get_store,
    reset_store,
)
from distlimit.store.redis_store import RedisStore


class TestStoreSingleton:
    def test_get_store_returns_same_instance(self, redis_client):
        first = get_store(redis_client=redis_client)

        assert get_store() is first
        assert isinstance(first, RedisStore)

    def test_force_new_and_reset(self, redis_client):
        first = get_store(redis_client=redis_client)

        assert get_store(redis_client=redis_client, force_new=True) is not first

        reset_store()
        assert get_store(redis_client=redis_client) is not first


class TestCreateDefaultLimiters:
    def test_builds_strategies_from_settings(self, store):
        config = Settings(
            _env_file=None,
            key_prefix="api",
            fixed_window_max_requests=5,
            fixed_window_window="10 s",
            token_bucket_capacity=20,
            token_bucket_interval="1 m",
            token_bucket_take_rate=2,
            token_bucket_window_type="sliding",
            token_bucket_refill_rate=4,
            concurrency_max_requests=3,
            concurrency_timeout="5 s",
        )

        fixed, bucket, concurrency = create_default_limiters(store, config)

        assert isinstance(fixed, FixedWindowStrategy)
        assert fixed.max_requests == 5
        assert fixed.window_ms == 10_000
        assert fixed.prefix == "api:fixed-window:"

        assert isinstance(bucket, TokenBucketStrategy)
        assert bucket.capacity == 20
        assert bucket.interval_ms == 60_000
        assert bucket.take_rate == 2
        assert bucket.refill_rate == 4
        assert bucket.window_type is WindowType.SLIDING
        assert bucket.prefix == "api:token-bucket:"

        assert isinstance(concurrency, ConcurrencyStrategy)
        assert concurrency.max_concurrent_requests == 3
        assert concurrency.timeout_ms == 5000
        assert concurrency.prefix == "api:concurrency:"

    def test_empty_key_prefix(self, store):
        limiters = create_default_limiters(store, Settings(_env_file=None, key_prefix=""))

        assert [lim.prefix for lim in limiters] == [
            "fixed-window:",
            "token-bucket:",
            "concurrency:",
        ]


class TestCreateRatelimit:
    @pytest.mark.asyncio
    async def test_keys_are_namespaced(self, store, redis_client, clock):
        ratelimit = create_ratelimit(store, Settings(_env_file=None, key_prefix="svc"))

        results = await ratelimit.is_allowed("user-1")

        assert [r.success for r in results] == [True, True, True]
        keys = sorted(k.decode() for k in await redis_client.keys("*"))
        assert keys == [
            "svc:concurrency:/cc/{user-1}/count",
            f"svc:fixed-window:/fx/{{user-1}}/{clock.now // 60_000}",
            f"svc:token-bucket:/bt/{{user-1}}/{clock.now}",
        ]

    def test_uses_global_store_by_default(self):
        with patch("distlimit.limiters.factory.get_store") as mock_get_store:
            ratelimit = create_ratelimit(config=Settings(_env_file=None))

        mock_get_store.assert_called_once_with()
        assert all(lim.store is mock_get_store.return_value for lim in ratelimit.limiters)
