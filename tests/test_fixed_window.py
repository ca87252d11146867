"""Tests for the fixed window counter strategy."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from distlimit.exceptions import StoreUnavailable
from distlimit.limiters import FixedWindowStrategy


class TestFixedWindowStrategy:
    """Decisions against fakeredis with a pinned clock."""

    @pytest.mark.asyncio
    async def test_allows_up_to_max_requests(self, store, clock):
        """All N requests in a window succeed and the N+1-th fails."""
        strategy = FixedWindowStrategy(store, max_requests=5, window=60_000)

        for k in range(1, 6):
            result = await strategy.is_allowed("user-1")
            assert result.success is True
            assert result.remaining == 5 - k

        result = await strategy.is_allowed("user-1")
        assert result.success is False
        assert result.limit == 5
        assert result.name == "FixedWindowStrategy"

    @pytest.mark.asyncio
    async def test_single_request_limit(self, store, clock):
        strategy = FixedWindowStrategy(store, max_requests=1, window=1000)
        first = await strategy.is_allowed("test-user")
        second = await strategy.is_allowed("test-user")

        assert first.success is True
        assert second.success is False

    @pytest.mark.asyncio
    async def test_zero_max_requests_rejects_first_request(self, store, clock):
        strategy = FixedWindowStrategy(store, max_requests=0, window=1000)
        result = await strategy.is_allowed("test-user")

        assert result.success is False
        assert result.remaining == -1

    @pytest.mark.asyncio
    async def test_remaining_keeps_raw_negative_value(self, store, clock):
        """Remaining is not clamped once the limit is exceeded."""
        strategy = FixedWindowStrategy(store, max_requests=1, window=1000)
        await strategy.is_allowed("test-user")
        await strategy.is_allowed("test-user")
        result = await strategy.is_allowed("test-user")

        assert result.remaining == -2
        assert result.metadata == {"count": 3}

    @pytest.mark.asyncio
    async def test_window_rollover_starts_fresh_counter(self, store, clock):
        strategy = FixedWindowStrategy(store, max_requests=1, window=1000)
        assert (await strategy.is_allowed("test-user")).success is True
        assert (await strategy.is_allowed("test-user")).success is False

        clock.advance(1000)

        result = await strategy.is_allowed("test-user")
        assert result.success is True
        assert result.remaining == 0

    @pytest.mark.asyncio
    async def test_reset_is_window_boundary(self, store, clock):
        strategy = FixedWindowStrategy(store, max_requests=3, window=60_000)
        clock.advance(15_000)

        result = await strategy.is_allowed("user-1")

        assert result.reset == clock.now - 15_000 + 60_000

    @pytest.mark.asyncio
    async def test_duration_string_window(self, store, clock):
        strategy = FixedWindowStrategy(store, max_requests=5, window="1 m")
        assert strategy.window_ms == 60_000

    @pytest.mark.asyncio
    async def test_key_embeds_window_index_and_expires(self, store, redis_client, clock):
        strategy = FixedWindowStrategy(store, max_requests=5, window=60_000)
        await strategy.is_allowed("user-1")

        key = f"fixed-window:/fx/{{user-1}}/{clock.now // 60_000}"
        assert await redis_client.get(key) == b"1"
        ttl = await redis_client.pttl(key)
        assert 0 < ttl <= 60_000

    @pytest.mark.asyncio
    async def test_different_identifiers_independent(self, store, clock):
        strategy = FixedWindowStrategy(store, max_requests=1, window=60_000)
        await strategy.is_allowed("user-1")

        assert (await strategy.is_allowed("user-1")).success is False
        assert (await strategy.is_allowed("user-2")).success is True

    @pytest.mark.asyncio
    async def test_reset_restores_initial_state(self, store, clock):
        strategy = FixedWindowStrategy(store, max_requests=2, window=60_000)
        await strategy.is_allowed("user-1")
        await strategy.is_allowed("user-1")

        await strategy.reset("user-1")

        result = await strategy.is_allowed("user-1")
        assert result.success is True
        assert result.remaining == 1

    @pytest.mark.asyncio
    async def test_reset_only_touches_current_window(self, store, redis_client, clock):
        strategy = FixedWindowStrategy(store, max_requests=2, window=1000)
        await strategy.is_allowed("user-1")
        old_key = f"fixed-window:/fx/{{user-1}}/{clock.now // 1000}"

        clock.advance(1000)
        await strategy.is_allowed("user-1")
        await strategy.reset("user-1")

        assert await redis_client.exists(old_key) == 1

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_serialized(self, store, clock):
        """Exactly max_requests of many concurrent callers succeed."""
        strategy = FixedWindowStrategy(store, max_requests=10, window=60_000)

        results = await asyncio.gather(
            *(strategy.is_allowed("user-1") for _ in range(25))
        )

        assert sum(1 for r in results if r.success) == 10
        assert sorted(r.metadata["count"] for r in results) == list(range(1, 26))

    def test_rejects_invalid_configuration(self, store):
        with pytest.raises(ValueError):
            FixedWindowStrategy(store, max_requests=-1, window=1000)
        with pytest.raises(ValueError):
            FixedWindowStrategy(store, max_requests=1, window=0)
        with pytest.raises(ValueError):
            FixedWindowStrategy(store, max_requests=1, window="ten seconds")


class TestFixedWindowStoreFailures:
    """Store errors surface unchanged."""

    @pytest.mark.asyncio
    async def test_store_error_propagates(self):
        store = MagicMock()
        store.eval_script = AsyncMock(side_effect=StoreUnavailable("Redis down"))
        strategy = FixedWindowStrategy(store, max_requests=5, window=1000)

        with pytest.raises(StoreUnavailable):
            await strategy.is_allowed("user-1")
