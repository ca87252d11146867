"""Tests for the composite limiter."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from distlimit.exceptions import CompositeResetFailure, StoreTimeout, StoreUnavailable
from distlimit.limiters import (
    ConcurrencyStrategy,
    FixedWindowStrategy,
    Ratelimit,
    RateLimiterResult,
    RateLimiterStrategy,
    TokenBucketStrategy,
)


class StubStrategy(RateLimiterStrategy):
    """Strategy with a canned decision and call tracking."""

    def __init__(self, name, success=True, reset_error=None, decide_error=None):
        super().__init__(store=None, prefix=f"{name}:")
        self.name = name
        self.success = success
        self.reset_error = reset_error
        self.decide_error = decide_error
        self.is_allowed_calls = 0
        self.reset_calls = 0

    async def is_allowed(self, identifier):
        self.is_allowed_calls += 1
        if self.decide_error is not None:
            raise self.decide_error
        return RateLimiterResult(
            success=self.success,
            remaining=1 if self.success else 0,
            reset=0,
            limit=1,
            name=self.name,
        )

    async def reset(self, identifier):
        self.reset_calls += 1
        if self.reset_error is not None:
            raise self.reset_error


class TestCompositeDecision:
    @pytest.mark.asyncio
    async def test_all_allow(self):
        limiters = [StubStrategy("a"), StubStrategy("b")]
        results = await Ratelimit(limiters).is_allowed("user-1")

        assert [r.name for r in results] == ["a", "b"]
        assert all(r.success for r in results)
        assert Ratelimit.blocking_result(results) is None

    @pytest.mark.asyncio
    async def test_stops_at_first_rejection(self):
        a, b, c = StubStrategy("a"), StubStrategy("b", success=False), StubStrategy("c")

        results = await Ratelimit([a, b, c]).is_allowed("user-1")

        assert [r.name for r in results] == ["a", "b"]
        assert results[-1].success is False
        assert c.is_allowed_calls == 0
        assert Ratelimit.blocking_result(results).name == "b"

    @pytest.mark.asyncio
    async def test_single_limiter_form(self):
        results = await Ratelimit(StubStrategy("only")).is_allowed("user-1")

        assert len(results) == 1
        assert results[0].name == "only"

    @pytest.mark.asyncio
    async def test_store_error_propagates_without_partial_results(self):
        a = StubStrategy("a")
        b = StubStrategy("b", decide_error=StoreTimeout("slow"))
        c = StubStrategy("c")

        with pytest.raises(StoreTimeout):
            await Ratelimit([a, b, c]).is_allowed("user-1")

        assert c.is_allowed_calls == 0

    def test_empty_limiter_list_rejected(self):
        with pytest.raises(ValueError):
            Ratelimit([])

    def test_blocking_result_of_empty_results(self):
        assert Ratelimit.blocking_result([]) is None


class TestCompositeReset:
    @pytest.mark.asyncio
    async def test_resets_every_limiter(self):
        limiters = [StubStrategy("a"), StubStrategy("b"), StubStrategy("c")]

        await Ratelimit(limiters).reset("user-1")

        assert [lim.reset_calls for lim in limiters] == [1, 1, 1]

    @pytest.mark.asyncio
    async def test_failure_still_attempts_all_resets(self):
        first_error = StoreUnavailable("down")
        second_error = StoreTimeout("slow")
        limiters = [
            StubStrategy("a", reset_error=first_error),
            StubStrategy("b"),
            StubStrategy("c", reset_error=second_error),
        ]

        with pytest.raises(CompositeResetFailure) as exc_info:
            await Ratelimit(limiters).reset("user-1")

        assert [lim.reset_calls for lim in limiters] == [1, 1, 1]
        assert exc_info.value.errors == [first_error, second_error]
        assert exc_info.value.__cause__ is first_error
        assert "2 limiter reset(s) failed" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_cancellation_is_not_wrapped(self):
        limiter = StubStrategy("a")
        limiter.reset = AsyncMock(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await Ratelimit([limiter, StubStrategy("b")]).reset("user-1")


class TestCompositeWithRedis:
    """The three real strategies sharing one fakeredis store."""

    @pytest.mark.asyncio
    async def test_rejecting_limiter_leaves_later_limiters_untouched(
        self, store, redis_client, clock
    ):
        fixed = FixedWindowStrategy(store, max_requests=1, window="1 m")
        concurrency = ConcurrencyStrategy(store, max_concurrent_requests=5, timeout="30 s")
        ratelimit = Ratelimit([fixed, concurrency])

        await ratelimit.is_allowed("user-1")
        results = await ratelimit.is_allowed("user-1")

        assert [r.name for r in results] == ["FixedWindowStrategy"]
        # Only the first call acquired a slot
        assert await redis_client.get("concurrency:/cc/{user-1}/count") == b"1"

    @pytest.mark.asyncio
    async def test_reset_restores_every_limiter(self, store, clock):
        ratelimit = Ratelimit([
            FixedWindowStrategy(store, max_requests=1, window="1 m"),
            TokenBucketStrategy(store, 1, "1 m", window_type="sliding"),
            ConcurrencyStrategy(store, max_concurrent_requests=1),
        ])
        first = await ratelimit.is_allowed("user-1")
        assert Ratelimit.blocking_result(first) is None
        assert Ratelimit.blocking_result(await ratelimit.is_allowed("user-1")) is not None

        await ratelimit.reset("user-1")

        results = await ratelimit.is_allowed("user-1")
        assert len(results) == 3
        assert Ratelimit.blocking_result(results) is None
