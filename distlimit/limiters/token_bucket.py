"""Token bucket strategy with fixed and sliding refill policies."""

import logging
from typing import Optional, Union

from distlimit.core import utils
from distlimit.limiters.base import RateLimiterStrategy
from distlimit.limiters.models import Number, RateLimiterResult, WindowType, to_number
from distlimit.limiters.redis_lua import (
    TOKEN_BUCKET_FIXED_SCRIPT,
    TOKEN_BUCKET_SLIDING_SCRIPT,
)
from distlimit.store.base import AtomicStore

logger = logging.getLogger(__name__)


class TokenBucketStrategy(RateLimiterStrategy):
    """Capacity-bounded bucket that depletes per request.

    Two refill policies are supported:

    - ``WindowType.FIXED``: the aligned window start is part of the key, so
      each window begins with a full bucket. No refill arithmetic.
    - ``WindowType.SLIDING``: one persistent bucket per identifier, refilled
      by ``floor(elapsed_ms * refill_rate / interval)`` tokens on every
      successful decision. Fractions of a token are discarded.

    Decisions (``is_allowed``) cost ``take_rate`` tokens; ``update_tokens``
    runs the same atomic probe-and-commit with a caller-supplied cost, for
    operations whose real cost is only known afterwards.

    Redis key format:
    - {prefix}/bt/{identifier}/{window_start_ms}  (fixed)
    - {prefix}/bt/{identifier}/sliding            (sliding)
    """

    name = "TokenBucketStrategy"

    def __init__(
        self,
        store: AtomicStore,
        capacity: Number,
        interval: Union[int, str],
        take_rate: Number = 1,
        window_type: Union[WindowType, str] = WindowType.FIXED,
        refill_rate: Optional[Number] = None,
        prefix: str = "token-bucket:",
    ):
        """Initialize the token bucket.

        Args:
            store: Atomic store shared by all callers
            capacity: Maximum tokens in the bucket
            interval: Reset/refill period in ms, or a duration string like "6 h"
            take_rate: Tokens consumed by each ``is_allowed`` call
            window_type: FIXED or SLIDING refill policy
            refill_rate: Tokens added per elapsed interval (sliding only).
                Defaults to ``capacity``: an empty bucket is full again after
                one interval.
            prefix: Key prefix
        """
        super().__init__(store, prefix)
        self.capacity = capacity
        self.interval_ms = utils.parse_duration(interval)
        self.take_rate = take_rate
        self.window_type = WindowType(window_type)
        self.refill_rate = capacity if refill_rate is None else refill_rate

        if self.capacity < 0:
            raise ValueError("capacity must not be negative")
        if self.interval_ms <= 0:
            raise ValueError("interval must be positive")
        if self.take_rate < 0:
            raise ValueError("take_rate must not be negative")
        if self.refill_rate < 0:
            raise ValueError("refill_rate must not be negative")

    def _window_start(self, now: int) -> int:
        return utils.window_index(now, self.interval_ms) * self.interval_ms

    def _make_key(self, identifier: str, now: int) -> str:
        if self.window_type is WindowType.FIXED:
            return utils.make_key(self.prefix, "bt", identifier, self._window_start(now))
        return utils.make_key(self.prefix, "bt", identifier, "sliding")

    async def _consume(self, identifier: str, cost: Number) -> RateLimiterResult:
        """Atomically refill (sliding only), check and subtract ``cost`` tokens."""
        now = utils.now_ms()
        key = self._make_key(identifier, now)

        if self.window_type is WindowType.SLIDING:
            reply = await self.store.eval_script(
                TOKEN_BUCKET_SLIDING_SCRIPT,
                [key],
                [now, self.capacity, self.interval_ms, self.refill_rate, cost],
            )
        else:
            reply = await self.store.eval_script(
                TOKEN_BUCKET_FIXED_SCRIPT,
                [key],
                [self.capacity, self.interval_ms, cost, self._window_start(now)],
            )

        allowed, tokens, reset = reply
        success = int(allowed) == 1
        remaining = to_number(tokens)
        if not success:
            logger.debug(
                f"Token bucket for {identifier} has {remaining} tokens, {cost} requested",
                extra={
                    "identifier": identifier,
                    "limiter": self.name,
                    "key": key,
                    "remaining": remaining,
                },
            )

        return RateLimiterResult(
            success=success,
            remaining=remaining,
            reset=int(to_number(reset)),
            limit=self.capacity,
            name=self.name,
            metadata={"window_type": self.window_type.value, "cost": cost},
        )

    async def is_allowed(self, identifier: str) -> RateLimiterResult:
        return await self._consume(identifier, self.take_rate)

    async def update_tokens(self, identifier: str, amount: Number) -> RateLimiterResult:
        """Consume ``amount`` tokens in one atomic probe-and-commit.

        Used when the true cost of an operation is known only after it was
        admitted. A request for more tokens than available leaves the bucket
        untouched and returns ``success=False``.
        """
        if amount < 0:
            raise ValueError("amount must not be negative")
        return await self._consume(identifier, amount)

    async def reset(self, identifier: str) -> None:
        """Delete the bucket (the current window's bucket in fixed mode)."""
        await self.store.delete(self._make_key(identifier, utils.now_ms()))
