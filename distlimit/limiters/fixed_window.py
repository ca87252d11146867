"""Fixed window counter strategy."""

import logging
from typing import Union

from distlimit.core import utils
from distlimit.limiters.base import RateLimiterStrategy
from distlimit.limiters.models import RateLimiterResult
from distlimit.limiters.redis_lua import FIXED_WINDOW_SCRIPT
from distlimit.store.base import AtomicStore

logger = logging.getLogger(__name__)


class FixedWindowStrategy(RateLimiterStrategy):
    """Counts requests per identifier within aligned time windows.

    The window index ``floor(now / window)`` is part of the key, so every
    window starts from a fresh counter and old counters simply expire.

    Redis key format:
    - {prefix}/fx/{identifier}/{window_index}
    """

    name = "FixedWindowStrategy"

    def __init__(
        self,
        store: AtomicStore,
        max_requests: int,
        window: Union[int, str],
        prefix: str = "fixed-window:",
    ):
        """Initialize the fixed window counter.

        Args:
            store: Atomic store shared by all callers
            max_requests: Requests allowed per window (0 rejects everything)
            window: Window length in ms, or a duration string like "1 m"
            prefix: Key prefix
        """
        super().__init__(store, prefix)
        if max_requests < 0:
            raise ValueError("max_requests must not be negative")
        self.max_requests = max_requests
        self.window_ms = utils.parse_duration(window)
        if self.window_ms <= 0:
            raise ValueError("window must be positive")

    def _make_key(self, identifier: str, now: int) -> str:
        return utils.make_key(
            self.prefix, "fx", identifier, utils.window_index(now, self.window_ms)
        )

    async def is_allowed(self, identifier: str) -> RateLimiterResult:
        now = utils.now_ms()
        key = self._make_key(identifier, now)

        allowed, remaining, count = await self.store.eval_script(
            FIXED_WINDOW_SCRIPT,
            [key],
            [self.max_requests, self.window_ms],
        )

        success = int(allowed) == 1
        if not success:
            logger.debug(
                f"Fixed window limit reached for {identifier}: {count}/{self.max_requests}",
                extra={"identifier": identifier, "limiter": self.name, "key": key},
            )

        return RateLimiterResult(
            success=success,
            remaining=int(remaining),
            reset=(utils.window_index(now, self.window_ms) + 1) * self.window_ms,
            limit=self.max_requests,
            name=self.name,
            metadata={"count": int(count)},
        )

    async def reset(self, identifier: str) -> None:
        """Delete the current window's counter; later windows are unaffected."""
        await self.store.delete(self._make_key(identifier, utils.now_ms()))
