"""Concurrency slot strategy.

Bounds the number of in-flight operations per identifier. A slot is held
until it is released or until the key's TTL elapses, which is the only
recovery path for holders that crash without releasing.
"""

import inspect
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Union

from distlimit.core import utils
from distlimit.exceptions import ConcurrencyLimitExceeded
from distlimit.limiters.base import RateLimiterStrategy
from distlimit.limiters.models import RateLimiterResult
from distlimit.limiters.redis_lua import (
    CONCURRENCY_ACQUIRE_SCRIPT,
    CONCURRENCY_RELEASE_SCRIPT,
)
from distlimit.store.base import AtomicStore

logger = logging.getLogger(__name__)


class ConcurrencyStrategy(RateLimiterStrategy):
    """Limits simultaneously held slots per identifier.

    Redis key format:
    - {prefix}/cc/{identifier}/count
    """

    name = "ConcurrencyStrategy"

    def __init__(
        self,
        store: AtomicStore,
        max_concurrent_requests: int,
        timeout: Union[int, str] = 30_000,
        prefix: str = "concurrency:",
    ):
        """Initialize the concurrency limiter.

        Args:
            store: Atomic store shared by all callers
            max_concurrent_requests: Slots available per identifier
            timeout: Slot TTL in ms (or a duration string); a leaked slot is
                recovered once it elapses
            prefix: Key prefix
        """
        super().__init__(store, prefix)
        if max_concurrent_requests < 0:
            raise ValueError("max_concurrent_requests must not be negative")
        self.max_concurrent_requests = max_concurrent_requests
        self.timeout_ms = utils.parse_duration(timeout)
        if self.timeout_ms <= 0:
            raise ValueError("timeout must be positive")

    def _make_key(self, identifier: str) -> str:
        return utils.make_key(self.prefix, "cc", identifier, "count")

    async def is_allowed(self, identifier: str) -> RateLimiterResult:
        """Try to acquire a slot for ``identifier``."""
        key = self._make_key(identifier)
        now = utils.now_ms()

        allowed, remaining, current = await self.store.eval_script(
            CONCURRENCY_ACQUIRE_SCRIPT,
            [key],
            [self.max_concurrent_requests, self.timeout_ms],
        )

        success = int(allowed) == 1
        if not success:
            logger.debug(
                f"No free concurrency slot for {identifier}: "
                f"{current}/{self.max_concurrent_requests}",
                extra={"identifier": identifier, "limiter": self.name, "key": key},
            )

        return RateLimiterResult(
            success=success,
            remaining=int(remaining),
            reset=now + self.timeout_ms,
            limit=self.max_concurrent_requests,
            name=self.name,
            metadata={"current_concurrent_requests": int(current)},
        )

    acquire = is_allowed

    async def release(self, identifier: str) -> None:
        """Give back one slot. Releasing with no slot held is a no-op."""
        await self.store.eval_script(
            CONCURRENCY_RELEASE_SCRIPT, [self._make_key(identifier)], []
        )

    async def reset(self, identifier: str) -> None:
        await self.store.delete(self._make_key(identifier))

    @asynccontextmanager
    async def slot(self, identifier: str) -> AsyncIterator[RateLimiterResult]:
        """Hold a slot for the duration of an ``async with`` block.

        Raises:
            ConcurrencyLimitExceeded: If no slot is free; the block never runs
        """
        result = await self.is_allowed(identifier)
        if not result.success:
            raise ConcurrencyLimitExceeded(
                current=result.metadata["current_concurrent_requests"],
                limit=self.max_concurrent_requests,
                identifier=identifier,
            )
        try:
            yield result
        finally:
            await self.release(identifier)

    async def wrap(
        self,
        identifier: str,
        operation: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Run ``operation`` while holding a slot.

        The slot is released exactly once on every exit path, whether the
        operation returns or raises. ``operation`` may be a coroutine
        function or a plain callable.

        Raises:
            ConcurrencyLimitExceeded: If no slot is free; ``operation`` is
                not invoked
        """
        async with self.slot(identifier):
            result = operation(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            return result
