"""Composite limiter that runs several strategies as one decision."""

import asyncio
import logging
from typing import Optional, Sequence, Union

from distlimit.exceptions import CompositeResetFailure
from distlimit.limiters.base import RateLimiterStrategy
from distlimit.limiters.models import RateLimiterResult

logger = logging.getLogger(__name__)


class Ratelimit:
    """Ordered, fail-fast combination of rate limiting strategies.

    ``is_allowed`` evaluates the strategies in configuration order and stops
    at the first rejection, so later strategies see no side effects for that
    call. No atomicity is provided across strategies.

    Example:
        >>> ratelimit = Ratelimit([
        ...     FixedWindowStrategy(store, max_requests=5, window="1 m"),
        ...     ConcurrencyStrategy(store, max_concurrent_requests=3),
        ... ])
        >>> results = await ratelimit.is_allowed("203.0.113.7")
        >>> blocked = Ratelimit.blocking_result(results)
    """

    def __init__(
        self,
        limiter: Union[RateLimiterStrategy, Sequence[RateLimiterStrategy]],
    ) -> None:
        if isinstance(limiter, RateLimiterStrategy):
            limiters = [limiter]
        else:
            limiters = list(limiter)
        if not limiters:
            raise ValueError("Ratelimit needs at least one limiter")
        self.limiters: list[RateLimiterStrategy] = limiters

    async def is_allowed(self, identifier: str) -> list[RateLimiterResult]:
        """Evaluate each strategy in order, stopping at the first rejection.

        Returns:
            One result per evaluated strategy. If a request was rejected, the
            last element is the rejecting strategy's result.

        Raises:
            StoreError: Propagated unchanged from the failing strategy; no
                partial list is returned
        """
        results: list[RateLimiterResult] = []
        for limiter in self.limiters:
            result = await limiter.is_allowed(identifier)
            results.append(result)
            if not result.success:
                logger.debug(
                    f"Request for {identifier} rejected by {result.name}",
                    extra={"identifier": identifier, "limiter": result.name},
                )
                break
        return results

    async def reset(self, identifier: str) -> None:
        """Reset every strategy concurrently.

        All resets are attempted even if some fail; successful resets are
        not rolled back.

        Raises:
            CompositeResetFailure: If any reset failed, chained to the first
                failure
        """
        outcomes = await asyncio.gather(
            *(limiter.reset(identifier) for limiter in self.limiters),
            return_exceptions=True,
        )
        for outcome in outcomes:
            # Cancellation is not a reset failure
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
        errors = [outcome for outcome in outcomes if isinstance(outcome, Exception)]
        if not errors:
            return
        for limiter, outcome in zip(self.limiters, outcomes):
            if isinstance(outcome, Exception):
                logger.error(
                    f"Reset failed for {limiter!r}: {outcome}",
                    extra={"identifier": identifier, "limiter": limiter.name},
                )
        raise CompositeResetFailure(errors) from errors[0]

    @staticmethod
    def blocking_result(
        results: Sequence[RateLimiterResult],
    ) -> Optional[RateLimiterResult]:
        """Return the result that rejected the request, if any."""
        if results and not results[-1].success:
            return results[-1]
        return None
