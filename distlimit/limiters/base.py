"""Shared decision interface implemented by every strategy."""

from abc import ABC, abstractmethod

from distlimit.limiters.models import RateLimiterResult
from distlimit.store.base import AtomicStore


class RateLimiterStrategy(ABC):
    """Abstract base class for rate limiting strategies.

    The composite limiter only relies on ``is_allowed`` and ``reset``; it
    never looks at a strategy's keys or store records.
    """

    name: str = "RateLimiterStrategy"

    def __init__(self, store: AtomicStore, prefix: str):
        self.store = store
        self.prefix = prefix

    @abstractmethod
    async def is_allowed(self, identifier: str) -> RateLimiterResult:
        """Decide whether a request for ``identifier`` is allowed.

        Args:
            identifier: Subject being limited (user id, IP, API key)

        Returns:
            RateLimiterResult with the decision and quota information

        Raises:
            StoreError: If the store could not complete the decision
        """
        pass

    @abstractmethod
    async def reset(self, identifier: str) -> None:
        """Restore ``identifier`` to its initial, unthrottled state."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(prefix={self.prefix!r})"
