"""Custom exceptions for distlimit.

A policy rejection is not an exception: limiters return a result with
``success=False``. Exceptions are reserved for infrastructure failures and
for the scoped-acquisition helper of the concurrency limiter.
"""

from typing import Sequence


class RateLimitError(Exception):
    """Base class for distlimit exceptions with an HTTP status code.

    The status code lets HTTP integrations map failures to responses
    consistently.
    """
    status_code: int = 500

    def __init__(self, message: str = "Rate limit error"):
        self.message = message
        super().__init__(message)


class StoreError(RateLimitError):
    """The atomic store could not complete an operation.

    Neither "allowed" nor "denied": callers choose a fail-open or
    fail-closed policy. Maps to HTTP 503 Service Unavailable.
    """
    status_code = 503

    def __init__(self, message: str = "Rate limit store error", key: str | None = None):
        self.key = key
        super().__init__(message)


class StoreUnavailable(StoreError):
    """Raised when the store is unreachable or rejects the operation."""


class StoreTimeout(StoreError):
    """Raised when a store operation exceeds the configured timeout."""


class ConcurrencyLimitExceeded(RateLimitError):
    """Raised by ``ConcurrencyStrategy.wrap`` when no slot is free.

    The wrapped operation is never invoked when this is raised.
    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(self, current: int, limit: int, identifier: str | None = None):
        self.current = current
        self.limit = limit
        self.identifier = identifier
        super().__init__(
            f"Concurrent requests limit exceeded. Current count: {current}, Limit: {limit}"
        )


class CompositeResetFailure(RateLimitError):
    """Raised by ``Ratelimit.reset`` after every constituent reset was attempted.

    ``__cause__`` is the first failure; ``errors`` holds all of them in
    limiter order.
    """
    status_code = 500

    def __init__(self, errors: Sequence[BaseException]):
        self.errors = list(errors)
        first = self.errors[0] if self.errors else None
        message = f"{len(self.errors)} limiter reset(s) failed"
        if first is not None:
            message += f": {first}"
        super().__init__(message)
