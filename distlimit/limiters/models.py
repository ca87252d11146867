"""Rate limiting data models.

This module contains the shared result shape returned by every strategy.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from distlimit.core import utils

Number = Union[int, float]


class WindowType(str, Enum):
    """Refill policy for the token bucket."""
    FIXED = "fixed"
    SLIDING = "sliding"


@dataclass
class RateLimiterResult:
    """Result of a single limiter decision.

    Attributes:
        success: Whether the request is allowed
        remaining: Quota left after the decision. Raw value from the store;
            a fixed window counter reports a negative number once exceeded.
        reset: Epoch milliseconds when the quota resets
        limit: Configured limit (max requests, capacity or slot count)
        name: Name of the strategy that produced the result
        metadata: Strategy-specific details
    """
    success: bool
    remaining: Number
    reset: int
    limit: Number
    name: str
    metadata: Optional[dict[str, Any]] = field(default=None)

    @property
    def retry_after_ms(self) -> int:
        """Milliseconds until the quota resets, relative to now."""
        return max(0, self.reset - utils.now_ms())

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "remaining": self.remaining,
            "reset": self.reset,
            "limit": self.limit,
            "name": self.name,
            "metadata": self.metadata,
        }


def to_number(value: Any) -> Number:
    """Parse a numeric script reply, keeping whole values as int."""
    if isinstance(value, int):
        return value
    number = float(value)
    return int(number) if number.is_integer() else number
