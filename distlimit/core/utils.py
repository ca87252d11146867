"""Utility functions shared by the limiters."""

import re
import time
from typing import Union

# Milliseconds per unit for duration strings such as "10 s" or "6 h"
_DURATION_UNITS = {
    "ms": 1,
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
}

_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*([a-zA-Z]*)\s*$")


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds.

    Tests patch this function to pin limiters to a known window.
    """
    return int(time.time() * 1000)


def parse_duration(value: Union[int, str]) -> int:
    """Normalize a duration to milliseconds.

    Args:
        value: Milliseconds as an int, or a string like "500 ms", "10 s",
            "1m" or "6 h". A bare number string is read as milliseconds.

    Returns:
        Duration in milliseconds.

    Raises:
        ValueError: If the value cannot be parsed or the unit is unknown.

    Examples:
        >>> parse_duration("6 h")
        21600000
        >>> parse_duration(250)
        250
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Duration must not be negative: {value}")
        return value
    if not isinstance(value, str):
        raise ValueError(f"Invalid duration: {value!r}")

    match = _DURATION_PATTERN.match(value)
    if match is None:
        raise ValueError(f"Invalid duration: {value!r}")

    amount, unit = match.groups()
    unit = unit.lower() or "ms"
    if unit not in _DURATION_UNITS:
        raise ValueError(
            f"Unknown duration unit {unit!r} (expected one of {', '.join(_DURATION_UNITS)})"
        )
    return int(amount) * _DURATION_UNITS[unit]


def make_key(prefix: str, kind: str, identifier: str, suffix: Union[int, str]) -> str:
    """Build a store key of the form ``{prefix}/{kind}/{{identifier}}/{suffix}``.

    The braces around the identifier are a Redis Cluster hash tag, so every
    key belonging to one identifier maps to the same slot.
    """
    return f"{prefix}/{kind}/{{{identifier}}}/{suffix}"


def window_index(timestamp_ms: int, window_ms: int) -> int:
    """Return the index of the aligned window containing ``timestamp_ms``."""
    return timestamp_ms // window_ms
