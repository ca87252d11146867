"""Core utilities for distlimit."""

from distlimit.core.config import Settings, settings
from distlimit.core.logging import get_logger, setup_logging
from distlimit.core.utils import make_key, now_ms, parse_duration

__all__ = [
    "Settings",
    "settings",
    "get_logger",
    "setup_logging",
    "make_key",
    "now_ms",
    "parse_duration",
]
