"""Logging setup for distlimit.

Limiters log through the ``distlimit`` logger tree and attach decision
context (identifier, limiter, key, ...) via ``extra``. Importing the library
never configures logging; applications call ``setup_logging`` if they want
the bundled text or JSON output.
"""

import json
import logging
import logging.config
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from distlimit.core.config import settings

# Decision context attached to records through ``extra``
CONTEXT_FIELDS = ("identifier", "limiter", "key", "remaining", "duration_ms")

# LogRecord attributes that are never copied into the JSON "extra" object
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}

_TEXT_FORMATS = {
    "standard": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "structured": (
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        " - limiter=%(limiter)s identifier=%(identifier)s key=%(key)s"
    ),
}


class JSONFormatter(logging.Formatter):
    """Render each record as one JSON object per line.

    Context fields become top-level keys when set; any other ``extra``
    attributes are grouped under ``"extra"``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value

        extra = {
            name: value
            for name, value in vars(record).items()
            if name not in _RECORD_ATTRS and name not in CONTEXT_FIELDS
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Give every record the context attributes the text formats reference."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name in CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, None)
        return True


def _stream_handler(level: str, stream: Any, formatter: str) -> Dict[str, Any]:
    return {
        "class": "logging.StreamHandler",
        "level": level,
        "formatter": formatter,
        "stream": stream,
        "filters": ["context"],
    }


def get_logging_config() -> Dict[str, Any]:
    """Build a ``logging.config.dictConfig`` mapping from settings.

    ``log_format`` selects ``text`` (default), ``structured`` or ``json``.
    Records at ERROR and above are also written to stderr.
    """
    log_format = settings.log_format.lower()
    log_level = settings.log_level.upper()

    formatters: Dict[str, Any] = {
        name: {"format": fmt} for name, fmt in _TEXT_FORMATS.items()
    }
    if log_format == "json":
        formatters["json"] = {"()": "distlimit.core.logging.JSONFormatter"}
        formatter = "json"
    elif log_format == "structured":
        formatter = "structured"
    else:
        formatter = "standard"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": {"context": {"()": "distlimit.core.logging.ContextFilter"}},
        "handlers": {
            "console": _stream_handler(log_level, sys.stdout, formatter),
            "error_console": _stream_handler("ERROR", sys.stderr, formatter),
        },
        "loggers": {
            "distlimit": {
                "level": log_level,
                "handlers": ["console", "error_console"],
                "propagate": False,
            },
        },
    }


def setup_logging() -> None:
    """Configure the ``distlimit`` logger tree."""
    logging.config.dictConfig(get_logging_config())


def get_logger(name: str = "distlimit") -> logging.Logger:
    return logging.getLogger(name)


def get_log_context(
    identifier: Optional[str] = None,
    limiter: Optional[str] = None,
    key: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Build an ``extra`` mapping, dropping unset values.

    Example:
        >>> logger.debug(
        ...     "Request rejected",
        ...     extra=get_log_context(identifier="user-1", limiter="FixedWindowStrategy"),
        ... )
    """
    context = dict(identifier=identifier, limiter=limiter, key=key, **extra)
    return {name: value for name, value in context.items() if value is not None}
