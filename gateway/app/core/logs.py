"""
Structured logging for the gateway.

Log records follow the service convention: a snake_case event name as
the message and context passed through ``extra={...}``. This module
renders those records as one JSON object per line and scrubs secrets
before anything is emitted.

Redaction rule: any string value beginning with a recognized secret-key
prefix is replaced with ``***REDACTED***``. The rule is applied to
``extra`` fields (recursively through dicts, lists and tuples) and to
``%``-style arguments.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Any

import orjson

REDACTED = "***REDACTED***"

SECRET_PREFIXES = ("pnx_", "pk_", "sk_", "whsec_")

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

# Attributes present on every LogRecord; anything else came from ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}


def redact(value: Any) -> Any:
    """Return ``value`` with every secret-looking string replaced."""
    if isinstance(value, str):
        return REDACTED if value.startswith(SECRET_PREFIXES) else value
    if isinstance(value, dict):
        return {k: redact(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(redact(v) for v in value)
    return value


class SecretRedactionFilter(logging.Filter):
    """Scrub secret values from a record in place."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in list(vars(record).items()):
            if key not in _RESERVED_ATTRS:
                setattr(record, key, redact(value))

        if isinstance(record.args, dict):
            record.args = redact(record.args)
        elif isinstance(record.args, tuple):
            record.args = tuple(redact(a) for a in record.args)

        return True


class JsonLogFormatter(logging.Formatter):
    """Render a record as a single-line JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        data = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS
        }
        if data:
            entry["data"] = data

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return orjson.dumps(entry, default=str).decode("utf-8")


def configure_logging(level: str = "info") -> None:
    """
    Install the JSON handler on the root logger.

    Safe to call more than once; the gateway handler is only added the
    first time.
    """
    root = logging.getLogger()
    root.setLevel(_resolve_level(level))

    for handler in root.handlers:
        if getattr(handler, "_paynexus_gateway", False):
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonLogFormatter())
    handler.addFilter(SecretRedactionFilter())
    handler._paynexus_gateway = True  # type: ignore[attr-defined]
    root.addHandler(handler)


def _resolve_level(level: str) -> int:
    name = level.upper()
    if name == "WARN":
        name = "WARNING"
    return _LEVELS.get(name, logging.INFO)
