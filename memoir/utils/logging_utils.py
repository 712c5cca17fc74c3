"""Structured logging helpers emitting one JSON document per record."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

# Attributes present on every LogRecord; anything else came from ``extra``.
_RESERVED_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


class JsonLogFormatter(logging.Formatter):
    """Render log records as JSON objects including ``extra`` fields."""

    def __init__(self, *, include_timestamp: bool = True) -> None:
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_timestamp:
            payload["timestamp"] = datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat()
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRIBUTES or key.startswith("_"):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(
    *,
    level: int = logging.INFO,
    handlers: Optional[Iterable[logging.Handler]] = None,
    include_timestamp: bool = True,
) -> logging.Logger:
    """Install :class:`JsonLogFormatter` on the root logger.

    Existing root handlers are replaced so repeated calls do not duplicate
    output.
    """

    root = logging.getLogger()
    resolved = list(handlers) if handlers is not None else [logging.StreamHandler()]
    formatter = JsonLogFormatter(include_timestamp=include_timestamp)
    for handler in resolved:
        handler.setFormatter(formatter)
    root.handlers = resolved
    root.setLevel(level)
    return root


__all__ = ["JsonLogFormatter", "configure_logging"]
