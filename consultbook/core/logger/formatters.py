"""
Formatters: JSON Lines for files, one readable line for the console.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

# Passed as logger.warning(..., extra={"resource_id": ...}); surfaced as top-level JSON keys
CONTEXT_KEYS = ("resource_id", "booking_id", "requester_id", "actor_id", "event")


class JsonFormatter(logging.Formatter):
    """
    One object per line. Booking context keys sit next to the message, so
    slot contention can be filtered with a plain ``jq 'select(.resource_id == ...)'``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key)) for key in CONTEXT_KEYS if getattr(record, key, None) is not None
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry["lineno"] = record.lineno
        return json.dumps(entry, default=str, ensure_ascii=False)


class PlainConsoleFormatter(logging.Formatter):
    DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt or self.DEFAULT_FORMAT, datefmt=datefmt or "%Y-%m-%d %H:%M:%S")
