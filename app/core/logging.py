"""PERFORMA — Structured JSON Logging.

All loggers hang off the "performa" parent, which owns the single stdout
handler. Engine code passes identifiers through `extra=`.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone

from app.config import settings

ROOT_LOGGER = "performa"

CONTEXT_FIELDS = ("event", "employee_id", "kpi_id", "pip_id", "date_key", "duration_ms")


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)
        root.propagate = False
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return root


def get_logger(name: str) -> logging.Logger:
    """Child logger `performa.<name>`."""
    _configure_root()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


@contextmanager
def timed(logger: logging.Logger, message: str, **extra):
    """Log `message` with duration_ms once the block finishes, even on error."""
    started = time.monotonic()
    try:
        yield extra
    finally:
        extra["duration_ms"] = round((time.monotonic() - started) * 1000, 1)
        logger.info(message, extra=extra)
