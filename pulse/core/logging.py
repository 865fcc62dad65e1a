"""PULSE — Structured JSON Logging.

Every logger lives under ``pulse.*`` and writes one JSON object per line.
Keys passed through ``extra=`` that appear in ``EXTRA_FIELDS`` are copied
into the record, so a request can be followed by scope and entity.
"""

import logging
import json
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator

from pulse.config import settings

EXTRA_FIELDS = (
    "scope",
    "entity_id",
    "platform",
    "kind",
    "duration_ms",
    "status_code",
)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value
        return json.dumps(log_entry, default=str)


def get_logger(name: str) -> logging.Logger:
    """Return ``pulse.<name>`` with the JSON stdout handler attached once."""
    logger = logging.getLogger(f"pulse.{name}")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return logger


def elapsed_ms(started: float) -> float:
    """Milliseconds since a ``time.monotonic()`` reading."""
    return round((time.monotonic() - started) * 1000, 1)


@contextmanager
def timed(
    logger: logging.Logger, message: str, level: int = logging.DEBUG, **extra: Any
) -> Iterator[Dict[str, Any]]:
    """Log ``message`` with ``duration_ms`` once the block finishes without error.

    The yielded dict is merged into the record, so the block can add fields.
    """
    started = time.monotonic()
    yield extra
    logger.log(level, message, extra={**extra, "duration_ms": elapsed_ms(started)})
