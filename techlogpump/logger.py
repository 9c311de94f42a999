"""Console logging with coloured level names."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime
from typing import TextIO

_LEVELS = (
    (logging.CRITICAL, "FATAL", 31),
    (logging.ERROR, "ERROR", 31),
    (logging.WARNING, "WARN", 33),
    (logging.INFO, "INFO", 34),
)


def _level_label(levelno: int) -> str:
    name, color = next(((n, c) for t, n, c in _LEVELS if levelno >= t), ("DEBUG", 35))
    return f"\x1b[{color}m{name}\x1b[0m"


def _iso8601(created: float) -> str:
    moment = datetime.fromtimestamp(created).astimezone()
    offset = moment.strftime("%z")
    if offset in ("+0000", "-0000", ""):
        offset = "Z"
    return f"{moment:%Y-%m-%dT%H:%M:%S}.{moment.microsecond // 1000:03d}{offset}"


class ColorLevelFormatter(logging.Formatter):
    """Tab-separated lines: time, coloured level, name, caller, message, JSON fields.

    Structured fields are passed as ``extra={"fields": {...}}``.
    """

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            _iso8601(record.created),
            _level_label(record.levelno),
            record.name,
            f"{record.filename}:{record.lineno}",
            record.getMessage(),
        ]
        fields = getattr(record, "fields", None)
        if fields:
            parts.append(json.dumps(fields, ensure_ascii=False, default=str))
        line = "\t".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        if record.stack_info:
            line += "\n" + self.formatStack(record.stack_info)
        return line


def init_logging(stream: TextIO | None = None) -> logging.Logger:
    """Configure and return the service's root logger at INFO level."""
    logger = logging.getLogger("techlogpump")
    logger.handlers.clear()
    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(ColorLevelFormatter())
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger