"""Logging utilities for mdlive.

Log lines are key=value records in the style of Go's slog text handler::

    time=2026-01-01T12:00:00 level=INFO msg="rebuild successful" file=post.md

Structured fields travel on the record as ``extra={"fields": {...}}``;
``log_event`` is the shorthand used throughout the package.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

_LOGGER_NAME = "mdlive"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the mdlive hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def log_event(logger: logging.Logger, level: int, msg: str, **fields: Any) -> None:
    """Log *msg* with structured key=value *fields*."""
    logger.log(level, msg, extra={"fields": fields})


def _quote(value: object) -> str:
    text = str(value)
    if not text or any(ch in text for ch in ' ="\n\t'):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
        return f'"{escaped}"'
    return text


class KeyValueFormatter(logging.Formatter):
    """Render records as ``time=... level=... msg=... key=value`` lines."""

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            f"time={self.formatTime(record, self.datefmt)}",
            f"level={record.levelname}",
            f"msg={_quote(record.getMessage())}",
        ]
        fields = getattr(record, "fields", None) or {}
        parts.extend(f"{key}={_quote(value)}" for key, value in fields.items())
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(*, verbose: bool = False) -> logging.Logger:
    """Configure the mdlive logger with key=value output on stdout."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when the CLI is invoked multiple times.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(KeyValueFormatter())
    logger.addHandler(handler)
    return logger


__all__ = ["KeyValueFormatter", "configure_logging", "get_logger", "log_event"]
