"""
Console logging for Waypoint.

Lines look like ``2026-01-01T10:00:00.000Z [INFO]  Listening on 3000`` with
the timestamp in bold and the level coloured (click.style honours NO_COLOR
and non-tty streams).
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Optional, TextIO

import click

SEPARATOR = "_" * 55

_LEVEL_STYLES = {
    logging.DEBUG: ("[DEBUG]", "cyan"),
    logging.INFO: ("[INFO] ", "green"),
    logging.WARNING: ("[WARN] ", "yellow"),
    logging.ERROR: ("[ERROR]", "red"),
    logging.CRITICAL: ("[FATAL]", "red"),
}


class ConsoleFormatter(logging.Formatter):
    """Timestamped, colour-coded single-line formatter."""

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{stamp.microsecond // 1000:03d}Z"

    def format(self, record: logging.LogRecord) -> str:
        label, colour = _LEVEL_STYLES.get(record.levelno, (f"[{record.levelname}]", "white"))
        stamp = self.formatTime(record)
        if self.color:
            stamp = click.style(stamp, bold=True)
            label = click.style(label, fg=colour)
        line = f"{stamp} {label} {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Install the console handler on the ``waypoint`` logger.

    Idempotent: calling it again only updates the level.
    """
    logger = logging.getLogger("waypoint")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in logger.handlers:
        if getattr(handler, "_waypoint_console", False):
            return logger

    stream = stream or sys.stdout
    handler = logging.StreamHandler(stream)
    handler.setFormatter(ConsoleFormatter(color=stream.isatty()))
    handler._waypoint_console = True
    logger.addHandler(handler)
    return logger
