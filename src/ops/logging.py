"""
Logging setup.

Two channels:
- diagnostics (root logger): stderr plus an optional log file.
- status lines (the "occupancy.status" logger): one timestamped line per
  processed frame on stdout, optionally colored.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from typing import Any, Optional, TextIO

STATUS_LOGGER_NAME = "occupancy.status"

# ANSI SGR codes
_CYAN = "\x1b[36m"
_YELLOW = "\x1b[33m"
_GREEN = "\x1b[32m"
_RESET = "\x1b[0m"


def format_timestamp(dt: datetime) -> str:
    """Render a local time as [YYYY/MM/DD/HH/MM/SS.mmm]."""
    return f"[{dt.strftime('%Y/%m/%d/%H/%M/%S')}.{dt.microsecond // 1000:03d}]"


def format_status(timestamp: datetime, label: str, value: Any, color: bool = False) -> str:
    stamp = format_timestamp(timestamp)
    if not color:
        return f"{stamp} {label}: {value}"
    return f"{_CYAN}{stamp}{_RESET} {_YELLOW}{label}:{_RESET} {_GREEN}{value}{_RESET}"


class StatusFormatter(logging.Formatter):
    """Formats status records, which carry `label` and `value` extras."""

    def __init__(self, color: bool = False):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        label = getattr(record, "label", None)
        if label is None:
            label, value = "status", record.getMessage()
        else:
            value = getattr(record, "value", "")
        return format_status(datetime.fromtimestamp(record.created), label, value, self.color)


def log_status(label: str, value: Any) -> None:
    """Emit one status line."""
    logging.getLogger(STATUS_LOGGER_NAME).info(
        f"{label}: {value}", extra={"label": label, "value": value}
    )


def setup_logging(
    log_level: str = "INFO",
    log_path: Optional[str] = None,
    color: Optional[bool] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure the diagnostic and status channels.

    Args:
        log_level: Level name for the root logger.
        log_path: Optional file that also receives diagnostics.
        color: Force ANSI colors on/off. None = color only when the status
            stream is a terminal.
        stream: Status stream (default: stdout).
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_path:
        log_dir = os.path.dirname(log_path)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    status_stream = stream or sys.stdout
    if color is None:
        color = hasattr(status_stream, "isatty") and status_stream.isatty()

    status_handler = logging.StreamHandler(status_stream)
    status_handler.setFormatter(StatusFormatter(color=color))

    status_logger = logging.getLogger(STATUS_LOGGER_NAME)
    status_logger.handlers.clear()
    status_logger.addHandler(status_handler)
    status_logger.setLevel(logging.INFO)
    status_logger.propagate = False
