"""Logging utilities for plugsmith.

All log output goes to stderr to keep stdout clean for machine-readable
results. Per-plugin status lines go through a ``Scribe`` carrying the
plugin alias as prefix.
"""

import json
import sys
import threading
from datetime import UTC, datetime
from typing import Any, Literal

Level = Literal["debug", "info", "success", "warning", "error"]

_verbose = False
_quiet = False
_log_format: Literal["text", "json"] = "text"
_write_lock = threading.Lock()


def set_verbose(verbose: bool) -> None:
    """Set verbose mode."""
    global _verbose
    _verbose = verbose


def set_quiet(quiet: bool) -> None:
    """Set quiet mode."""
    global _quiet
    _quiet = quiet


def configure_logging(
    log_format: Literal["text", "json"] = "text",
    quiet: bool = False,
) -> None:
    """Configure logging settings.

    Args:
        log_format: Output format for log messages
        quiet: Suppress informational output
    """
    global _log_format, _quiet
    _log_format = log_format
    _quiet = quiet


def log(
    message: str,
    level: Level = "info",
    **context: Any,
) -> None:
    """Log a message to stderr.

    Args:
        message: Log message
        level: Log level
        **context: Additional context to include
    """
    if _quiet and level in ("debug", "info", "success"):
        return

    if level == "debug" and not _verbose:
        return

    if _log_format == "json":
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": level,
            "message": message,
            **context,
        }
        line = json.dumps(log_entry, default=str)
    else:
        prefix = context.get("prefix")
        text = f"[{prefix}] {message}" if prefix else message
        line = f"[{level.upper()}] {text}" if level not in ("info", "success") else text

    # Concurrent builds log from worker threads
    with _write_lock:
        print(line, file=sys.stderr)


def debug(message: str, **context: Any) -> None:
    """Log a debug message."""
    log(message, level="debug", **context)


def info(message: str, **context: Any) -> None:
    """Log an info message."""
    log(message, level="info", **context)


def warning(message: str, **context: Any) -> None:
    """Log a warning message."""
    log(message, level="warning", **context)


def error(message: str, **context: Any) -> None:
    """Log an error message."""
    log(message, level="error", **context)


class Scribe:
    """Prefixed status output for one plugin or component."""

    def __init__(self, prefix: str):
        self.prefix = prefix

    def notification(self, message: str, **context: Any) -> None:
        log(message, level="info", prefix=self.prefix, **context)

    def success(self, message: str, **context: Any) -> None:
        log(message, level="success", prefix=self.prefix, **context)

    def warning(self, message: str, **context: Any) -> None:
        log(message, level="warning", prefix=self.prefix, **context)

    def error(self, message: str, **context: Any) -> None:
        log(message, level="error", prefix=self.prefix, **context)

    def debug(self, message: str, **context: Any) -> None:
        log(message, level="debug", prefix=self.prefix, **context)
