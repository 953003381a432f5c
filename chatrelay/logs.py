"""
logs.py — logging setup for the relay process.

- Console handler on stdout, human-readable by default (JSON with LOG_JSON).
- Optional file handler that always writes JSON lines.
- Per-connection context (peer address, display name) lives in a ContextVar.
  Every handler thread starts with an empty context and fills in its own, so
  log lines from concurrent connections don't bleed into each other.
"""

import json
import logging
import sys
from contextvars import ContextVar
from typing import Any, Dict, Optional

from chatrelay.settings import Settings, app_settings

log_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar("log_context", default=None)


def set_log_context(**kwargs: Any) -> None:
    """
    Add fields to the current thread's log context.

    Example:
        >>> set_log_context(peer="127.0.0.1:50312")
        >>> logger.info("Connected")  # line carries the peer field
    """
    current = dict(log_context.get() or {})
    current.update(kwargs)
    log_context.set(current)


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the current log context."""
    return dict(log_context.get() or {})


def clear_log_context() -> None:
    """Drop all context fields (end of a connection)."""
    log_context.set(None)


class StructuredJSONFormatter(logging.Formatter):
    """One JSON object per record: standard fields, log context and exception text."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
        }
        log_data.update(get_log_context())
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Console formatter. INFO lines stay short; everything else also names the
    code location.
    """

    INFO_FMT = "%(asctime)s - [%(peer)s %(client)s] %(levelname)s: %(message)s"
    ERROR_FMT = (
        "%(asctime)s - [%(peer)s %(client)s] %(levelname)s: "
        "%(module)s.%(funcName)s:%(lineno)d - %(message)s"
    )

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._formatters = {
            logging.INFO: logging.Formatter(self.INFO_FMT, datefmt="%Y-%m-%d %H:%M:%S"),
            logging.WARNING: logging.Formatter(self.ERROR_FMT, datefmt="%Y-%m-%d %H:%M:%S"),
            logging.ERROR: logging.Formatter(self.ERROR_FMT, datefmt="%Y-%m-%d %H:%M:%S"),
            logging.DEBUG: logging.Formatter(self.ERROR_FMT, datefmt="%Y-%m-%d %H:%M:%S"),
        }

    def format(self, record: logging.LogRecord) -> str:
        context = get_log_context()
        record.peer = context.get("peer", "-")
        record.client = context.get("name", "-")
        formatter = self._formatters.get(record.levelno, self._formatters[logging.INFO])
        return formatter.format(record)


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Configure the root logger from settings and return it.

    Existing root handlers are replaced, so calling this twice is harmless.
    """
    settings = settings or app_settings

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(
        StructuredJSONFormatter() if settings.LOG_JSON else HumanReadableFormatter()
    )
    logger.addHandler(console_handler)

    if settings.LOG_FILE_PATH:
        try:
            file_handler = logging.FileHandler(settings.LOG_FILE_PATH)
            file_handler.setFormatter(StructuredJSONFormatter())
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not create file handler: {e}")

    return logger
