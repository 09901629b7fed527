"""
Structured logging configuration for watchlog-rum.

Features:
- JSON structured logging for log shippers
- Colored console logging for development
- Session id propagation into every log line

The library never configures logging on its own; hosts opt in by calling
``setup_logging()``.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Context variables for log correlation
_session_id: ContextVar[Optional[str]] = ContextVar("session_id", default=None)
_extra_context: ContextVar[Dict[str, Any]] = ContextVar("extra_context", default={})


def set_session_id(session_id: Optional[str]) -> None:
    """Set the current RUM session id for log correlation."""
    _session_id.set(session_id)


def get_session_id() -> Optional[str]:
    return _session_id.get()


def set_context(**kwargs: Any) -> None:
    """Set additional context fields."""
    current = _extra_context.get().copy()
    current.update(kwargs)
    _extra_context.set(current)


class StructuredFormatter(logging.Formatter):
    """
    JSON structured log formatter.

    Output format:
    {
        "timestamp": "2025-03-02T10:15:30.123456Z",
        "level": "DEBUG",
        "logger": "watchlog_rum.pipeline.scheduler",
        "message": "[Flush] Sent 12 events",
        "session_id": "6f1c...",
        "context": {...}
    }
    """

    _STANDARD_FIELDS = {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "pathname", "process", "processName", "relativeCreated",
        "stack_info", "exc_info", "exc_text", "thread", "threadName",
        "taskName", "message",
    }

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        session_id = _session_id.get()
        extra = _extra_context.get()

        if session_id:
            log_data["session_id"] = session_id
        if extra:
            log_data["context"] = extra

        record_extras = {
            k: v for k, v in record.__dict__.items()
            if k not in self._STANDARD_FIELDS and not k.startswith("_")
        }
        if record_extras:
            log_data["extra"] = record_extras

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Console formatter for development with colors.
    """

    COLORS = {
        "DEBUG": "\033[36m",    # Cyan
        "INFO": "\033[32m",     # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",    # Red
        "CRITICAL": "\033[35m", # Magenta
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        session_id = _session_id.get()
        context_str = f" [session={session_id[:8]}]" if session_id else ""

        output = (
            f"{self.DIM}{timestamp}{self.RESET} "
            f"{color}{self.BOLD}{record.levelname:8}{self.RESET} "
            f"{self.DIM}{record.name}{self.RESET}"
            f"{context_str}: "
            f"{record.getMessage()}"
        )

        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)

        return output


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = field(
        default_factory=lambda: os.getenv("WATCHLOG_RUM_LOG_LEVEL", "WARNING")
    )
    format: str = field(
        default_factory=lambda: os.getenv("WATCHLOG_RUM_LOG_FORMAT", "console")
    )  # "console" or "json"

    log_file: Optional[Path] = field(
        default_factory=lambda: Path(os.getenv("WATCHLOG_RUM_LOG_FILE", ""))
        if os.getenv("WATCHLOG_RUM_LOG_FILE") else None
    )
    max_file_size_mb: int = 10
    backup_count: int = 3

    console_enabled: bool = True

    quiet_loggers: list = field(
        default_factory=lambda: [
            "aiohttp",
            "asyncio",
        ]
    )


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """
    Attach handlers to the ``watchlog_rum`` logger.

    Args:
        config: Logging configuration. Uses defaults if None.
    """
    if config is None:
        config = LoggingConfig()

    level = getattr(logging, config.level.upper(), logging.WARNING)
    rum_logger = logging.getLogger("watchlog_rum")
    rum_logger.setLevel(level)
    rum_logger.handlers.clear()

    if config.console_enabled:
        console_handler = logging.StreamHandler(sys.stderr)

        if config.format == "json":
            console_handler.setFormatter(StructuredFormatter())
        else:
            console_handler.setFormatter(ConsoleFormatter())

        rum_logger.addHandler(console_handler)

    if config.log_file:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)

        from logging.handlers import RotatingFileHandler

        file_handler = RotatingFileHandler(
            config.log_file,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
        )
        file_handler.setFormatter(StructuredFormatter())
        rum_logger.addHandler(file_handler)

    for logger_name in config.quiet_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


class LogContext:
    """
    Context manager for temporary log context.

    Example:
        with LogContext(collector="network"):
            logger.debug("Installed")  # Includes collector
        logger.debug("Done")  # No longer includes collector
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs
        self._previous: Dict[str, Any] = {}

    def __enter__(self) -> "LogContext":
        self._previous = _extra_context.get().copy()
        new_context = self._previous.copy()
        new_context.update(self._context)
        _extra_context.set(new_context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        _extra_context.set(self._previous)
