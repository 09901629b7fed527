"""
Utilities module for watchlog-rum.

Provides:
- Async helpers (fire-and-forget tasks, periodic timers, detached runs)
- Structured logging configuration
"""

from watchlog_rum.utils.async_helpers import (
    BackgroundTasks,
    PeriodicTimer,
    get_running_loop_or_none,
    run_detached,
)

from watchlog_rum.utils.clock import now_ms

from watchlog_rum.utils.logging_config import (
    setup_logging,
    LoggingConfig,
    LogContext,
    StructuredFormatter,
    ConsoleFormatter,
    set_session_id,
    get_session_id,
    set_context,
)

__all__ = [
    # Async helpers
    "BackgroundTasks",
    "PeriodicTimer",
    "get_running_loop_or_none",
    "run_detached",
    # Clock
    "now_ms",
    # Logging
    "setup_logging",
    "LoggingConfig",
    "LogContext",
    "StructuredFormatter",
    "ConsoleFormatter",
    "set_session_id",
    "get_session_id",
    "set_context",
]
