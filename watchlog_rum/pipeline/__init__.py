"""
Event pipeline for watchlog-rum.

Provides:
- EventDispatcher: before_send hook isolation
- EventQueue: byte- and count-bounded buffer
- FlushScheduler: timer, thresholds and transport hand-off
- InitialViewCoordinator: first page view race
"""

from watchlog_rum.pipeline.dispatcher import EventDispatcher
from watchlog_rum.pipeline.initial_view import (
    DEFAULT_POLL_INTERVAL,
    InitialViewCoordinator,
)
from watchlog_rum.pipeline.queue import EventQueue
from watchlog_rum.pipeline.scheduler import FlushScheduler

__all__ = [
    "EventDispatcher",
    "EventQueue",
    "FlushScheduler",
    "InitialViewCoordinator",
    "DEFAULT_POLL_INTERVAL",
]
