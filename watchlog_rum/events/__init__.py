"""
Event model and construction for watchlog-rum.

Provides:
- RumEvent and its frozen context snapshot types
- HostEnvironment, the page/viewport/locale state snapshotted per event
- EventFactory, which stamps the common envelope and sequence numbers
"""

from watchlog_rum.events.models import (
    EventContext,
    PageInfo,
    RumEvent,
    RumEventType,
    Viewport,
)

from watchlog_rum.events.context import (
    HostEnvironment,
    default_user_agent,
    origin_and_path,
)

from watchlog_rum.events.factory import (
    EventFactory,
    error_data,
)

__all__ = [
    # Models
    "EventContext",
    "PageInfo",
    "RumEvent",
    "RumEventType",
    "Viewport",
    # Host
    "HostEnvironment",
    "default_user_agent",
    "origin_and_path",
    # Construction
    "EventFactory",
    "error_data",
]
