"""
watchlog-rum - Real User Monitoring agent for Python applications

Provides:
- Device and session identity with per-session sampling
- Page view, custom event and error tracking with a common envelope
- before_send hook for redaction or dropping
- Byte- and count-bounded event queue with forced flushes
- Batched delivery over aiohttp, with a beacon path for teardown
- Deferred initial page view with route template normalization
- Optional collectors for uncaught errors, aiohttp requests and loop stalls
"""

__version__ = "0.3.0"

# Public API
from watchlog_rum.api import (
    flush,
    get_agent,
    get_session_info,
    identify,
    on_page_hide,
    record_activity,
    set_context,
    set_path_normalizer,
    set_route_manifest,
    shutdown,
    start_rum,
    track_error,
    track_event,
    track_page_view,
)

# Agent
from watchlog_rum.agent import RumAgent, SessionInfo

# Configuration
from watchlog_rum.config import RumConfig, resolve_config

# Events
from watchlog_rum.events import (
    HostEnvironment,
    RumEvent,
    RumEventType,
    Viewport,
)

# Routing
from watchlog_rum.routing import (
    RouteBinding,
    TemplateRouteResolver,
    default_binding,
)

# Storage
from watchlog_rum.session import FileStorage, MemoryStorage, StorageBackend

# Collectors
from watchlog_rum.collectors import (
    Collector,
    ErrorCollector,
    LongTaskCollector,
    NetworkCollector,
)

# Errors
from watchlog_rum.exceptions import RumError, StorageError, TransportError

# Logging
from watchlog_rum.utils.logging_config import setup_logging

__all__ = [
    "__version__",
    # Public API
    "start_rum",
    "get_agent",
    "track_page_view",
    "track_event",
    "identify",
    "set_context",
    "track_error",
    "flush",
    "shutdown",
    "get_session_info",
    "record_activity",
    "on_page_hide",
    "set_route_manifest",
    "set_path_normalizer",
    # Agent
    "RumAgent",
    "SessionInfo",
    # Configuration
    "RumConfig",
    "resolve_config",
    # Events
    "HostEnvironment",
    "RumEvent",
    "RumEventType",
    "Viewport",
    # Routing
    "RouteBinding",
    "TemplateRouteResolver",
    "default_binding",
    # Storage
    "FileStorage",
    "MemoryStorage",
    "StorageBackend",
    # Collectors
    "Collector",
    "ErrorCollector",
    "LongTaskCollector",
    "NetworkCollector",
    # Errors
    "RumError",
    "StorageError",
    "TransportError",
    # Logging
    "setup_logging",
]
