"""
RUM agent: the running telemetry pipeline for one process.

Architecture:
    track_*() / collectors → EventFactory → EventDispatcher (before_send)
                                                 ↓
                                            EventQueue (bytes, batch)
                                                 ↓
                    timer / threshold / page-hide → FlushScheduler
                                                 ↓
                                 AiohttpTransport | AiohttpBeacon

Features:
- Device and session identity with a once-per-session sampling draw
- Unsampled sessions skip every collector, timer and event construction
- Initial page view deferred until route normalization is available
- Page-hide / unload flush through the beacon path
- Every public call is isolated: telemetry faults never reach the host
"""

from __future__ import annotations

import atexit
import functools
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from watchlog_rum.collectors import Collector, default_collectors
from watchlog_rum.config.base_config import RumConfig
from watchlog_rum.events.context import HostEnvironment
from watchlog_rum.events.factory import EventFactory, error_data
from watchlog_rum.events.models import RumEvent, RumEventType
from watchlog_rum.pipeline.dispatcher import EventDispatcher
from watchlog_rum.pipeline.initial_view import InitialViewCoordinator
from watchlog_rum.pipeline.scheduler import FlushScheduler
from watchlog_rum.routing import RouteBinding, default_binding
from watchlog_rum.session.identity import SessionManager
from watchlog_rum.session.storage import FileStorage, StorageBackend
from watchlog_rum.transport.http import (
    AiohttpBeacon,
    AiohttpTransport,
    BeaconSender,
    Transport,
)
from watchlog_rum.utils.async_helpers import BackgroundTasks, get_running_loop_or_none
from watchlog_rum.utils.clock import now_ms
from watchlog_rum.utils.logging_config import LogContext, set_session_id

logger = logging.getLogger(__name__)


def _isolated(default: Any = None) -> Callable:
    """Swallow and log any exception raised by a public agent method."""

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except Exception as e:
                logger.debug(f"[Agent] {fn.__name__} failed: {e}")
                return default

        return wrapper

    return decorator


@dataclass(frozen=True)
class SessionInfo:
    """Identity of the running pipeline."""

    session_id: str
    device_id: str
    sampled: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "deviceId": self.device_id,
            "sampled": self.sampled,
        }


class RumAgent:
    """
    Handle to a started pipeline.

    Construction reads (or creates) the device id and session; ``start()``
    wires timers, collectors and the initial page view. Most hosts use
    ``watchlog_rum.start_rum()`` instead, which keeps one agent per process.

    Args:
        config: Resolved configuration.
        storage: Persistent store for device/session ids.
        transport: Keep-alive transport for normal flushes.
        beacon: Teardown transport; defaults to ``AiohttpBeacon``.
        host: Page/viewport description snapshotted into every event.
        collectors: Collectors to install; defaults from the capture flags.
        routes: Late-binding route state; defaults to the process-wide one.
        clock: Epoch-millisecond clock.
        rng: Uniform [0, 1) source for the session sampling draw.
        register_atexit: Run ``on_unload`` at interpreter exit.
    """

    def __init__(
        self,
        config: RumConfig,
        *,
        storage: Optional[StorageBackend] = None,
        transport: Optional[Transport] = None,
        beacon: Optional[BeaconSender] = None,
        host: Optional[HostEnvironment] = None,
        collectors: Optional[Sequence[Collector]] = None,
        routes: Optional[RouteBinding] = None,
        clock: Callable[[], int] = now_ms,
        rng: Callable[[], float] = random.random,
        register_atexit: bool = True,
    ):
        self.config = config
        self.routes = routes if routes is not None else default_binding
        self.storage = storage if storage is not None else FileStorage(config.storage_path)
        self.host = host if host is not None else HostEnvironment()
        self.clock = clock
        self._register_atexit = register_atexit

        self.sessions = SessionManager(
            self.storage,
            ttl=config.session_ttl,
            sample_rate=config.sample_rate,
            clock=clock,
            rng=rng,
        )
        self.device_id = self.sessions.get_or_create_device_id()
        session = self.sessions.load_or_create_session()
        self.session_id = session.id
        self.sampled = session.sampled

        self.transport = transport if transport is not None else AiohttpTransport()
        self.beacon = beacon if beacon is not None else AiohttpBeacon()

        self.factory = EventFactory(
            config, self.host, self.session_id, self.device_id, clock=clock
        )
        self.scheduler = FlushScheduler(
            config,
            self.session_id,
            self.device_id,
            transport=self.transport,
            beacon=self.beacon,
            clock=clock,
        )
        self.dispatcher = EventDispatcher(config, self.scheduler.queue.enqueue)
        self.initial_view = InitialViewCoordinator(
            fire=self._fire_initial_view,
            is_ready=self._routes_ready,
            timeout=config.initial_view_timeout,
        )

        self._collectors: List[Collector] = (
            list(collectors) if collectors is not None else default_collectors(config)
        )
        self._teardowns: List[Callable[[], None]] = []
        self._background = BackgroundTasks()
        self._started = False
        self._closed = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def started(self) -> bool:
        return self._started

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def collectors(self) -> List[Collector]:
        return list(self._collectors)

    @property
    def network_trace_config(self) -> Any:
        """aiohttp TraceConfig to attach to host sessions, when capturing network."""
        for collector in self._collectors:
            trace_config = getattr(collector, "trace_config", None)
            if trace_config is not None:
                return trace_config
        return None

    def start(self) -> "RumAgent":
        """Wire timers, collectors and the initial page view. Idempotent."""
        if self._started or self._closed:
            return self
        self._started = True

        set_session_id(self.session_id)
        self.routes.attach(self.config)

        logger.info(
            f"[Agent] Started session {self.session_id[:8]} "
            f"(sampled={self.sampled}, endpoint={self.config.endpoint})"
        )
        logger.debug(f"[Agent] Config: {self.config.describe()}")

        if not self.sampled:
            return self

        self.scheduler.start()

        for collector in self._collectors:
            try:
                with LogContext(collector=collector.name):
                    self.add_teardown(collector.install(self))
            except Exception as e:
                logger.debug(f"[Agent] Collector {collector.name} not installed: {e}")

        if self._register_atexit:
            atexit.register(self.on_unload)
            self.add_teardown(lambda: atexit.unregister(self.on_unload))

        if self.config.auto_track_initial_view:
            self.initial_view.begin()

        return self

    def add_teardown(self, fn: Callable[[], None]) -> None:
        """Register a callback to run on shutdown (immediately if already shut down)."""
        if self._closed:
            self._run_teardown(fn)
            return
        self._teardowns.append(fn)

    def _run_teardown(self, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception as e:
            logger.debug(f"[Agent] Teardown failed: {e}")

    @_isolated()
    def shutdown(self) -> None:
        """
        Stop the pipeline. Idempotent.

        Cancels the flush timer and the initial-view race, runs every
        teardown (a failing one does not stop the rest) and closes the
        transport in the background. Queued events are not flushed.
        """
        if self._closed:
            return
        self._closed = True

        self.scheduler.stop()
        self.initial_view.cancel()

        teardowns, self._teardowns = self._teardowns, []
        for fn in teardowns:
            self._run_teardown(fn)

        self.routes.detach()

        if get_running_loop_or_none() is not None:
            self._background.spawn(self.transport.aclose())

        logger.info(f"[Agent] Shut down session {self.session_id[:8]}")

    # =========================================================================
    # Host signals
    # =========================================================================

    @_isolated()
    def record_activity(self) -> None:
        """User activity: extend the session without re-drawing sampling."""
        self.sessions.refresh_activity()

    @_isolated()
    def on_page_hide(self) -> None:
        """Refresh activity, then flush through the beacon path."""
        if self._closed:
            return
        self.sessions.refresh_activity()
        self.scheduler.flush(use_beacon=True)

    @_isolated()
    def on_unload(self) -> None:
        """Final flush at interpreter exit; delivery completes before returning."""
        if self._closed:
            return
        self.sessions.refresh_activity()
        self.scheduler.flush(use_beacon=True, blocking=True)

    # =========================================================================
    # Event production
    # =========================================================================

    @property
    def _accepting(self) -> bool:
        return self.sampled and not self._closed

    def _routes_ready(self) -> bool:
        return self.routes.manifest_ready or self.config.path_normalizer is not None

    def _fire_initial_view(self) -> None:
        self.track_page_view()

    def _submit(self, event: RumEvent) -> bool:
        return self.dispatcher.dispatch(event)

    @_isolated(default=False)
    def dispatch(
        self,
        event_type: Union[RumEventType, str],
        data: Any = None,
        name: Optional[str] = None,
    ) -> bool:
        """Collector feed: build an event of ``event_type`` and send it through the hook."""
        if not self._accepting:
            return False
        return self._submit(self.factory.build(event_type, data=data, name=name))

    @_isolated(default=False)
    def track_page_view(
        self,
        extra: Optional[Dict[str, Any]] = None,
        nav_type: Optional[str] = None,
    ) -> bool:
        if not self._accepting:
            return False
        data = {"navType": nav_type} if nav_type is not None else {}
        event = self.factory.build(RumEventType.PAGE_VIEW, data=data, extra=extra)
        try:
            return self._submit(event)
        finally:
            self.initial_view.mark_sent()

    @_isolated(default=False)
    def track_event(self, name: str, data: Any = None) -> bool:
        if not self._accepting:
            return False
        return self._submit(self.factory.build(RumEventType.CUSTOM, data=data, name=name))

    @_isolated(default=False)
    def track_error(
        self,
        error: Union[BaseException, str],
        source: Optional[str] = None,
    ) -> bool:
        if not self._accepting:
            return False
        return self._submit(
            self.factory.build(RumEventType.ERROR, data=error_data(error, source))
        )

    @_isolated()
    def identify(self, user_id: str, traits: Optional[Dict[str, Any]] = None) -> None:
        """Set the user attached to subsequent events. Emits nothing."""
        if self._closed:
            return
        self.factory.identify(user_id, traits)

    @_isolated()
    def set_context(self, extra: Optional[Dict[str, Any]]) -> None:
        """Merge ``extra`` into the context of subsequent events."""
        if self._closed:
            return
        self.factory.set_context(extra)

    @_isolated(default=False)
    def flush(self) -> bool:
        """Send whatever is queued now, on the keep-alive transport."""
        return self.scheduler.flush()

    # =========================================================================
    # Introspection
    # =========================================================================

    def get_session_info(self) -> Optional[SessionInfo]:
        if self._closed:
            return None
        return SessionInfo(
            session_id=self.session_id,
            device_id=self.device_id,
            sampled=self.sampled,
        )

    def get_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "session_id": self.session_id,
            "sampled": self.sampled,
            "started": self._started,
            "closed": self._closed,
            "last_seq": self.factory.last_seq,
            "initial_view_sent": self.initial_view.sent,
            "dispatcher": self.dispatcher.get_stats(),
            "scheduler": self.scheduler.get_stats(),
            "collectors": [c.name for c in self._collectors],
        }
        transport_stats = getattr(self.transport, "get_stats", None)
        if callable(transport_stats):
            stats["transport"] = transport_stats()
        return stats
