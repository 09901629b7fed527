"""
Outgoing HTTP request capture for aiohttp clients.

The collector owns an ``aiohttp.TraceConfig``; the host attaches it to
the client sessions it wants measured::

    agent = start_rum(capture_network=True)
    session = aiohttp.ClientSession(trace_configs=[agent.network_trace_config])

Each finished request becomes a ``network`` event with its method,
origin+path URL, status, ``ok`` flag and duration in milliseconds.
Requests are sampled with ``network_sample_rate`` and requests to the
agent's own endpoint are skipped so delivery never reports on itself.
"""

from __future__ import annotations

import logging
import random
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

import aiohttp

from watchlog_rum.collectors.base import Collector, Teardown
from watchlog_rum.events.context import origin_and_path
from watchlog_rum.events.models import RumEventType

if TYPE_CHECKING:
    from watchlog_rum.agent import RumAgent

logger = logging.getLogger(__name__)

NETWORK_KIND = "aiohttp"


class NetworkCollector(Collector):
    """
    Measures aiohttp requests through trace signals.

    Args:
        rng: Uniform [0, 1) source for the per-request sampling draw.
        monotonic: Clock for durations, in seconds.
    """

    name = "network"

    def __init__(
        self,
        rng: Callable[[], float] = random.random,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self._rng = rng
        self._monotonic = monotonic
        self.trace_config: Optional[aiohttp.TraceConfig] = None
        self._active = False
        self.captured = 0
        self.skipped = 0

    @property
    def active(self) -> bool:
        return self._active

    def _should_capture(self, agent: "RumAgent", url: str) -> bool:
        config = agent.config
        if config.ignore_self_requests and config.endpoint:
            if origin_and_path(url).startswith(origin_and_path(config.endpoint)):
                return False
        return self._rng() < config.network_sample_rate

    def _emit(
        self,
        agent: "RumAgent",
        ctx: Any,
        status: Optional[int],
    ) -> None:
        duration = max(0.0, (self._monotonic() - ctx.wl_started) * 1000.0)
        data: Dict[str, Any] = {
            "kind": NETWORK_KIND,
            "url": ctx.wl_url,
            "method": ctx.wl_method,
            "status": status,
            "ok": status is not None and 200 <= status < 400,
            "duration": round(duration, 3),
        }
        self.captured += 1
        agent.dispatch(
            RumEventType.NETWORK,
            {k: v for k, v in data.items() if v is not None},
        )

    def install(self, agent: "RumAgent") -> Teardown:
        trace_config = aiohttp.TraceConfig()

        async def on_request_start(session, ctx, params) -> None:
            ctx.wl_capture = False
            if not self._active:
                return
            try:
                url = str(params.url)
                if not self._should_capture(agent, url):
                    self.skipped += 1
                    return
                ctx.wl_capture = True
                ctx.wl_started = self._monotonic()
                ctx.wl_url = origin_and_path(url)
                ctx.wl_method = (params.method or "GET").upper()
            except Exception as e:
                logger.debug(f"[Network] Request start hook failed: {e}")

        async def on_request_end(session, ctx, params) -> None:
            if not self._active or not getattr(ctx, "wl_capture", False):
                return
            try:
                self._emit(agent, ctx, params.response.status)
            except Exception as e:
                logger.debug(f"[Network] Request end hook failed: {e}")

        async def on_request_exception(session, ctx, params) -> None:
            if not self._active or not getattr(ctx, "wl_capture", False):
                return
            try:
                self._emit(agent, ctx, None)
            except Exception as e:
                logger.debug(f"[Network] Request exception hook failed: {e}")

        trace_config.on_request_start.append(on_request_start)
        trace_config.on_request_end.append(on_request_end)
        trace_config.on_request_exception.append(on_request_exception)

        self.trace_config = trace_config
        self._active = True
        logger.debug(
            f"[Network] Capturing aiohttp requests "
            f"(sample rate {agent.config.network_sample_rate})"
        )

        def teardown() -> None:
            # Sessions may still hold the TraceConfig; the hooks go inert.
            self._active = False

        return teardown
