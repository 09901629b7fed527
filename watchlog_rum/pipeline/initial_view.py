"""
Initial page view race.

The first page view should carry a normalized route path, but the host may
register its route manifest a few frames after the agent starts. Two tasks
race on the running loop:

- a poller that checks readiness every ``poll_interval`` seconds
- a fallback that fires after ``timeout`` seconds regardless

Whichever wins fires exactly once and cancels the other. An explicit
``track_page_view`` from the host before either completes marks the view
as sent and both tasks stop without firing.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from watchlog_rum.utils.async_helpers import get_running_loop_or_none

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.016


class InitialViewCoordinator:
    """
    Fires the automatic first page view at most once.

    Args:
        fire: Emits the page view.
        is_ready: True once route normalization is available.
        poll_interval: Seconds between readiness checks.
        timeout: Seconds before firing without readiness.
    """

    def __init__(
        self,
        fire: Callable[[], None],
        is_ready: Callable[[], bool],
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = 0.8,
    ):
        self._fire = fire
        self._is_ready = is_ready
        self.poll_interval = poll_interval
        self.timeout = timeout

        self._sent = False
        self._poll_task: Optional[asyncio.Task] = None
        self._timeout_task: Optional[asyncio.Task] = None
        self.fired_by: Optional[str] = None

    @property
    def sent(self) -> bool:
        return self._sent

    @property
    def racing(self) -> bool:
        return any(
            t is not None and not t.done()
            for t in (self._poll_task, self._timeout_task)
        )

    def mark_sent(self) -> None:
        """Record that a page view went out; pending racers become no-ops."""
        self._sent = True

    def begin(self) -> None:
        if self._sent or self.racing:
            return

        if self._safe_ready():
            self._fire_once("ready")
            return

        loop = get_running_loop_or_none()
        if loop is None:
            logger.debug("[InitialView] No running loop, firing immediately")
            self._fire_once("no-loop")
            return

        self._poll_task = loop.create_task(self._poll())
        self._timeout_task = loop.create_task(self._fallback())

    def cancel(self) -> None:
        for task in (self._poll_task, self._timeout_task):
            if task is not None and not task.done():
                task.cancel()
        self._poll_task = None
        self._timeout_task = None

    def _safe_ready(self) -> bool:
        try:
            return bool(self._is_ready())
        except Exception as e:
            logger.debug(f"[InitialView] Readiness check failed: {e}")
            return False

    def _fire_once(self, reason: str) -> None:
        if self._sent:
            return
        self._sent = True
        self.fired_by = reason
        logger.debug(f"[InitialView] Firing initial page view ({reason})")
        try:
            self._fire()
        except Exception as e:
            logger.debug(f"[InitialView] Initial page view failed: {e}")

    async def _poll(self) -> None:
        try:
            while not self._sent:
                await asyncio.sleep(self.poll_interval)
                if self._sent:
                    return
                if self._safe_ready():
                    if self._timeout_task is not None:
                        self._timeout_task.cancel()
                    self._fire_once("manifest")
                    return
        except asyncio.CancelledError:
            pass

    async def _fallback(self) -> None:
        try:
            await asyncio.sleep(self.timeout)
        except asyncio.CancelledError:
            return
        if self._poll_task is not None:
            self._poll_task.cancel()
        self._fire_once("timeout")
