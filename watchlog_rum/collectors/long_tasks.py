"""
Long task detection via event loop lag.

A monitor task sleeps for a short interval and measures how late it was
woken up. Lateness beyond ``long_task_threshold`` means some callback held
the loop, which is reported as a ``long_task`` event with the blocked
duration in milliseconds.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from watchlog_rum.collectors.base import Collector, Teardown, noop_teardown
from watchlog_rum.events.models import RumEventType
from watchlog_rum.utils.async_helpers import get_running_loop_or_none

if TYPE_CHECKING:
    from watchlog_rum.agent import RumAgent

logger = logging.getLogger(__name__)

DEFAULT_PROBE_INTERVAL = 0.1


class LongTaskCollector(Collector):
    """
    Reports event loop stalls as long tasks.

    Args:
        probe_interval: Seconds between lag probes.
        threshold: Minimum lag in seconds; defaults to the agent config.
    """

    name = "long_tasks"

    def __init__(
        self,
        probe_interval: float = DEFAULT_PROBE_INTERVAL,
        threshold: Optional[float] = None,
    ):
        self.probe_interval = probe_interval
        self.threshold = threshold
        self._task: Optional[asyncio.Task] = None
        self.captured = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _monitor(self, agent: "RumAgent", threshold: float) -> None:
        loop = asyncio.get_running_loop()
        while True:
            try:
                expected = loop.time() + self.probe_interval
                await asyncio.sleep(self.probe_interval)
                lag = loop.time() - expected
                if lag >= threshold:
                    self.captured += 1
                    agent.dispatch(
                        RumEventType.LONG_TASK,
                        {"name": "self", "duration": round(lag * 1000.0, 3)},
                    )
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.debug(f"[LongTasks] Probe failed: {e}")

    def install(self, agent: "RumAgent") -> Teardown:
        loop = get_running_loop_or_none()
        if loop is None:
            logger.debug("[LongTasks] No running loop, long task capture disabled")
            return noop_teardown

        threshold = self.threshold
        if threshold is None:
            threshold = agent.config.long_task_threshold
        self._task = loop.create_task(self._monitor(agent, threshold))

        def teardown() -> None:
            if self._task is not None:
                self._task.cancel()
                self._task = None

        return teardown
