"""
Async utility helpers for watchlog-rum.

Provides:
- BackgroundTasks: fire-and-forget task set that keeps tasks alive
- PeriodicTimer: interval callback with synchronous cancellation
- run_detached: run a coroutine on a private loop in a worker thread
- get_running_loop_or_none: loop probing without raising
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, Optional, Set

logger = logging.getLogger(__name__)


def get_running_loop_or_none() -> Optional[asyncio.AbstractEventLoop]:
    """Return the running event loop, or None outside of one."""
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class BackgroundTasks:
    """
    Fire-and-forget task tracker.

    The event loop only keeps weak references to tasks, so a task whose
    result nobody awaits can be garbage collected mid-flight. This set
    holds a strong reference until the task finishes.

    Example:
        tasks = BackgroundTasks()
        tasks.spawn(send_batch(body))
    """

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()
        self._spawned = 0

    def spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        """Schedule a coroutine on the running loop without awaiting it."""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        self._spawned += 1
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def wait(self, timeout: Optional[float] = None) -> None:
        """Wait for the currently pending tasks."""
        if not self._tasks:
            return
        await asyncio.wait(set(self._tasks), timeout=timeout)

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()

    def get_metrics(self) -> Dict[str, Any]:
        return {"pending": len(self._tasks), "spawned": self._spawned}


class PeriodicTimer:
    """
    Call ``callback`` every ``interval`` seconds on the running loop.

    ``start()`` is idempotent and ``cancel()`` is synchronous, so the timer
    can be torn down from plain (non-async) shutdown paths. Exceptions from
    the callback are logged and the timer keeps ticking.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        name: str = "timer",
    ):
        self.interval = interval
        self.callback = callback
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def ticks(self) -> int:
        return self._ticks

    def start(self) -> bool:
        """Start ticking. Returns False when no event loop is running."""
        if self.running:
            return True

        loop = get_running_loop_or_none()
        if loop is None:
            logger.debug(f"[Timer] No running loop, {self.name} disabled")
            return False

        self._task = loop.create_task(self._loop())
        return True

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval)
                self._ticks += 1
                self.callback()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning(f"[Timer] {self.name} callback error: {e}")


def run_detached(
    coro_factory: Callable[[], Awaitable[Any]],
    name: str = "watchlog-rum-detached",
    daemon: bool = True,
) -> threading.Thread:
    """
    Run a coroutine to completion on a fresh loop in a worker thread.

    Used when the caller is not inside an event loop, or when the work must
    outlive the host loop (interpreter teardown). Non-daemon threads keep
    the interpreter alive until the coroutine returns.
    """

    def _runner() -> None:
        try:
            asyncio.run(coro_factory())
        except Exception as e:
            logger.debug(f"[Detached] {name} failed: {e}")

    thread = threading.Thread(target=_runner, name=name, daemon=daemon)
    thread.start()
    return thread
