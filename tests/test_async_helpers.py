"""Tests for watchlog_rum.utils.async_helpers."""

from __future__ import annotations

import asyncio
import threading
from typing import List

import pytest

from watchlog_rum.utils.async_helpers import (
    BackgroundTasks,
    PeriodicTimer,
    get_running_loop_or_none,
    run_detached,
)


class TestLoopProbe:

    def test_outside_loop(self) -> None:
        assert get_running_loop_or_none() is None

    @pytest.mark.asyncio
    async def test_inside_loop(self) -> None:
        assert get_running_loop_or_none() is asyncio.get_running_loop()


class TestBackgroundTasks:

    @pytest.mark.asyncio
    async def test_tasks_are_tracked_until_done(self) -> None:
        tasks = BackgroundTasks()
        done: List[int] = []

        async def work(n: int) -> None:
            await asyncio.sleep(0.01)
            done.append(n)

        tasks.spawn(work(1))
        tasks.spawn(work(2))
        assert tasks.pending == 2

        await tasks.wait(timeout=1.0)
        await asyncio.sleep(0)
        assert sorted(done) == [1, 2]
        assert tasks.pending == 0
        assert tasks.get_metrics()["spawned"] == 2

    @pytest.mark.asyncio
    async def test_cancel_all(self) -> None:
        tasks = BackgroundTasks()
        task = tasks.spawn(asyncio.sleep(10))
        tasks.cancel_all()
        await asyncio.sleep(0)
        assert task.cancelled()


class TestPeriodicTimer:

    def test_start_without_loop(self) -> None:
        timer = PeriodicTimer(0.01, lambda: None)
        assert timer.start() is False
        assert timer.running is False

    @pytest.mark.asyncio
    async def test_ticks_and_survives_callback_errors(self) -> None:
        calls: List[int] = []

        def callback() -> None:
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first tick fails")

        timer = PeriodicTimer(0.01, callback, name="test")
        assert timer.start() is True
        assert timer.start() is True
        await asyncio.sleep(0.08)
        timer.cancel()

        assert len(calls) >= 2
        assert timer.ticks == len(calls)
        assert timer.running is False


class TestRunDetached:

    def test_runs_on_own_thread(self) -> None:
        seen: List[str] = []

        async def work() -> None:
            await asyncio.sleep(0)
            seen.append(threading.current_thread().name)

        thread = run_detached(work, name="rum-test", daemon=False)
        thread.join(timeout=5.0)
        assert seen == ["rum-test"]

    def test_failures_are_contained(self) -> None:
        async def boom() -> None:
            raise RuntimeError("detached failure")

        thread = run_detached(boom, name="rum-test-fail")
        thread.join(timeout=5.0)
        assert not thread.is_alive()
