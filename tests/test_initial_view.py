"""Tests for watchlog_rum.pipeline.initial_view: the first page view race."""

from __future__ import annotations

import asyncio
from typing import List

import pytest

from watchlog_rum.pipeline.initial_view import InitialViewCoordinator


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Readiness:
    def __init__(self, ready: bool = False) -> None:
        self.ready = ready

    def __call__(self) -> bool:
        return self.ready


def _coordinator(
    fired: List[str],
    ready: Readiness,
    timeout: float = 0.2,
) -> InitialViewCoordinator:
    return InitialViewCoordinator(
        fire=lambda: fired.append("page_view"),
        is_ready=ready,
        poll_interval=0.005,
        timeout=timeout,
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestImmediateFire:
    """Cases that never start the race."""

    def test_ready_at_begin_fires_synchronously(self) -> None:
        fired: List[str] = []
        coord = _coordinator(fired, Readiness(True))
        coord.begin()
        assert fired == ["page_view"]
        assert coord.fired_by == "ready"

    def test_no_loop_fires_immediately(self) -> None:
        fired: List[str] = []
        coord = _coordinator(fired, Readiness(False))
        coord.begin()
        assert fired == ["page_view"]
        assert coord.fired_by == "no-loop"

    def test_already_sent_never_fires(self) -> None:
        fired: List[str] = []
        coord = _coordinator(fired, Readiness(True))
        coord.mark_sent()
        coord.begin()
        assert fired == []

    def test_raising_fire_is_contained(self) -> None:
        def boom() -> None:
            raise RuntimeError("fire failed")

        coord = InitialViewCoordinator(fire=boom, is_ready=lambda: True)
        coord.begin()
        assert coord.sent is True


class TestRace:
    """Poll versus timeout on a running loop."""

    @pytest.mark.asyncio
    async def test_manifest_arrival_wins(self) -> None:
        fired: List[str] = []
        ready = Readiness(False)
        coord = _coordinator(fired, ready, timeout=5.0)
        coord.begin()
        assert coord.racing is True

        await asyncio.sleep(0.02)
        ready.ready = True
        await asyncio.sleep(0.05)

        assert fired == ["page_view"]
        assert coord.fired_by == "manifest"
        assert coord.racing is False

    @pytest.mark.asyncio
    async def test_timeout_fires_exactly_once(self) -> None:
        fired: List[str] = []
        coord = _coordinator(fired, Readiness(False), timeout=0.05)
        coord.begin()

        await asyncio.sleep(0.2)

        assert fired == ["page_view"]
        assert coord.fired_by == "timeout"
        assert coord.racing is False

    @pytest.mark.asyncio
    async def test_explicit_page_view_suppresses_both(self) -> None:
        fired: List[str] = []
        ready = Readiness(False)
        coord = _coordinator(fired, ready, timeout=0.05)
        coord.begin()

        coord.mark_sent()
        ready.ready = True
        await asyncio.sleep(0.15)

        assert fired == []

    @pytest.mark.asyncio
    async def test_cancel_stops_race(self) -> None:
        fired: List[str] = []
        coord = _coordinator(fired, Readiness(False), timeout=0.05)
        coord.begin()
        coord.cancel()

        await asyncio.sleep(0.15)

        assert fired == []
        assert coord.racing is False

    @pytest.mark.asyncio
    async def test_begin_twice_starts_one_race(self) -> None:
        fired: List[str] = []
        coord = _coordinator(fired, Readiness(False), timeout=0.05)
        coord.begin()
        coord.begin()

        await asyncio.sleep(0.15)

        assert fired == ["page_view"]
