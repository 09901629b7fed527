"""Shared test fixtures for watchlog-rum."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pytest

from watchlog_rum import api
from watchlog_rum.config.base_config import RumConfig
from watchlog_rum.events.context import HostEnvironment
from watchlog_rum.events.models import Viewport
from watchlog_rum.routing import default_binding
from watchlog_rum.session.storage import MemoryStorage
from watchlog_rum.transport.http import BeaconSender, Transport


class FakeTransport(Transport):
    """Records every send instead of touching the network."""

    def __init__(self, fail: bool = False) -> None:
        self.calls: List[Tuple[str, bytes, Dict[str, str]]] = []
        self.blocking_calls = 0
        self.fail = fail
        self.closed = False

    def send(self, url: str, body: bytes, headers: Dict[str, str]) -> None:
        self.calls.append((url, body, dict(headers)))
        if self.fail:
            raise ConnectionError("network down")

    def send_blocking(self, url: str, body: bytes, headers: Dict[str, str]) -> None:
        self.blocking_calls += 1
        self.send(url, body, headers)

    async def aclose(self) -> None:
        self.closed = True

    def payloads(self) -> List[Dict[str, Any]]:
        return [json.loads(body) for _, body, _ in self.calls]


class FakeBeacon(BeaconSender):
    """Records beacon calls; can refuse or raise."""

    def __init__(self, accept: bool = True, fail: bool = False) -> None:
        self.calls: List[Tuple[str, bytes]] = []
        self.accept = accept
        self.fail = fail
        self.blocking_calls = 0

    def send_beacon(self, url: str, body: bytes) -> bool:
        self.calls.append((url, body))
        if self.fail:
            raise RuntimeError("beacon unavailable")
        return self.accept

    def send_beacon_blocking(self, url: str, body: bytes) -> bool:
        self.blocking_calls += 1
        return self.send_beacon(url, body)

    def payloads(self) -> List[Dict[str, Any]]:
        return [json.loads(body) for _, body in self.calls]


class FakeClock:
    """Epoch-millisecond clock advanced by hand."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def make_config(**overrides: Any) -> RumConfig:
    """Config with sampling on and side-effecting features off."""
    options: Dict[str, Any] = {
        "endpoint": "https://collector.test/rum",
        "api_key": "k-123",
        "app": "shop",
        "environment": "test",
        "release": "1.0.0",
        "sample_rate": 1.0,
        "capture_errors": False,
        "auto_track_initial_view": False,
    }
    options.update(overrides)
    return RumConfig.from_dict(options)


def make_host(url: str = "https://shop.test/products/42?ref=ad") -> HostEnvironment:
    return HostEnvironment(
        url=url,
        title="Product",
        viewport=Viewport(w=1280, h=720, dpr=2.0),
        user_agent="pytest-agent",
        language="en-US",
        timezone="UTC",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def beacon() -> FakeBeacon:
    return FakeBeacon()


@pytest.fixture
def host() -> HostEnvironment:
    return make_host()


@pytest.fixture(autouse=True)
def reset_globals() -> Iterator[None]:
    """Every test starts without a running agent or pending routes."""
    default_binding.reset()
    yield
    agent: Optional[Any] = api.get_agent()
    if agent is not None:
        agent.shutdown()
    api._agent = None
    default_binding.reset()
