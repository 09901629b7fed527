"""
Collector interface.

A collector hooks one source of telemetry in the host process and feeds
raw events into the agent through ``agent.dispatch()`` or
``agent.track_error()``. Collectors are only installed for sampled
sessions; each returns the teardown that undoes its hooks, and the agent
runs every teardown on shutdown.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from watchlog_rum.agent import RumAgent

Teardown = Callable[[], None]


def noop_teardown() -> None:
    return None


class Collector(ABC):
    """Abstract base class for telemetry sources."""

    name: str = "collector"

    @abstractmethod
    def install(self, agent: "RumAgent") -> Teardown:
        """Hook the source and return a callable that unhooks it."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
