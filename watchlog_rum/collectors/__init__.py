"""
Collectors for watchlog-rum.

Provides:
- ErrorCollector: uncaught exceptions (main thread, threads, event loop)
- NetworkCollector: aiohttp request timings via TraceConfig
- LongTaskCollector: event loop stalls
"""

from typing import List

from watchlog_rum.collectors.base import Collector, Teardown, noop_teardown
from watchlog_rum.collectors.errors import UNHANDLED_REJECTION, ErrorCollector
from watchlog_rum.collectors.long_tasks import LongTaskCollector
from watchlog_rum.collectors.network import NETWORK_KIND, NetworkCollector
from watchlog_rum.config.base_config import RumConfig


def default_collectors(config: RumConfig) -> List[Collector]:
    """Collectors enabled by the capture flags of ``config``."""
    collectors: List[Collector] = []
    if config.capture_errors:
        collectors.append(ErrorCollector())
    if config.capture_network:
        collectors.append(NetworkCollector())
    if config.capture_long_tasks:
        collectors.append(LongTaskCollector())
    return collectors


__all__ = [
    "Collector",
    "Teardown",
    "noop_teardown",
    "default_collectors",
    "ErrorCollector",
    "UNHANDLED_REJECTION",
    "NetworkCollector",
    "NETWORK_KIND",
    "LongTaskCollector",
]
