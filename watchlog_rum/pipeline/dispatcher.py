"""
Single choke point between event construction and the queue.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from watchlog_rum.config.base_config import RumConfig
from watchlog_rum.events.models import RumEvent

logger = logging.getLogger(__name__)


class EventDispatcher:
    """
    Routes every built event through the ``before_send`` hook.

    The hook may return the event, a modified copy, or None to drop it.
    It is untrusted: if it raises, or returns something that is not an
    event, the event is dropped and nothing propagates to the caller.
    """

    def __init__(self, config: RumConfig, sink: Callable[[RumEvent], bool]):
        self.config = config
        self._sink = sink

        self._accepted = 0
        self._dropped_by_hook = 0
        self._hook_errors = 0

    def dispatch(self, event: RumEvent) -> bool:
        hook = self.config.before_send
        if hook is not None:
            try:
                result = hook(event)
            except Exception as e:
                self._hook_errors += 1
                logger.debug(f"[Dispatch] before_send raised, dropping seq={event.seq}: {e}")
                return False

            if result is None:
                self._dropped_by_hook += 1
                return False
            if not isinstance(result, RumEvent):
                self._hook_errors += 1
                logger.debug(
                    f"[Dispatch] before_send returned {type(result).__name__}, dropping"
                )
                return False
            event = result

        self._accepted += 1
        return self._sink(event)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "accepted": self._accepted,
            "dropped_by_hook": self._dropped_by_hook,
            "hook_errors": self._hook_errors,
        }
