"""
Bounded event queue with byte accounting.

Two independent triggers keep the queue small:
- byte budget: an event that would push the buffered bytes past
  ``max_bytes`` forces a flush first; if it still does not fit it is
  dropped (newest is dropped, queued events are kept);
- batch size: reaching ``batch_max`` events forces a flush right after
  the append.

The byte counter is incremented on enqueue and reset to zero on drain.
Events are immutable, so an event's size never changes while queued.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

from watchlog_rum.events.models import RumEvent

logger = logging.getLogger(__name__)


class EventQueue:
    """
    Ordered buffer of accepted events awaiting transport.

    Args:
        max_bytes: Hard ceiling on buffered serialized bytes.
        batch_max: Queue length that triggers a flush.
        on_full: Called to drain the queue when either limit is hit.
    """

    def __init__(
        self,
        max_bytes: int,
        batch_max: int,
        on_full: Callable[[], Any],
    ):
        self.max_bytes = max_bytes
        self.batch_max = batch_max
        self._on_full = on_full
        self._events: List[RumEvent] = []
        self._bytes = 0

        self._enqueued = 0
        self._dropped_overflow = 0

    def __len__(self) -> int:
        return len(self._events)

    @property
    def length(self) -> int:
        return len(self._events)

    @property
    def byte_size(self) -> int:
        return self._bytes

    def snapshot(self) -> List[RumEvent]:
        """Copy of the queued events, oldest first."""
        return list(self._events)

    def enqueue(self, event: RumEvent) -> bool:
        """
        Append an event, flushing as needed.

        Returns:
            False when the event was dropped for exceeding the byte budget.
        """
        size = event.byte_size

        if self._bytes + size > self.max_bytes:
            self._on_full()
            if self._bytes + size > self.max_bytes:
                self._dropped_overflow += 1
                logger.debug(
                    f"[Queue] Dropped {event.type.value} event seq={event.seq} "
                    f"({size} bytes exceeds budget of {self.max_bytes})"
                )
                return False

        self._events.append(event)
        self._bytes += size
        self._enqueued += 1

        if len(self._events) >= self.batch_max:
            self._on_full()
        return True

    def drain(self) -> List[RumEvent]:
        """Take every queued event and reset the queue in one step."""
        events = self._events
        self._events = []
        self._bytes = 0
        return events

    def get_stats(self) -> Dict[str, Any]:
        return {
            "length": len(self._events),
            "bytes": self._bytes,
            "max_bytes": self.max_bytes,
            "batch_max": self.batch_max,
            "enqueued_total": self._enqueued,
            "dropped_overflow": self._dropped_overflow,
        }
