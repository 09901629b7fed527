"""
Event construction: envelope stamping and sequence numbering.
"""

from __future__ import annotations

import copy
import logging
import traceback
from typing import Any, Callable, Dict, Optional, Union

from watchlog_rum.config.base_config import RumConfig
from watchlog_rum.events.context import HostEnvironment
from watchlog_rum.events.models import EventContext, RumEvent, RumEventType
from watchlog_rum.utils.clock import now_ms

logger = logging.getLogger(__name__)


def error_data(error: Union[BaseException, str], source: Optional[str] = None) -> Dict[str, Any]:
    """Describe an exception (or a bare message) as error-event data."""
    if isinstance(error, str):
        error = Exception(error)

    stack = None
    if error.__traceback__ is not None:
        stack = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )

    data: Dict[str, Any] = {
        "name": type(error).__name__,
        "message": str(error),
        "stack": stack,
        "source": source,
    }
    return {k: v for k, v in data.items() if v is not None}


class EventFactory:
    """
    Builds events with the common envelope.

    Holds the mutable user/extra context that ``identify()`` and
    ``set_context()`` update; every event receives a deep copy of it.
    Sequence numbers start at 1 and increase by one per built event.
    """

    def __init__(
        self,
        config: RumConfig,
        host: HostEnvironment,
        session_id: str,
        device_id: str,
        clock: Callable[[], int] = now_ms,
    ):
        self.config = config
        self.host = host
        self.session_id = session_id
        self.device_id = device_id
        self._clock = clock
        self._seq = 0

        self.user: Optional[Dict[str, Any]] = (
            {"id": config.user_id} if config.user_id else None
        )
        self.extra: Dict[str, Any] = {}

    @property
    def last_seq(self) -> int:
        return self._seq

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def identify(self, user_id: str, traits: Optional[Dict[str, Any]] = None) -> None:
        self.user = {"id": user_id, **(traits or {})}

    def set_context(self, extra: Optional[Dict[str, Any]]) -> None:
        self.extra = {**self.extra, **(extra or {})}

    def build_context(self, extra: Optional[Dict[str, Any]] = None) -> EventContext:
        merged_extra = {**self.extra, **(extra or {})}
        return EventContext(
            page=self.host.snapshot_page(self.config.path_normalizer),
            viewport=self.host.viewport,
            app=self.config.app,
            environment=self.config.environment,
            release=self.config.release,
            user=copy.deepcopy(self.user) if self.user else None,
            extra=copy.deepcopy(merged_extra) if merged_extra else None,
            user_agent=self.host.user_agent,
            language=self.host.language,
            timezone=self.host.timezone,
        )

    def build(
        self,
        event_type: Union[RumEventType, str],
        data: Any = None,
        name: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> RumEvent:
        kind = RumEventType(event_type)
        context = self.build_context(extra)
        payload = copy.deepcopy(data)
        # seq is taken last so a failed build never leaves a gap
        return RumEvent(
            type=kind,
            ts=self._clock(),
            session_id=self.session_id,
            device_id=self.device_id,
            seq=self._next_seq(),
            context=context,
            data=payload,
            name=name,
        )
