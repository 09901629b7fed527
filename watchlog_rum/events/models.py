"""
RUM event model.

Every event carries the same envelope (type, timestamp, session and device
ids, sequence number, context snapshot) plus a type-specific ``data``
payload. Events and their context are frozen; dict members are copied at
construction so later mutation of caller-held state cannot leak into an
already-queued event, and an event always serializes to the same bytes.

Wire format (``to_dict``) uses the collector's camelCase keys and omits
unset optional fields.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class RumEventType(str, Enum):
    """Closed set of event types."""
    PAGE_VIEW = "page_view"
    CUSTOM = "custom"
    ERROR = "error"
    WEB_VITAL = "web_vital"
    RESOURCE = "resource"
    NETWORK = "network"
    LONG_TASK = "long_task"


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class PageInfo:
    """Where the host was when the event was built."""
    url: str
    title: Optional[str] = None
    referrer: Optional[str] = None
    path: Optional[str] = None
    normalized_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "url": self.url,
            "title": self.title,
            "referrer": self.referrer,
            "path": self.path,
            "normalizedPath": self.normalized_path,
        })


@dataclass(frozen=True)
class Viewport:
    w: int = 0
    h: int = 0
    dpr: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({"w": self.w, "h": self.h, "dpr": self.dpr})


@dataclass(frozen=True)
class EventContext:
    """Structural snapshot stamped on every event."""
    page: PageInfo
    viewport: Viewport
    app: Optional[str] = None
    environment: Optional[str] = None
    release: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    extra: Optional[Dict[str, Any]] = None
    user_agent: Optional[str] = None
    language: Optional[str] = None
    timezone: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "app": self.app,
            "environment": self.environment,
            "release": self.release,
            "page": self.page.to_dict(),
            "viewport": self.viewport.to_dict(),
            "user": self.user,
            "extra": self.extra,
            "userAgent": self.user_agent,
            "language": self.language,
            "timezone": self.timezone,
        })


@dataclass(frozen=True)
class RumEvent:
    """
    A single telemetry event.

    Attributes:
        type: Event type.
        ts: Wall-clock epoch milliseconds (informational only).
        session_id: Session the event belongs to.
        device_id: Persistent device id.
        seq: Per-agent sequence number; the only ordering guarantee.
        context: Context snapshot taken at construction.
        data: Type-specific payload.
        name: Event name, set for custom events.
    """

    type: RumEventType
    ts: int
    session_id: str
    device_id: str
    seq: int
    context: EventContext
    data: Any = None
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "type": RumEventType(self.type).value,
            "ts": self.ts,
            "sessionId": self.session_id,
            "deviceId": self.device_id,
            "seq": self.seq,
            "context": self.context.to_dict(),
        }
        if self.name is not None:
            result["name"] = self.name
        if self.data is not None:
            result["data"] = self.data
        return result

    def serialize(self) -> bytes:
        """Compact UTF-8 JSON encoding used for size accounting."""
        return json.dumps(
            self.to_dict(), separators=(",", ":"), default=str
        ).encode("utf-8")

    @property
    def byte_size(self) -> int:
        return len(self.serialize())
