"""
Outbound batch payload.

Shape::

    {sdk, version, sentAt, apiKey?, sessionId, deviceId,
     app?, environment?, release?, events: [...]}

The API key travels in the body as well as in the ``X-Watchlog-Key``
header because beacon delivery cannot carry custom headers.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Sequence

from watchlog_rum.config.base_config import RumConfig
from watchlog_rum.events.models import RumEvent

SDK_NAME = "watchlog-rum-python"
API_KEY_HEADER = "X-Watchlog-Key"


def build_payload(
    config: RumConfig,
    session_id: str,
    device_id: str,
    events: Sequence[RumEvent],
    sent_at: int,
) -> Dict[str, Any]:
    from watchlog_rum import __version__

    payload: Dict[str, Any] = {
        "sdk": SDK_NAME,
        "version": __version__,
        "sentAt": sent_at,
        "apiKey": config.api_key or None,
        "sessionId": session_id,
        "deviceId": device_id,
        "app": config.app,
        "environment": config.environment,
        "release": config.release,
        "events": [event.to_dict() for event in events],
    }
    return {k: v for k, v in payload.items() if v is not None}


def encode_payload(payload: Dict[str, Any]) -> bytes:
    return json.dumps(payload, separators=(",", ":"), default=str).encode("utf-8")


def build_headers(api_key: Optional[str]) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers[API_KEY_HEADER] = str(api_key)
    return headers

