"""
Transport module for watchlog-rum.

Provides:
- Batch payload assembly and encoding
- aiohttp keep-alive transport (fire-and-forget)
- aiohttp beacon sender for teardown-time delivery
"""

from watchlog_rum.transport.http import (
    AiohttpBeacon,
    AiohttpTransport,
    BeaconSender,
    Transport,
)

from watchlog_rum.transport.payload import (
    API_KEY_HEADER,
    SDK_NAME,
    build_headers,
    build_payload,
    encode_payload,
)

__all__ = [
    # Transports
    "AiohttpBeacon",
    "AiohttpTransport",
    "BeaconSender",
    "Transport",
    # Payload
    "API_KEY_HEADER",
    "SDK_NAME",
    "build_headers",
    "build_payload",
    "encode_payload",
]
