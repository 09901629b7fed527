"""
Identity and session module for watchlog-rum.

Provides:
- Device id persistence
- Session creation, renewal and the one-time sampling draw
- File and in-memory key-value storage backends
"""

from watchlog_rum.session.identity import (
    DEVICE_KEY,
    SESSION_KEY,
    Session,
    SessionManager,
    generate_id,
)

from watchlog_rum.session.storage import (
    DEFAULT_STORAGE_PATH,
    FileStorage,
    MemoryStorage,
    StorageBackend,
)

__all__ = [
    # Identity
    "DEVICE_KEY",
    "SESSION_KEY",
    "Session",
    "SessionManager",
    "generate_id",
    # Storage
    "DEFAULT_STORAGE_PATH",
    "FileStorage",
    "MemoryStorage",
    "StorageBackend",
]
