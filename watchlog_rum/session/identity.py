"""
Device identity and session lifecycle.

A device id is created once per storage location and never changes. A
session lives until it has been idle for longer than its TTL; activity
extends it without changing its id or its sampling decision. The sampling
decision is drawn exactly once, when the session is created, so that
renewals never re-roll it.

All operations fail open: unreadable, corrupt or unwritable state is
treated as absent and a fresh value is returned, never an exception.
"""

from __future__ import annotations

import json
import logging
import math
import random
import uuid
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional

from watchlog_rum.session.storage import StorageBackend
from watchlog_rum.utils.clock import now_ms

logger = logging.getLogger(__name__)

DEVICE_KEY = "wl_device_id"
SESSION_KEY = "wl_session_v1"


def generate_id() -> str:
    """
    Random UUID4 string.

    Uses the OS entropy source; hosts without one get a pseudo-random UUID.
    """
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        return str(uuid.UUID(int=random.getrandbits(128), version=4))


@dataclass(frozen=True)
class Session:
    """Persisted session record ``{id, sampled, last}``."""
    id: str
    sampled: bool
    last: int  # epoch ms of last activity

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "sampled": self.sampled, "last": self.last}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Any) -> "Session":
        if not isinstance(data, dict):
            raise ValueError("session record must be an object")
        sid = data.get("id")
        sampled = data.get("sampled")
        last = data.get("last")
        if not isinstance(sid, str) or not sid:
            raise ValueError("session id missing")
        if not isinstance(sampled, bool):
            raise ValueError("session sampled flag missing")
        if isinstance(last, bool) or not isinstance(last, (int, float)):
            raise ValueError("session last-activity missing")
        if not math.isfinite(last):
            raise ValueError("session last-activity not finite")
        return cls(id=sid, sampled=sampled, last=int(last))

    @classmethod
    def from_json(cls, raw: str) -> "Session":
        return cls.from_dict(json.loads(raw))


class SessionManager:
    """
    Reads and writes device/session identity through a storage backend.

    Args:
        storage: Persistent key-value store.
        ttl: Session idle time-to-live in seconds.
        sample_rate: Probability that a new session is sampled.
        clock: Epoch-millisecond clock.
        rng: Uniform [0, 1) source for the sampling draw.
    """

    def __init__(
        self,
        storage: StorageBackend,
        ttl: float,
        sample_rate: float,
        clock: Callable[[], int] = now_ms,
        rng: Callable[[], float] = random.random,
    ):
        self.storage = storage
        self.ttl = ttl
        self.sample_rate = sample_rate
        self._clock = clock
        self._rng = rng

    @property
    def ttl_ms(self) -> float:
        return self.ttl * 1000.0

    def get_or_create_device_id(self) -> str:
        try:
            existing = self.storage.get_item(DEVICE_KEY)
            if existing:
                return existing
            device_id = generate_id()
            self.storage.set_item(DEVICE_KEY, device_id)
            return device_id
        except Exception as e:
            logger.debug(f"[Session] Device id not persisted: {e}")
            return generate_id()

    def _read_session(self) -> Optional[Session]:
        try:
            raw = self.storage.get_item(SESSION_KEY)
        except Exception as e:
            logger.debug(f"[Session] Cannot read session: {e}")
            return None
        if not raw:
            return None
        try:
            return Session.from_json(raw)
        except ValueError as e:
            logger.debug(f"[Session] Discarding corrupt session record: {e}")
            return None

    def _persist(self, session: Session) -> None:
        try:
            self.storage.set_item(SESSION_KEY, session.to_json())
        except Exception as e:
            logger.debug(f"[Session] Session not persisted: {e}")

    def load_or_create_session(self) -> Session:
        now = self._clock()
        existing = self._read_session()

        if existing is not None and now - existing.last < self.ttl_ms:
            renewed = replace(existing, last=now)
            self._persist(renewed)
            return renewed

        session = Session(
            id=generate_id(),
            sampled=self._rng() < self.sample_rate,
            last=now,
        )
        self._persist(session)
        logger.debug(
            f"[Session] New session {session.id[:8]} (sampled={session.sampled})"
        )
        return session

    def refresh_activity(self) -> None:
        """Bump ``last`` on the persisted session. No-op when there is none."""
        existing = self._read_session()
        if existing is None:
            return
        self._persist(replace(existing, last=self._clock()))
