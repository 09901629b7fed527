"""Tests for watchlog_rum.session.identity: device ids, sessions, sampling."""

from __future__ import annotations

import json
from typing import Dict, List, Optional

import pytest

from conftest import FakeClock
from watchlog_rum.exceptions import StorageError
from watchlog_rum.session.identity import (
    DEVICE_KEY,
    SESSION_KEY,
    Session,
    SessionManager,
    generate_id,
)
from watchlog_rum.session.storage import MemoryStorage, StorageBackend


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

TTL_SECONDS = 1800.0
TTL_MS = int(TTL_SECONDS * 1000)


class BrokenStorage(StorageBackend):
    """Every operation fails, like a browser with storage disabled."""

    def __init__(self, error: type = StorageError) -> None:
        self.error = error

    def get_item(self, key: str) -> Optional[str]:
        raise self.error("storage disabled")

    def set_item(self, key: str, value: str) -> None:
        raise self.error("storage disabled")

    def remove_item(self, key: str) -> None:
        raise self.error("storage disabled")


class CountingRng:
    """Returns queued values and counts draws."""

    def __init__(self, values: List[float]) -> None:
        self.values = list(values)
        self.draws = 0

    def __call__(self) -> float:
        self.draws += 1
        return self.values.pop(0) if self.values else 0.0


def _manager(
    storage: StorageBackend,
    clock: FakeClock,
    rng=None,
    sample_rate: float = 1.0,
) -> SessionManager:
    return SessionManager(
        storage,
        ttl=TTL_SECONDS,
        sample_rate=sample_rate,
        clock=clock,
        rng=rng or CountingRng([0.0]),
    )


def _stored_session(storage: MemoryStorage) -> Dict:
    return json.loads(storage.get_item(SESSION_KEY))


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestGenerateId:
    """Verify id generation."""

    def test_ids_are_unique(self) -> None:
        assert len({generate_id() for _ in range(100)}) == 100

    def test_uuid_shape(self) -> None:
        value = generate_id()
        assert len(value) == 36
        assert value[14] == "4"


class TestDeviceId:
    """Device id persistence."""

    def test_created_once_and_reused(self, storage: MemoryStorage, clock: FakeClock) -> None:
        mgr = _manager(storage, clock)
        first = mgr.get_or_create_device_id()
        second = mgr.get_or_create_device_id()
        assert first == second
        assert storage.get_item(DEVICE_KEY) == first

    def test_existing_value_is_kept(self, clock: FakeClock) -> None:
        storage = MemoryStorage({DEVICE_KEY: "dev-1"})
        assert _manager(storage, clock).get_or_create_device_id() == "dev-1"

    def test_storage_failure_returns_ephemeral_id(self, clock: FakeClock) -> None:
        mgr = _manager(BrokenStorage(), clock)
        a = mgr.get_or_create_device_id()
        b = mgr.get_or_create_device_id()
        assert a and b and a != b

    @pytest.mark.parametrize("error", [PermissionError, OSError, RuntimeError])
    def test_foreign_storage_errors_are_contained(self, clock: FakeClock, error: type) -> None:
        assert _manager(BrokenStorage(error), clock).get_or_create_device_id()


class TestLoadOrCreateSession:
    """Session creation, renewal and expiry."""

    def test_new_session_is_persisted(self, storage: MemoryStorage, clock: FakeClock) -> None:
        session = _manager(storage, clock).load_or_create_session()
        assert _stored_session(storage) == {
            "id": session.id,
            "sampled": True,
            "last": clock.now,
        }

    def test_renewal_within_ttl_keeps_id_and_refreshes_last(
        self, storage: MemoryStorage, clock: FakeClock
    ) -> None:
        mgr = _manager(storage, clock)
        first = mgr.load_or_create_session()
        clock.advance(TTL_MS - 1)
        second = mgr.load_or_create_session()

        assert second.id == first.id
        assert second.last == clock.now
        assert _stored_session(storage)["last"] == clock.now

    def test_expired_session_gets_new_id(self, storage: MemoryStorage, clock: FakeClock) -> None:
        mgr = _manager(storage, clock)
        first = mgr.load_or_create_session()
        clock.advance(TTL_MS + 1)
        second = mgr.load_or_create_session()
        assert second.id != first.id

    def test_age_equal_to_ttl_expires(self, storage: MemoryStorage, clock: FakeClock) -> None:
        mgr = _manager(storage, clock)
        first = mgr.load_or_create_session()
        clock.advance(TTL_MS)
        assert mgr.load_or_create_session().id != first.id

    def test_sampling_is_never_redrawn_on_renewal(
        self, storage: MemoryStorage, clock: FakeClock
    ) -> None:
        rng = CountingRng([0.05, 0.99, 0.99, 0.99])
        mgr = _manager(storage, clock, rng=rng, sample_rate=0.1)

        first = mgr.load_or_create_session()
        for _ in range(3):
            clock.advance(60_000)
            renewed = mgr.load_or_create_session()
            assert renewed.sampled is True
            assert renewed.id == first.id

        assert rng.draws == 1

    def test_draw_equal_to_rate_is_not_sampled(self, storage: MemoryStorage, clock: FakeClock) -> None:
        mgr = _manager(storage, clock, rng=CountingRng([0.3]), sample_rate=0.3)
        assert mgr.load_or_create_session().sampled is False

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[]",
            '{"id": "", "sampled": true, "last": 1}',
            '{"id": "s", "sampled": "yes", "last": 1}',
            '{"id": "s", "sampled": true}',
            '{"id": "s", "sampled": true, "last": Infinity}',
            '{"id": "s", "sampled": true, "last": 1e999}',
            '{"id": "s", "sampled": true, "last": NaN}',
        ],
    )
    def test_corrupt_record_is_treated_as_absent(self, clock: FakeClock, raw: str) -> None:
        storage = MemoryStorage({SESSION_KEY: raw})
        session = _manager(storage, clock).load_or_create_session()
        assert session.id != "s"
        assert _stored_session(storage)["id"] == session.id

    def test_storage_failure_fails_open(self, clock: FakeClock) -> None:
        session = _manager(BrokenStorage(), clock).load_or_create_session()
        assert session.id
        assert session.last == clock.now

    @pytest.mark.parametrize("error", [PermissionError, OSError])
    def test_foreign_storage_errors_fail_open(self, clock: FakeClock, error: type) -> None:
        mgr = _manager(BrokenStorage(error), clock)
        session = mgr.load_or_create_session()
        assert session.id
        mgr.refresh_activity()


class TestRefreshActivity:
    """Activity bumps the persisted ``last`` only."""

    def test_refresh_updates_last_only(self, storage: MemoryStorage, clock: FakeClock) -> None:
        mgr = _manager(storage, clock)
        session = mgr.load_or_create_session()
        clock.advance(5_000)
        mgr.refresh_activity()

        stored = _stored_session(storage)
        assert stored["id"] == session.id
        assert stored["sampled"] == session.sampled
        assert stored["last"] == clock.now

    def test_refresh_without_session_is_noop(self, storage: MemoryStorage, clock: FakeClock) -> None:
        _manager(storage, clock).refresh_activity()
        assert SESSION_KEY not in storage

    def test_refresh_with_broken_storage_is_silent(self, clock: FakeClock) -> None:
        _manager(BrokenStorage(), clock).refresh_activity()


class TestSessionRecord:
    """Wire format of the persisted record."""

    def test_round_trip(self) -> None:
        session = Session(id="abc", sampled=False, last=123)
        assert Session.from_json(session.to_json()) == session

    def test_float_last_is_truncated(self) -> None:
        session = Session.from_dict({"id": "abc", "sampled": True, "last": 10.9})
        assert session.last == 10

    def test_frozen(self) -> None:
        session = Session(id="abc", sampled=True, last=1)
        with pytest.raises(AttributeError):
            session.id = "other"  # type: ignore[misc]
