"""Tests for the cooldown store.

Uses an in-memory repository in place of Firestore.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from weather_alerts.core.config import CooldownConfig
from weather_alerts.core.cooldown import CooldownKey, CooldownRecord
from weather_alerts.core.weather import AlertType
from weather_alerts.shell.cooldown_store import CooldownStore


START = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class InMemoryRepository:
    """Stores cooldown records by document id, like Firestore."""

    def __init__(self):
        self.records: dict[str, CooldownRecord] = {}

    def get_cooldown(self, key: CooldownKey) -> CooldownRecord | None:
        return self.records.get(key.document_id)

    def upsert_cooldown(self, record: CooldownRecord) -> None:
        self.records[record.key.document_id] = record

    def delete_cooldowns_before(self, cutoff: datetime) -> int:
        expired = [
            doc_id for doc_id, record in self.records.items()
            if record.last_notified_at < cutoff
        ]
        for doc_id in expired:
            del self.records[doc_id]
        return len(expired)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def store(repository, clock):
    return CooldownStore(repository, CooldownConfig(), clock=clock)


class TestIsInCooldown:
    """Tests for CooldownStore.is_in_cooldown."""

    def test_cooldown_lasts_one_hour(self, store, clock):
        """Notified at t=0: in cooldown at 30 min, free again at 61 min."""
        store.record_sent("R", 10.00, 20.00, AlertType.RAIN_NOW)

        clock.advance(minutes=30)
        assert store.is_in_cooldown("R", 10.00, 20.00, AlertType.RAIN_NOW) is True

        clock.advance(minutes=31)
        assert store.is_in_cooldown("R", 10.00, 20.00, AlertType.RAIN_NOW) is False

    def test_unknown_key_not_in_cooldown(self, store):
        assert store.is_in_cooldown("R", 10.0, 20.0, AlertType.RAIN_NOW) is False

    def test_other_alert_type_not_affected(self, store):
        store.record_sent("R", 10.0, 20.0, AlertType.RAIN_NOW)

        assert store.is_in_cooldown("R", 10.0, 20.0, AlertType.UV_HIGH) is False

    def test_other_recipient_not_affected(self, store):
        store.record_sent("R", 10.0, 20.0, AlertType.RAIN_NOW)

        assert store.is_in_cooldown("S", 10.0, 20.0, AlertType.RAIN_NOW) is False

    def test_raw_coordinates_are_rounded(self, store):
        """Lookups with unrounded coordinates hit the same cell."""
        store.record_sent("R", 10.001, 20.004, AlertType.RAIN_NOW)

        assert store.is_in_cooldown("R", 10.003, 19.998, AlertType.RAIN_NOW) is True

    def test_fails_open_on_storage_error(self, clock):
        """A read error is treated as not in cooldown."""
        repository = Mock()
        repository.get_cooldown.side_effect = RuntimeError("unavailable")
        store = CooldownStore(repository, clock=clock)

        assert store.is_in_cooldown("R", 10.0, 20.0, AlertType.WIND) is False

    def test_custom_window(self, repository, clock):
        store = CooldownStore(repository, CooldownConfig(window_minutes=10), clock=clock)
        store.record_sent("R", 10.0, 20.0, AlertType.WIND)

        clock.advance(minutes=11)

        assert store.is_in_cooldown("R", 10.0, 20.0, AlertType.WIND) is False


class TestRecordSent:
    """Tests for CooldownStore.record_sent."""

    def test_repeated_sends_keep_one_record(self, store, repository, clock):
        """Upserts replace the record for a key."""
        store.record_sent("R", 10.0, 20.0, AlertType.RAIN_NOW, severity="light", value=1.0)
        clock.advance(minutes=90)
        store.record_sent("R", 10.0, 20.0, AlertType.RAIN_NOW, severity="heavy", value=15.0)

        assert len(repository.records) == 1
        record = next(iter(repository.records.values()))
        assert record.last_notified_at == START + timedelta(minutes=90)
        assert record.severity == "heavy"
        assert record.value == 15.0

    def test_returns_true_on_success(self, store):
        assert store.record_sent("R", 10.0, 20.0, AlertType.RAIN_NOW) is True

    def test_returns_false_on_storage_error(self, clock):
        repository = Mock()
        repository.upsert_cooldown.side_effect = RuntimeError("write failed")
        store = CooldownStore(repository, clock=clock)

        assert store.record_sent("R", 10.0, 20.0, AlertType.RAIN_NOW) is False

    def test_key_uses_rounded_coordinates(self, store, repository):
        store.record_sent("R", 10.004, 20.006, AlertType.RAIN_NOW)

        record = next(iter(repository.records.values()))
        assert record.key.latitude == 10.0
        assert record.key.longitude == 20.01


class TestPurgeExpired:
    """Tests for CooldownStore.purge_expired."""

    def test_deletes_records_past_retention(self, store, repository, clock):
        store.record_sent("old", 10.0, 20.0, AlertType.RAIN_NOW)
        clock.advance(minutes=100)
        store.record_sent("new", 10.0, 20.0, AlertType.RAIN_NOW)
        clock.advance(minutes=30)

        deleted = store.purge_expired()

        assert deleted == 1
        assert [r.key.recipient_id for r in repository.records.values()] == ["new"]

    def test_returns_zero_on_error(self, clock):
        repository = Mock()
        repository.delete_cooldowns_before.side_effect = RuntimeError("boom")
        store = CooldownStore(repository, clock=clock)

        assert store.purge_expired() == 0

    def test_cutoff_is_retention_horizon(self, clock):
        repository = Mock()
        repository.delete_cooldowns_before.return_value = 0
        store = CooldownStore(repository, clock=clock)

        store.purge_expired()

        repository.delete_cooldowns_before.assert_called_once_with(START - timedelta(hours=2))
