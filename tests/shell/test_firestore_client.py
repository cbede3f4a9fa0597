"""Tests for the Firestore client.

The google-cloud-firestore client is replaced by a MagicMock.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock, patch

import pytest

from weather_alerts.core.cooldown import CooldownKey, CooldownRecord
from weather_alerts.core.weather import AlertType
from weather_alerts.shell.firestore_client import (
    MAX_IN_QUERY_VALUES,
    DeviceToken,
    FirestoreClient,
    FirestoreConfig,
)


def make_doc(doc_id, data):
    doc = Mock()
    doc.id = doc_id
    doc.to_dict.return_value = data
    doc.reference = Mock(name=f"ref-{doc_id}")
    return doc


@pytest.fixture
def db():
    return MagicMock()


@pytest.fixture
def client(db):
    client = FirestoreClient(FirestoreConfig())
    client._client = db
    return client


class TestLazyClient:
    """Tests for lazy Firestore initialisation."""

    def test_passes_database_and_project(self):
        with patch("weather_alerts.shell.firestore_client.firestore.Client") as factory:
            client = FirestoreClient(FirestoreConfig(project_id="proj", database="alerts"))
            _ = client.client
            _ = client.client

        factory.assert_called_once_with(project="proj", database="alerts")


class TestListUserLocations:
    """Tests for FirestoreClient.list_user_locations()."""

    def test_reads_coordinates(self, client, db):
        db.collection.return_value.stream.return_value = [
            make_doc("u1", {"latitude": 45.46, "longitude": "9.19"}),
            make_doc("u2", {"name": "no location"}),
        ]

        users = client.list_user_locations()

        db.collection.assert_called_with("users")
        assert users[0].user_id == "u1"
        assert users[0].longitude == 9.19
        assert users[1].has_coordinates is False

    def test_non_finite_coordinates_treated_as_missing(self, client, db):
        db.collection.return_value.stream.return_value = [
            make_doc("u1", {"latitude": float("nan"), "longitude": 9.19}),
            make_doc("u2", {"latitude": "inf", "longitude": 9.19}),
        ]

        users = client.list_user_locations()

        assert users[0].latitude is None
        assert users[1].latitude is None
        assert not any(user.has_coordinates for user in users)

    def test_errors_propagate(self, client, db):
        db.collection.return_value.stream.side_effect = RuntimeError("unavailable")

        with pytest.raises(RuntimeError):
            client.list_user_locations()


class TestGetDeviceTokens:
    """Tests for FirestoreClient.get_device_tokens()."""

    def test_returns_tokens_deduplicated(self, client, db):
        db.collection.return_value.where.return_value.stream.return_value = [
            make_doc("d1", {"user_id": "u1", "token": "tok-1"}),
            make_doc("d2", {"user_id": "u1", "token": "tok-1"}),
            make_doc("d3", {"user_id": "u2", "token": "tok-2"}),
            make_doc("d4", {"user_id": "u2"}),
        ]

        devices = client.get_device_tokens(["u1", "u2"])

        assert devices == [DeviceToken("u1", "tok-1"), DeviceToken("u2", "tok-2")]

    def test_chunks_in_queries(self, client, db):
        db.collection.return_value.where.return_value.stream.return_value = []
        user_ids = [f"u{i}" for i in range(MAX_IN_QUERY_VALUES + 5)]

        client.get_device_tokens(user_ids)

        assert db.collection.return_value.where.call_count == 2

    def test_no_users_no_query(self, client, db):
        assert client.get_device_tokens([]) == []
        db.collection.return_value.where.assert_not_called()


class TestRemoveDeviceToken:
    """Tests for FirestoreClient.remove_device_token()."""

    def test_clears_token_field(self, client, db):
        doc = make_doc("d1", {"user_id": "u1", "token": "dead"})
        db.collection.return_value.where.return_value.stream.return_value = [doc]

        assert client.remove_device_token("dead") is True
        doc.reference.update.assert_called_once()

    def test_returns_false_when_no_device_holds_token(self, client, db):
        db.collection.return_value.where.return_value.stream.return_value = []

        assert client.remove_device_token("dead") is False

    def test_returns_false_on_error(self, client, db):
        db.collection.return_value.where.side_effect = RuntimeError("boom")

        assert client.remove_device_token("dead") is False


class TestCooldownRecords:
    """Tests for cooldown persistence."""

    KEY = CooldownKey("u1", 10.0, 20.0, AlertType.RAIN_NOW)
    WHEN = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def test_get_missing_returns_none(self, client, db):
        db.collection.return_value.document.return_value.get.return_value.exists = False

        assert client.get_cooldown(self.KEY) is None
        db.collection.return_value.document.assert_called_with("u1_10.0_20.0_rain_now")

    def test_get_existing(self, client, db):
        snapshot = db.collection.return_value.document.return_value.get.return_value
        snapshot.exists = True
        snapshot.to_dict.return_value = {
            "last_notification_at": self.WHEN,
            "severity": "light",
            "alert_value": 1.5,
        }

        record = client.get_cooldown(self.KEY)

        assert record == CooldownRecord(self.KEY, self.WHEN, "light", 1.5)

    def test_upsert_writes_deterministic_document(self, client, db):
        client.upsert_cooldown(CooldownRecord(self.KEY, self.WHEN, "light", 1.5))

        db.collection.assert_called_with("notification_cooldown")
        db.collection.return_value.document.assert_called_with("u1_10.0_20.0_rain_now")
        written = db.collection.return_value.document.return_value.set.call_args[0][0]
        assert written["alert_type"] == "rain_now"
        assert written["last_notification_at"] == self.WHEN

    def test_delete_before_cutoff_batches(self, client, db):
        docs = [make_doc(f"c{i}", {}) for i in range(3)]
        db.collection.return_value.where.return_value.stream.return_value = docs

        deleted = client.delete_cooldowns_before(self.WHEN)

        assert deleted == 3
        batch = db.batch.return_value
        assert batch.delete.call_count == 3
        batch.commit.assert_called_once()
