"""Firestore Client - Imperative Shell.

This module handles persistence for the user registry (last known
locations), the device registry (push tokens) and cooldown records.
Uses Google Cloud Firestore.

All I/O is contained here; cooldown logic is in the core module.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from weather_alerts.core.cluster import UserLocation
from weather_alerts.core.cooldown import CooldownKey, CooldownRecord


logger = logging.getLogger(__name__)


DEFAULT_USERS_COLLECTION = "users"
DEFAULT_DEVICES_COLLECTION = "devices"
DEFAULT_COOLDOWN_COLLECTION = "notification_cooldown"

# Firestore 'in' queries accept at most 30 values
MAX_IN_QUERY_VALUES = 30

# Firestore batches accept at most 500 writes
MAX_BATCH_WRITES = 500


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
        users_collection: Collection of user documents
        devices_collection: Collection of device documents
        cooldown_collection: Collection of cooldown records
    """
    project_id: str | None = None
    database: str | None = None
    users_collection: str = DEFAULT_USERS_COLLECTION
    devices_collection: str = DEFAULT_DEVICES_COLLECTION
    cooldown_collection: str = DEFAULT_COOLDOWN_COLLECTION


@dataclass(frozen=True)
class DeviceToken:
    """A push token registered to a user.

    Attributes:
        user_id: Owner of the device
        token: FCM registration token
    """
    user_id: str
    token: str


def _to_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class FirestoreClient:
    """Client for the user, device and cooldown collections.

    This is part of the imperative shell - it handles database I/O.

    Document structure:
        users/{user_id}: {"latitude": float, "longitude": float, ...}
        devices/{device_id}: {"user_id": str, "token": str, ...}
        notification_cooldown/{key}: {
            "user_id", "latitude", "longitude", "alert_type",
            "severity", "alert_value", "last_notification_at"
        }
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.Client | None = None

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs = {}
            if self.config.project_id:
                kwargs['project'] = self.config.project_id
            if self.config.database:
                kwargs['database'] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def _collection(self, name: str) -> Any:
        return self.client.collection(name)

    # Users

    def list_user_locations(self) -> list[UserLocation]:
        """Fetch every user's last known coordinates.

        This method performs database I/O.

        Returns:
            Users with their raw coordinates (None when unknown)

        Raises:
            google.api_core.exceptions.GoogleAPICallError: If Firestore is unreachable
        """
        logger.info("Fetching user locations from Firestore")

        users = []
        for doc in self._collection(self.config.users_collection).stream():
            data = doc.to_dict() or {}
            users.append(UserLocation(
                user_id=doc.id,
                latitude=_to_float(data.get("latitude")),
                longitude=_to_float(data.get("longitude")),
            ))

        logger.info("Fetched %d users from Firestore", len(users))
        return users

    # Devices

    def get_device_tokens(self, user_ids: list[str] | tuple[str, ...]) -> list[DeviceToken]:
        """Fetch push tokens registered to the given users.

        This method performs database I/O.

        Args:
            user_ids: Users to look up

        Returns:
            Device tokens, one entry per (user, token) pair

        Raises:
            google.api_core.exceptions.GoogleAPICallError: If the query fails
        """
        ids = list(dict.fromkeys(user_ids))
        devices: list[DeviceToken] = []
        seen: set[tuple[str, str]] = set()

        for start in range(0, len(ids), MAX_IN_QUERY_VALUES):
            chunk = ids[start:start + MAX_IN_QUERY_VALUES]
            query = self._collection(self.config.devices_collection).where(
                filter=FieldFilter("user_id", "in", chunk)
            )
            for doc in query.stream():
                data = doc.to_dict() or {}
                token = data.get("token")
                user_id = data.get("user_id")
                if not token or not user_id or (user_id, token) in seen:
                    continue
                seen.add((user_id, token))
                devices.append(DeviceToken(user_id=user_id, token=token))

        logger.debug("Found %d device token(s) for %d user(s)", len(devices), len(ids))
        return devices

    def remove_device_token(self, token: str) -> bool:
        """Remove a token from every device registered with it.

        This method performs database I/O.

        Args:
            token: Push token to remove

        Returns:
            True if at least one device held the token
        """
        try:
            query = self._collection(self.config.devices_collection).where(
                filter=FieldFilter("token", "==", token)
            )
            removed = 0
            for doc in query.stream():
                doc.reference.update({"token": firestore.DELETE_FIELD})
                removed += 1

            logger.info("Removed invalid token %s... from %d device(s)", token[:12], removed)
            return removed > 0

        except Exception as e:
            logger.error("Failed to remove device token: %s", str(e))
            return False

    # Cooldown

    def get_cooldown(self, key: CooldownKey) -> CooldownRecord | None:
        """Fetch the cooldown record for a key.

        This method performs database I/O.

        Returns:
            The record, or None if absent

        Raises:
            google.api_core.exceptions.GoogleAPICallError: If the read fails
        """
        doc = self._collection(self.config.cooldown_collection).document(key.document_id).get()

        if not doc.exists:
            return None

        data = doc.to_dict() or {}
        last_notified_at = data.get("last_notification_at")
        if last_notified_at is None:
            return None

        return CooldownRecord(
            key=key,
            last_notified_at=last_notified_at,
            severity=data.get("severity"),
            value=_to_float(data.get("alert_value")),
        )

    def upsert_cooldown(self, record: CooldownRecord) -> None:
        """Create or replace the cooldown record for its key.

        The document id is derived from the key, so there is never more
        than one record per key.

        Raises:
            google.api_core.exceptions.GoogleAPICallError: If the write fails
        """
        key = record.key
        self._collection(self.config.cooldown_collection).document(key.document_id).set({
            "user_id": key.recipient_id,
            "latitude": key.latitude,
            "longitude": key.longitude,
            "alert_type": key.alert_type.value,
            "severity": record.severity,
            "alert_value": record.value,
            "last_notification_at": record.last_notified_at,
        })

    def delete_cooldowns_before(self, cutoff: datetime) -> int:
        """Delete cooldown records last notified before a cutoff.

        Raises:
            google.api_core.exceptions.GoogleAPICallError: If the query or delete fails

        Returns:
            Number of records deleted
        """
        query = self._collection(self.config.cooldown_collection).where(
            filter=FieldFilter("last_notification_at", "<", cutoff)
        )

        deleted = 0
        batch = self.client.batch()
        pending = 0
        for doc in query.stream():
            batch.delete(doc.reference)
            pending += 1
            if pending == MAX_BATCH_WRITES:
                batch.commit()
                deleted += pending
                batch = self.client.batch()
                pending = 0

        if pending:
            batch.commit()
            deleted += pending

        return deleted

