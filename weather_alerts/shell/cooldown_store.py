"""Cooldown Store - Imperative Shell.

Enforces the notification suppression window per
(recipient, location, alert type) on top of a persistence backend.
The time-window rules live in core.cooldown; this module adds the clock,
coordinate normalisation and the storage error policy.

Storage errors never block dispatch: reads fail open (the recipient is
treated as not in cooldown) and writes are reported, not raised.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from weather_alerts.core.cluster import DEFAULT_PRECISION, round_coordinate
from weather_alerts.core.config import CooldownConfig
from weather_alerts.core.cooldown import (
    CooldownKey,
    CooldownRecord,
    is_in_cooldown,
    retention_cutoff,
)
from weather_alerts.core.weather import AlertType


logger = logging.getLogger(__name__)


class CooldownRepository(Protocol):
    """Persistence operations the store needs (FirestoreClient implements it)."""

    def get_cooldown(self, key: CooldownKey) -> CooldownRecord | None: ...

    def upsert_cooldown(self, record: CooldownRecord) -> None: ...

    def delete_cooldowns_before(self, cutoff: datetime) -> int: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CooldownStore:
    """Per recipient/location/alert-type notification cooldown.

    This is the only writer of cooldown records.
    """

    def __init__(
        self,
        repository: CooldownRepository,
        config: CooldownConfig | None = None,
        precision: int = DEFAULT_PRECISION,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            repository: Persistence backend
            config: Window and retention settings
            precision: Coordinate rounding precision (must match clustering)
            clock: Returns the current UTC time
        """
        self.repository = repository
        self.config = config or CooldownConfig()
        self.precision = precision
        self._clock = clock or _utc_now

    @property
    def window(self) -> timedelta:
        return timedelta(minutes=self.config.window_minutes)

    @property
    def retention(self) -> timedelta:
        return timedelta(minutes=self.config.retention_minutes)

    def make_key(
        self,
        recipient_id: str,
        latitude: float,
        longitude: float,
        alert_type: AlertType,
    ) -> CooldownKey:
        """Build a key with coordinates rounded to the clustering precision."""
        return CooldownKey(
            recipient_id=recipient_id,
            latitude=round_coordinate(latitude, self.precision),
            longitude=round_coordinate(longitude, self.precision),
            alert_type=AlertType(alert_type),
        )

    def is_in_cooldown(
        self,
        recipient_id: str,
        latitude: float,
        longitude: float,
        alert_type: AlertType,
    ) -> bool:
        """Check if the recipient was notified about this recently.

        Fails open: on storage errors a warning is logged and False is
        returned.

        Returns:
            True if a notification was delivered within the window
        """
        key = self.make_key(recipient_id, latitude, longitude, alert_type)

        try:
            record = self.repository.get_cooldown(key)
        except Exception as e:
            logger.warning(
                "Cooldown lookup failed for %s, allowing notification: %s",
                key.document_id,
                str(e),
            )
            return False

        return is_in_cooldown(record, self._clock(), self.window)

    def record_sent(
        self,
        recipient_id: str,
        latitude: float,
        longitude: float,
        alert_type: AlertType,
        severity: str | None = None,
        value: float | None = None,
    ) -> bool:
        """Start or refresh the cooldown after a confirmed delivery.

        Only call this once the notification was delivered; a failed
        delivery must leave the recipient eligible for the next cycle.

        Returns:
            True if the record was written
        """
        key = self.make_key(recipient_id, latitude, longitude, alert_type)
        record = CooldownRecord(
            key=key,
            last_notified_at=self._clock(),
            severity=severity,
            value=value,
        )

        try:
            self.repository.upsert_cooldown(record)
        except Exception as e:
            logger.error("Failed to record cooldown for %s: %s", key.document_id, str(e))
            return False

        return True

    def purge_expired(self) -> int:
        """Delete records past the retention horizon.

        Housekeeping only; cooldown checks never depend on it.

        Returns:
            Number of records deleted (0 on error)
        """
        cutoff = retention_cutoff(self._clock(), self.retention)

        try:
            deleted = self.repository.delete_cooldowns_before(cutoff)
        except Exception as e:
            logger.warning("Cooldown retention sweep failed: %s", str(e))
            return 0

        if deleted:
            logger.info("Purged %d expired cooldown record(s)", deleted)
        return deleted
