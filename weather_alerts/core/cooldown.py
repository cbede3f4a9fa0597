"""Cooldown logic - Pure functions.

This module decides whether a recipient was notified recently enough
about the same alert type at the same location that another
notification should be withheld. All functions are pure with no side
effects.

Note: The actual persistence of cooldown records is handled by the
imperative shell (Firestore client). This module only contains the pure
logic.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from weather_alerts.core.weather import AlertType


COOLDOWN_WINDOW = timedelta(hours=1)
RETENTION_HORIZON = timedelta(hours=2)

# Characters not allowed in Firestore document ids
_UNSAFE_ID_CHARS = re.compile(r"[/\s]")


class CooldownState(str, Enum):
    """Lifecycle of a cooldown key."""
    ABSENT = "absent"
    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass(frozen=True)
class CooldownKey:
    """Identifies one cooldown bucket.

    Coordinates must already be rounded to the clustering precision.

    Attributes:
        recipient_id: User identifier
        latitude: Rounded latitude
        longitude: Rounded longitude
        alert_type: Alert type
    """
    recipient_id: str
    latitude: float
    longitude: float
    alert_type: AlertType

    @property
    def document_id(self) -> str:
        """Deterministic storage id, one per key."""
        recipient = _UNSAFE_ID_CHARS.sub("_", self.recipient_id)
        return f"{recipient}_{self.latitude}_{self.longitude}_{self.alert_type.value}"


@dataclass(frozen=True)
class CooldownRecord:
    """Last successful notification for a key.

    Attributes:
        key: Cooldown key
        last_notified_at: When the last notification was delivered (UTC)
        severity: Severity label of that notification
        value: Measured value of that notification
    """
    key: CooldownKey
    last_notified_at: datetime
    severity: str | None = None
    value: float | None = None


def cooldown_state(
    record: CooldownRecord | None,
    now: datetime,
    window: timedelta = COOLDOWN_WINDOW,
) -> CooldownState:
    """Get the state of a cooldown key.

    Pure function.

    Args:
        record: Stored record, or None if absent
        now: Current time
        window: Suppression window

    Returns:
        ABSENT, ACTIVE or EXPIRED
    """
    if record is None:
        return CooldownState.ABSENT

    if now - record.last_notified_at < window:
        return CooldownState.ACTIVE

    return CooldownState.EXPIRED


def is_in_cooldown(
    record: CooldownRecord | None,
    now: datetime,
    window: timedelta = COOLDOWN_WINDOW,
) -> bool:
    """Check if a notification for this record's key must be withheld.

    Pure function.
    """
    return cooldown_state(record, now, window) == CooldownState.ACTIVE


def retention_cutoff(now: datetime, retention: timedelta = RETENTION_HORIZON) -> datetime:
    """Records last notified before this instant may be purged.

    Pure function.
    """
    return now - retention


def is_purgeable(
    record: CooldownRecord,
    now: datetime,
    retention: timedelta = RETENTION_HORIZON,
) -> bool:
    """Check if a record is past the retention horizon.

    Pure function.
    """
    return record.last_notified_at < retention_cutoff(now, retention)


def partition_by_cooldown(
    recipient_ids: list[str],
    in_cooldown: set[str],
) -> tuple[list[str], list[str]]:
    """Split recipients into (to_notify, skipped), preserving order.

    Pure function.
    """
    to_notify = [r for r in recipient_ids if r not in in_cooldown]
    skipped = [r for r in recipient_ids if r in in_cooldown]
    return to_notify, skipped
