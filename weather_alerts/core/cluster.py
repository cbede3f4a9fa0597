"""Location clustering - Pure functions.

Users whose coordinates round to the same cell share one provider query
and one cooldown bucket. All functions are pure with no side effects.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal


# 2 decimal places is roughly a 1.1 km cell
DEFAULT_PRECISION = 2


def round_coordinate(value: float, precision: int = DEFAULT_PRECISION) -> float:
    """Round a coordinate half-up to a fixed number of decimals.

    Pure function. Rounds the decimal representation, so 10.005 becomes
    10.01 regardless of binary float error.

    Args:
        value: Latitude or longitude
        precision: Decimal places to keep

    Returns:
        Rounded coordinate
    """
    quantum = Decimal(1).scaleb(-precision)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class Location:
    """A rounded (latitude, longitude) cell.

    Attributes:
        latitude: Rounded latitude
        longitude: Rounded longitude
    """
    latitude: float
    longitude: float

    @classmethod
    def from_coordinates(
        cls,
        latitude: float,
        longitude: float,
        precision: int = DEFAULT_PRECISION,
    ) -> "Location":
        """Build a location cell from raw coordinates."""
        return cls(
            latitude=round_coordinate(latitude, precision),
            longitude=round_coordinate(longitude, precision),
        )

    def __str__(self) -> str:
        return f"{self.latitude}, {self.longitude}"


@dataclass(frozen=True)
class UserLocation:
    """A user's last known raw coordinates.

    Attributes:
        user_id: Stable user identifier
        latitude: Raw latitude (None if unknown)
        longitude: Raw longitude (None if unknown)
    """
    user_id: str
    latitude: float | None = None
    longitude: float | None = None

    @property
    def has_coordinates(self) -> bool:
        """True if both coordinates are known finite numbers."""
        return all(
            value is not None and math.isfinite(value)
            for value in (self.latitude, self.longitude)
        )


@dataclass(frozen=True)
class LocationCluster:
    """Users sharing one location cell.

    Attributes:
        location: Rounded location cell
        recipient_ids: Unique user ids in first-seen order
    """
    location: Location
    recipient_ids: tuple[str, ...]

    @property
    def latitude(self) -> float:
        return self.location.latitude

    @property
    def longitude(self) -> float:
        return self.location.longitude

    @property
    def recipient_count(self) -> int:
        return len(self.recipient_ids)


def cluster_users(
    users: list[UserLocation],
    precision: int = DEFAULT_PRECISION,
) -> list[LocationCluster]:
    """Group users by rounded location.

    Pure function. Users without coordinates are ignored. Clusters are
    ordered by recipient count, largest first, so the most impactful
    locations are processed first under a tight request budget.

    Args:
        users: Users with their raw coordinates
        precision: Decimal places used for rounding

    Returns:
        Clusters sorted by recipient count (descending)
    """
    groups: dict[Location, dict[str, None]] = {}

    for user in users:
        if not user.has_coordinates:
            continue
        location = Location.from_coordinates(user.latitude, user.longitude, precision)
        # dict keeps insertion order and uniqueness
        groups.setdefault(location, {})[user.user_id] = None

    clusters = [
        LocationCluster(location=location, recipient_ids=tuple(ids))
        for location, ids in groups.items()
    ]

    return sorted(clusters, key=lambda c: c.recipient_count, reverse=True)


def select_clusters(
    clusters: list[LocationCluster],
    max_allowed: int,
) -> tuple[list[LocationCluster], list[LocationCluster]]:
    """Split clusters into those within the request budget and the rest.

    Pure function. Expects clusters already ordered by priority.

    Args:
        clusters: Ordered clusters
        max_allowed: Number of provider requests available

    Returns:
        Tuple of (selected, truncated)
    """
    limit = max(0, max_allowed)
    return clusters[:limit], clusters[limit:]
