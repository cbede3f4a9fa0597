"""Functional Core - Pure logic with no I/O.

This module contains the business logic of the alert dispatch control plane:
- Provider request budgeting (sliding-window rate limiter)
- Location clustering
- Cooldown rules
- Weather alert evaluation
- Notification formatting

Everything here is deterministic given its inputs (the rate limiter takes
an injectable clock) and performs no I/O.
"""

from weather_alerts.core.cluster import (
    Location,
    LocationCluster,
    UserLocation,
    cluster_users,
    round_coordinate,
    select_clusters,
)
from weather_alerts.core.cooldown import CooldownKey, CooldownRecord, CooldownState, cooldown_state
from weather_alerts.core.formatter import Notification, format_notification
from weather_alerts.core.rate_limit import RateLimiter, RateLimitResult, Window
from weather_alerts.core.weather import AlertFact, AlertType, parse_weather_alerts, should_notify

__all__ = [
    # Cluster
    "Location",
    "LocationCluster",
    "UserLocation",
    "cluster_users",
    "round_coordinate",
    "select_clusters",
    # Cooldown
    "CooldownKey",
    "CooldownRecord",
    "CooldownState",
    "cooldown_state",
    # Formatter
    "Notification",
    "format_notification",
    # Rate limit
    "RateLimiter",
    "RateLimitResult",
    "Window",
    # Weather
    "AlertFact",
    "AlertType",
    "parse_weather_alerts",
    "should_notify",
]
