"""Cloud Function Entry Point - Root Module.

This is the root-level entry point for Google Cloud Functions.
It imports from the weather_alerts package.
"""

from weather_alerts.main import (
    rate_limiter_stats,
    weather_alert_dispatch,
    weather_alert_dispatch_pubsub,
)

__all__ = [
    "rate_limiter_stats",
    "weather_alert_dispatch",
    "weather_alert_dispatch_pubsub",
]
