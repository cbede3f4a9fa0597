"""Message formatting - Pure functions.

This module formats alert facts into push notification content.
All functions are pure with no side effects.
"""

import json
from dataclasses import dataclass, field
from enum import IntEnum

from weather_alerts.core.cluster import Location
from weather_alerts.core.weather import (
    AirQualitySeverity,
    AlertFact,
    AlertType,
    RainSeverity,
    UVSeverity,
    WindSeverity,
)


RAIN_TITLES: dict[RainSeverity, str] = {
    RainSeverity.NONE: "🌦️ Light rain",
    RainSeverity.LIGHT: "🌦️ Light rain",
    RainSeverity.MODERATE: "🌧️ Moderate rain",
    RainSeverity.HEAVY: "⛈️ HEAVY RAIN",
    RainSeverity.EXTREME: "🚨 EXTREME RAIN",
}

# Android vibration timings in ms, stronger for heavier rain
RAIN_VIBRATION: dict[RainSeverity, tuple[int, ...]] = {
    RainSeverity.NONE: (200, 100, 200),
    RainSeverity.LIGHT: (200, 100, 200),
    RainSeverity.MODERATE: (300, 150, 300, 150, 300),
    RainSeverity.HEAVY: (400, 200, 400, 200, 400, 200, 400),
    RainSeverity.EXTREME: (500, 250, 500, 250, 500, 250, 500, 250, 500),
}


@dataclass(frozen=True)
class Notification:
    """Push notification content for one alert fact.

    Attributes:
        title: Notification title
        body: Notification body
        priority: 'high' or 'normal'
        tag: Collapse tag so repeated alerts replace each other on device
        metadata: String key/value data delivered with the notification
        vibration_pattern: Android vibration timings in ms
    """
    title: str
    body: str
    priority: str
    tag: str
    metadata: dict[str, str] = field(default_factory=dict)
    vibration_pattern: tuple[int, ...] | None = None


def _is_rain(fact: AlertFact) -> bool:
    return fact.type in (AlertType.RAIN_NOW, AlertType.RAIN_FORECAST)


def get_priority(fact: AlertFact) -> str:
    """Android priority for a fact.

    Pure function. Light rain is the only routine condition.
    """
    if _is_rain(fact) and fact.severity <= RainSeverity.LIGHT:
        return "normal"
    return "high"


def format_title(fact: AlertFact) -> str:
    """Get the notification title for a fact.

    Pure function.
    """
    severity: IntEnum = fact.severity

    if fact.type == AlertType.RAIN_NOW:
        return RAIN_TITLES[severity] + " now"
    elif fact.type == AlertType.RAIN_FORECAST:
        return RAIN_TITLES[severity] + " on the way"
    elif fact.type == AlertType.UV_HIGH:
        if severity >= UVSeverity.EXTREME:
            return "☀️ EXTREME UV index"
        return "☀️ High UV index"
    elif fact.type == AlertType.AIR_QUALITY:
        if severity >= AirQualitySeverity.VERY_POOR:
            return "😷 Very poor air quality"
        return "😷 Poor air quality"
    elif fact.type == AlertType.WIND:
        if severity >= WindSeverity.VERY_STRONG:
            return "🌪️ Very strong wind"
        return "💨 Strong wind"
    else:
        return "💨 Strong gusts on the way"


def format_body(fact: AlertFact) -> str:
    """Get the notification body for a fact.

    Pure function.
    """
    advice = {
        AlertType.RAIN_NOW: "Take an umbrella.",
        AlertType.RAIN_FORECAST: "Plan ahead and take an umbrella.",
        AlertType.UV_HIGH: "Use sunscreen and avoid direct sun around midday.",
        AlertType.AIR_QUALITY: "Limit outdoor activity if you are sensitive.",
        AlertType.WIND: "Secure loose objects outdoors.",
        AlertType.WIND_FORECAST: "Secure loose objects outdoors.",
    }[fact.type]

    if _is_rain(fact) and fact.severity >= RainSeverity.HEAVY:
        advice = "Seek shelter and avoid flooded areas."

    return f"{fact.message}. {advice}"


def format_metadata(fact: AlertFact, location: Location) -> dict[str, str]:
    """Data payload delivered alongside the notification.

    Pure function. Push data payloads only carry strings.
    """
    metadata = {
        "type": "weather_alert",
        "alert_type": fact.type.value,
        "severity": fact.severity_label,
        "value": f"{fact.value:g}",
        "latitude": str(location.latitude),
        "longitude": str(location.longitude),
    }
    if fact.hours_ahead is not None:
        metadata["hours_ahead"] = str(fact.hours_ahead)
    return metadata


def format_notification(fact: AlertFact, location: Location) -> Notification:
    """Build the push notification for a fact at a location.

    Pure function.

    Args:
        fact: Alert fact to announce
        location: Rounded location the fact applies to

    Returns:
        Notification content
    """
    vibration = RAIN_VIBRATION[fact.severity] if _is_rain(fact) else None
    metadata = format_metadata(fact, location)
    if vibration is not None:
        metadata["vibration_pattern"] = json.dumps(list(vibration))

    return Notification(
        title=format_title(fact),
        body=format_body(fact),
        priority=get_priority(fact),
        tag=f"{fact.type.value}_{location.latitude}_{location.longitude}",
        metadata=metadata,
        vibration_pattern=vibration,
    )

