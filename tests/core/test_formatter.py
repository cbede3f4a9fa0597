"""Unit tests for notification formatting.

Pure function tests - no mocks needed.
"""

import json

import pytest

from weather_alerts.core.cluster import Location
from weather_alerts.core.formatter import (
    RAIN_VIBRATION,
    format_body,
    format_metadata,
    format_notification,
    format_title,
    get_priority,
)
from weather_alerts.core.weather import (
    AirQualitySeverity,
    AlertFact,
    AlertType,
    RainSeverity,
    UVSeverity,
    WindSeverity,
)


@pytest.fixture
def location():
    return Location(45.46, 9.19)


@pytest.fixture
def light_rain():
    return AlertFact(
        type=AlertType.RAIN_NOW,
        severity=RainSeverity.LIGHT,
        value=1.2,
        message="It is raining now (1.2 mm)",
    )


@pytest.fixture
def heavy_rain_forecast():
    return AlertFact(
        type=AlertType.RAIN_FORECAST,
        severity=RainSeverity.HEAVY,
        value=14.0,
        message="Rain expected in 2h (14.0 mm)",
        hours_ahead=2,
    )


class TestGetPriority:
    """Tests for get_priority function."""

    def test_light_rain_is_normal(self, light_rain):
        assert get_priority(light_rain) == "normal"

    def test_heavy_rain_is_high(self, heavy_rain_forecast):
        assert get_priority(heavy_rain_forecast) == "high"

    def test_other_alerts_are_high(self):
        fact = AlertFact(AlertType.UV_HIGH, UVSeverity.HIGH, 7.0, "UV index HIGH: 7.0")
        assert get_priority(fact) == "high"


class TestFormatTitle:
    """Tests for format_title function."""

    def test_rain_now(self, light_rain):
        assert format_title(light_rain) == "🌦️ Light rain now"

    def test_rain_forecast(self, heavy_rain_forecast):
        assert format_title(heavy_rain_forecast) == "⛈️ HEAVY RAIN on the way"

    def test_extreme_uv(self):
        fact = AlertFact(AlertType.UV_HIGH, UVSeverity.EXTREME, 11.5, "x")
        assert "EXTREME" in format_title(fact)

    def test_very_poor_air(self):
        fact = AlertFact(AlertType.AIR_QUALITY, AirQualitySeverity.VERY_POOR, 95, "x")
        assert format_title(fact) == "😷 Very poor air quality"

    def test_wind_forecast(self):
        fact = AlertFact(AlertType.WIND_FORECAST, WindSeverity.STRONG, 65, "x", hours_ahead=1)
        assert format_title(fact) == "💨 Strong gusts on the way"


class TestFormatBody:
    """Tests for format_body function."""

    def test_includes_message_and_advice(self, light_rain):
        body = format_body(light_rain)

        assert body.startswith("It is raining now (1.2 mm).")
        assert "umbrella" in body

    def test_heavy_rain_advice(self, heavy_rain_forecast):
        assert "shelter" in format_body(heavy_rain_forecast)


class TestFormatMetadata:
    """Tests for format_metadata function."""

    def test_all_values_are_strings(self, heavy_rain_forecast, location):
        metadata = format_metadata(heavy_rain_forecast, location)

        assert all(isinstance(v, str) for v in metadata.values())
        assert metadata == {
            "type": "weather_alert",
            "alert_type": "rain_forecast",
            "severity": "heavy",
            "value": "14",
            "latitude": "45.46",
            "longitude": "9.19",
            "hours_ahead": "2",
        }

    def test_no_hours_ahead_for_current_conditions(self, light_rain, location):
        assert "hours_ahead" not in format_metadata(light_rain, location)


class TestFormatNotification:
    """Tests for format_notification function."""

    def test_rain_has_vibration(self, heavy_rain_forecast, location):
        notification = format_notification(heavy_rain_forecast, location)

        assert notification.vibration_pattern == RAIN_VIBRATION[RainSeverity.HEAVY]
        assert json.loads(notification.metadata["vibration_pattern"]) == list(
            RAIN_VIBRATION[RainSeverity.HEAVY]
        )

    def test_tag_identifies_type_and_location(self, light_rain, location):
        notification = format_notification(light_rain, location)

        assert notification.tag == "rain_now_45.46_9.19"
        assert notification.priority == "normal"

    def test_non_rain_has_no_vibration(self, location):
        fact = AlertFact(AlertType.WIND, WindSeverity.VERY_STRONG, 80, "Very strong wind: 80 km/h")

        notification = format_notification(fact, location)

        assert notification.vibration_pattern is None
        assert "vibration_pattern" not in notification.metadata
        assert notification.title == "🌪️ Very strong wind"
