"""Weather alert models and evaluation - Pure functions.

This module turns Open-Meteo forecast and air-quality payloads into
typed AlertFact objects and decides which facts are worth a
notification. All functions are pure with no side effects.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any


class AlertType(str, Enum):
    """Kinds of weather alert."""
    RAIN_NOW = "rain_now"
    RAIN_FORECAST = "rain_forecast"
    UV_HIGH = "uv_high"
    AIR_QUALITY = "air_quality"
    WIND = "wind"
    WIND_FORECAST = "wind_forecast"


class RainSeverity(IntEnum):
    NONE = 0
    LIGHT = 1
    MODERATE = 2
    HEAVY = 3
    EXTREME = 4


class UVSeverity(IntEnum):
    LOW = 0
    MODERATE = 1
    HIGH = 2
    VERY_HIGH = 3
    EXTREME = 4


class AirQualitySeverity(IntEnum):
    GOOD = 0
    FAIR = 1
    MODERATE = 2
    POOR = 3
    VERY_POOR = 4
    EXTREMELY_POOR = 5


class WindSeverity(IntEnum):
    CALM = 0
    STRONG = 1
    VERY_STRONG = 2


# Severity scale and minimum severity that warrants a notification, per type
SEVERITY_SCALES: dict[AlertType, type[IntEnum]] = {
    AlertType.RAIN_NOW: RainSeverity,
    AlertType.RAIN_FORECAST: RainSeverity,
    AlertType.UV_HIGH: UVSeverity,
    AlertType.AIR_QUALITY: AirQualitySeverity,
    AlertType.WIND: WindSeverity,
    AlertType.WIND_FORECAST: WindSeverity,
}

NOTIFY_THRESHOLDS: dict[AlertType, IntEnum] = {
    AlertType.RAIN_NOW: RainSeverity.LIGHT,
    AlertType.RAIN_FORECAST: RainSeverity.LIGHT,
    AlertType.UV_HIGH: UVSeverity.HIGH,
    AlertType.AIR_QUALITY: AirQualitySeverity.MODERATE,
    AlertType.WIND: WindSeverity.STRONG,
    AlertType.WIND_FORECAST: WindSeverity.STRONG,
}

# Forecast alerts look this many hours ahead
FORECAST_HOURS = 3

# Minimum forecast precipitation (mm) worth a forecast alert
RAIN_FORECAST_MIN_MM = 0.5

# Minimum forecast gusts (km/h) worth a forecast alert
WIND_FORECAST_MIN_KMH = 60.0


@dataclass(frozen=True)
class AlertFact:
    """One weather observation for a location.

    Attributes:
        type: Alert type
        severity: Member of the severity scale for the type
        value: Measured value (mm, UV index, AQI or km/h)
        message: Short human-readable description
        hours_ahead: For forecast alerts, hours until the peak
    """
    type: AlertType
    severity: IntEnum
    value: float
    message: str
    hours_ahead: int | None = None

    def __post_init__(self) -> None:
        scale = SEVERITY_SCALES[self.type]
        if not isinstance(self.severity, scale):
            raise ValueError(
                f"{self.type.value} severity must be a {scale.__name__}, "
                f"got {self.severity!r}"
            )

    @property
    def severity_label(self) -> str:
        """Lowercase severity name (e.g. 'very_high')."""
        return self.severity.name.lower()


def should_notify(fact: AlertFact) -> bool:
    """Check if a fact reaches the notification threshold for its type.

    Pure function.
    """
    return fact.severity >= NOTIFY_THRESHOLDS[fact.type]


def rain_severity(precipitation_mm: float) -> RainSeverity:
    """Classify precipitation intensity in mm/h.

    Pure function.
    """
    if precipitation_mm < 0.1:
        return RainSeverity.NONE
    elif precipitation_mm < 2.5:
        return RainSeverity.LIGHT
    elif precipitation_mm < 10:
        return RainSeverity.MODERATE
    elif precipitation_mm < 50:
        return RainSeverity.HEAVY
    else:
        return RainSeverity.EXTREME


def uv_severity(uv_index: float) -> UVSeverity:
    """Classify a UV index.

    Pure function.
    """
    if uv_index < 3:
        return UVSeverity.LOW
    elif uv_index < 6:
        return UVSeverity.MODERATE
    elif uv_index < 8:
        return UVSeverity.HIGH
    elif uv_index < 11:
        return UVSeverity.VERY_HIGH
    else:
        return UVSeverity.EXTREME


def air_quality_severity(aqi: float) -> AirQualitySeverity:
    """Classify a European AQI value.

    Pure function.
    """
    if aqi <= 20:
        return AirQualitySeverity.GOOD
    elif aqi <= 40:
        return AirQualitySeverity.FAIR
    elif aqi <= 60:
        return AirQualitySeverity.MODERATE
    elif aqi <= 80:
        return AirQualitySeverity.POOR
    elif aqi <= 100:
        return AirQualitySeverity.VERY_POOR
    else:
        return AirQualitySeverity.EXTREMELY_POOR


def wind_severity(wind_speed_kmh: float, wind_gusts_kmh: float = 0.0) -> WindSeverity:
    """Classify wind by the stronger of sustained speed and gusts.

    Pure function.
    """
    strongest = max(wind_speed_kmh, wind_gusts_kmh or 0.0)
    if strongest < 50:
        return WindSeverity.CALM
    elif strongest < 70:
        return WindSeverity.STRONG
    else:
        return WindSeverity.VERY_STRONG


def _current_hour_index(current_time: str | None, hourly_times: list[str]) -> int:
    """Find the index of the current hour in the hourly series.

    Open-Meteo reports times as local ISO strings ("2024-05-01T14:15").
    Falls back to the hour of day, which matches a series starting at
    midnight.
    """
    if not current_time:
        return 0

    hour_prefix = current_time[:13]
    for i, hourly_time in enumerate(hourly_times):
        if hourly_time.startswith(hour_prefix):
            return i

    try:
        return datetime.fromisoformat(current_time).hour
    except ValueError:
        return 0


def _peak(values: list[Any]) -> tuple[float, int] | None:
    """Return (max value, hours ahead of it) over non-null values."""
    valid = [(float(v), i + 1) for i, v in enumerate(values) if v is not None]
    if not valid:
        return None
    # First occurrence wins on ties
    return max(valid, key=lambda pair: (pair[0], -pair[1]))


def parse_weather_alerts(
    forecast: dict[str, Any],
    air_quality: dict[str, Any] | None = None,
) -> list[AlertFact]:
    """Evaluate provider payloads into alert facts.

    Pure function. Returns every detected condition, including ones below
    the notification threshold; use should_notify to filter.

    Args:
        forecast: Open-Meteo forecast response (current + hourly)
        air_quality: Open-Meteo air-quality response, if available

    Returns:
        List of alert facts

    Raises:
        KeyError: If the forecast payload lacks the 'current' block
    """
    current = forecast["current"]
    hourly = forecast.get("hourly") or {}
    facts: list[AlertFact] = []

    # Rain now
    rain_now = current.get("precipitation") or current.get("rain") or 0.0
    if rain_now > 0:
        facts.append(AlertFact(
            type=AlertType.RAIN_NOW,
            severity=rain_severity(rain_now),
            value=float(rain_now),
            message=f"It is raining now ({rain_now:.1f} mm)",
        ))

    start = _current_hour_index(current.get("time"), hourly.get("time") or [])
    end = start + FORECAST_HOURS

    # Rain in the next hours
    rain_peak = _peak((hourly.get("precipitation") or [])[start:end])
    if rain_peak is not None and rain_peak[0] > RAIN_FORECAST_MIN_MM:
        amount, hours_ahead = rain_peak
        facts.append(AlertFact(
            type=AlertType.RAIN_FORECAST,
            severity=rain_severity(amount),
            value=amount,
            message=f"Rain expected in {hours_ahead}h ({amount:.1f} mm)",
            hours_ahead=hours_ahead,
        ))

    # UV
    uv = current.get("uv_index") or 0.0
    uv_level = uv_severity(uv)
    if uv_level >= UVSeverity.HIGH:
        label = "EXTREME" if uv_level == UVSeverity.EXTREME else "HIGH"
        facts.append(AlertFact(
            type=AlertType.UV_HIGH,
            severity=uv_level,
            value=float(uv),
            message=f"UV index {label}: {uv:.1f}",
        ))

    # Air quality
    if air_quality:
        aqi = (air_quality.get("current") or {}).get("european_aqi")
        if aqi is not None:
            aq_level = air_quality_severity(aqi)
            if aq_level >= AirQualitySeverity.MODERATE:
                description = aq_level.name.replace("_", " ").lower()
                facts.append(AlertFact(
                    type=AlertType.AIR_QUALITY,
                    severity=aq_level,
                    value=float(aqi),
                    message=f"Air quality {description} (AQI: {aqi:.0f})",
                ))

    # Wind now
    wind = current.get("wind_speed_10m") or 0.0
    gusts = current.get("wind_gusts_10m") or 0.0
    wind_level = wind_severity(wind, gusts)
    if wind_level >= WindSeverity.STRONG:
        strongest = max(wind, gusts)
        label = "Very strong wind" if wind_level == WindSeverity.VERY_STRONG else "Strong wind"
        facts.append(AlertFact(
            type=AlertType.WIND,
            severity=wind_level,
            value=float(strongest),
            message=f"{label}: {strongest:.0f} km/h",
        ))

    # Gusts in the next hours, only when it is not already windy
    gust_peak = _peak((hourly.get("wind_gusts_10m") or [])[start:end])
    if (
        gust_peak is not None
        and gust_peak[0] >= WIND_FORECAST_MIN_KMH
        and wind_level < WindSeverity.STRONG
    ):
        amount, hours_ahead = gust_peak
        facts.append(AlertFact(
            type=AlertType.WIND_FORECAST,
            severity=WindSeverity.STRONG,
            value=amount,
            message=f"Strong gusts expected in {hours_ahead}h ({amount:.0f} km/h)",
            hours_ahead=hours_ahead,
        ))

    return facts


def filter_notifiable(facts: list[AlertFact]) -> list[AlertFact]:
    """Keep only facts that warrant a notification.

    Pure function.
    """
    return [f for f in facts if should_notify(f)]
