"""Open-Meteo API Client - Imperative Shell.

This module handles HTTP communication with the Open-Meteo forecast and
air-quality APIs. All I/O is contained here; alert evaluation is in the
core module.

Calls are not rate limited here. The dispatcher must obtain admission
from the RateLimiter before each fetch.
"""

import logging
from typing import Any

import requests

from weather_alerts.core.weather import AlertFact, parse_weather_alerts


logger = logging.getLogger(__name__)


OPEN_METEO_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
OPEN_METEO_AIR_QUALITY_URL = "https://air-quality-api.open-meteo.com/v1/air-quality"

# Default timeout for API requests (seconds)
DEFAULT_TIMEOUT = 10

CURRENT_FIELDS = "temperature_2m,precipitation,rain,weather_code,wind_speed_10m,wind_gusts_10m,uv_index"
HOURLY_FIELDS = "precipitation,rain,weather_code,wind_speed_10m,wind_gusts_10m,uv_index"
AIR_QUALITY_FIELDS = "european_aqi,pm10,pm2_5"


class WeatherDataError(Exception):
    """Provider answered, but the payload could not be evaluated."""


class OpenMeteoClient:
    """Client for fetching weather alert facts from Open-Meteo.

    This is part of the imperative shell - it handles HTTP I/O.
    """

    def __init__(
        self,
        forecast_url: str = OPEN_METEO_FORECAST_URL,
        air_quality_url: str = OPEN_METEO_AIR_QUALITY_URL,
        timeout: int = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize Open-Meteo client.

        Args:
            forecast_url: Forecast API URL
            air_quality_url: Air-quality API URL
            timeout: Request timeout in seconds
            session: Optional requests session (for connection reuse)
        """
        self.forecast_url = forecast_url
        self.air_quality_url = air_quality_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get_json(self, url: str, params: dict[str, Any], timeout: float) -> dict[str, Any]:
        response = self.session.get(url, params=params, timeout=timeout)
        response.raise_for_status()
        return response.json()

    def fetch_forecast(
        self,
        latitude: float,
        longitude: float,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Fetch current conditions and today's hourly forecast.

        This method performs HTTP I/O.

        Raises:
            requests.RequestException: If the request fails
        """
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "current": CURRENT_FIELDS,
            "hourly": HOURLY_FIELDS,
            "forecast_days": 1,
            "timezone": "auto",
        }
        return self._get_json(self.forecast_url, params, timeout or self.timeout)

    def fetch_air_quality(
        self,
        latitude: float,
        longitude: float,
        timeout: float | None = None,
    ) -> dict[str, Any] | None:
        """Fetch current air quality.

        Air quality is optional: failures are logged and None is returned
        so the rest of the alerts can still be evaluated.
        """
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "current": AIR_QUALITY_FIELDS,
            "timezone": "auto",
        }
        try:
            return self._get_json(self.air_quality_url, params, timeout or self.timeout)
        except (requests.RequestException, ValueError) as e:
            logger.warning(
                "Air quality unavailable for %s, %s: %s",
                latitude,
                longitude,
                str(e),
            )
            return None

    def fetch(
        self,
        latitude: float,
        longitude: float,
        timeout: float | None = None,
    ) -> list[AlertFact]:
        """Fetch and evaluate weather alert facts for a location.

        This method performs HTTP I/O.

        Args:
            latitude: Rounded latitude
            longitude: Rounded longitude
            timeout: Per-request timeout in seconds (defaults to client timeout)

        Returns:
            All alert facts detected at the location

        Raises:
            requests.RequestException: If the forecast request fails
            WeatherDataError: If the forecast payload is malformed
        """
        logger.info("Fetching weather for %s, %s", latitude, longitude)

        forecast = self.fetch_forecast(latitude, longitude, timeout)
        air_quality = self.fetch_air_quality(latitude, longitude, timeout)

        try:
            facts = parse_weather_alerts(forecast, air_quality)
        except (KeyError, TypeError, ValueError) as e:
            raise WeatherDataError(f"Unexpected forecast payload: {e}") from e

        logger.info(
            "Found %d weather condition(s) at %s, %s",
            len(facts),
            latitude,
            longitude,
        )
        return facts
