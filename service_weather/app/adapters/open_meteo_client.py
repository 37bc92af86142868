"""
Open-Meteo client for the weather gateway.
"""

from typing import Any, Dict, Optional

import httpx

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.clock import Clock
from shared.errors import ExternalServiceError
from shared.logging import get_logger

from service_weather.app.adapters.weather_provider import WeatherProvider


CURRENT_VARIABLES = "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m,wind_direction_10m"
HOURLY_VARIABLES = "temperature_2m,weather_code,precipitation_probability"
DAILY_VARIABLES = "weather_code,temperature_2m_max,temperature_2m_min,sunrise,sunset"


class OpenMeteoClient(WeatherProvider):
    """Fetches forecasts from the Open-Meteo HTTP API."""

    name = "open-meteo"

    def __init__(
        self,
        base_url: str = "https://api.open-meteo.com/v1/forecast",
        timeout: float = 10.0,
        timezone: str = "Europe/London",
        *,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        clock: Optional[Clock] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.timezone = timezone
        self.logger = get_logger("weather.open_meteo")
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            name=self.name,
            clock=clock,
        )
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def fetch(self, latitude: float, longitude: float, days: int) -> Dict[str, Any]:
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "current": CURRENT_VARIABLES,
            "hourly": HOURLY_VARIABLES,
            "daily": DAILY_VARIABLES,
            "timezone": self.timezone,
            "forecast_days": days,
        }

        try:
            return await self.circuit_breaker.call(self._request, params)
        except ExternalServiceError:
            raise
        except CircuitBreakerOpenException as exc:
            self.logger.warning("Open-Meteo circuit open, skipping request")
            raise ExternalServiceError(service=self.name, message=str(exc), details={"circuit": "open"})
        except httpx.HTTPError as exc:
            self.logger.error("Open-Meteo transport error", error=str(exc), latitude=latitude, longitude=longitude)
            raise ExternalServiceError(service=self.name, message=f"Transport error: {exc.__class__.__name__}")

    async def _request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._client.get(self.base_url, params=params)

        if response.status_code != 200:
            self.logger.error(
                "Open-Meteo request failed",
                status_code=response.status_code,
                response=response.text[:500],
            )
            raise ExternalServiceError(
                service=self.name,
                message=f"Unexpected status {response.status_code}",
                details={"status_code": response.status_code},
            )

        try:
            data = response.json()
        except ValueError:
            self.logger.error("Open-Meteo returned invalid JSON", response=response.text[:500])
            raise ExternalServiceError(service=self.name, message="Invalid JSON in response")

        self.logger.debug(
            "Open-Meteo forecast retrieved",
            latitude=params["latitude"],
            longitude=params["longitude"],
        )
        return data

    def report_timeout(self) -> None:
        self.circuit_breaker.record_failure(reason="timeout")

    async def close(self) -> None:
        await self._client.aclose()

    def health(self) -> Dict[str, Any]:
        state = self.circuit_breaker.get_state()
        return {"status": "degraded" if self.circuit_breaker.is_open() else "ok", "circuit_breaker": state}
