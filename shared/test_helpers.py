"""
Test helper functions and factory methods for the UK Weather Gateway.
"""

import asyncio
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple


class TestDataFactory:
    """Factory for creating test data."""

    __test__ = False

    @staticmethod
    def create_open_meteo_payload(
        days: int = 7,
        hours: int = 48,
        start: date = date(2024, 6, 1),
        temperature: float = 18.4,
    ) -> Dict[str, Any]:
        """Build a document shaped like an Open-Meteo forecast response."""
        dates = [(start + timedelta(days=offset)).isoformat() for offset in range(days)]
        hourly_times = [
            f"{(start + timedelta(days=hour // 24)).isoformat()}T{hour % 24:02d}:00"
            for hour in range(hours)
        ]
        return {
            "latitude": 51.5,
            "longitude": -0.12,
            "timezone": "Europe/London",
            "current_units": {
                "time": "iso8601",
                "temperature_2m": "°C",
                "relative_humidity_2m": "%",
                "weather_code": "wmo code",
                "wind_speed_10m": "km/h",
                "wind_direction_10m": "°",
            },
            "current": {
                "time": f"{start.isoformat()}T12:00",
                "temperature_2m": temperature,
                "relative_humidity_2m": 71,
                "weather_code": 3,
                "wind_speed_10m": 14.2,
                "wind_direction_10m": 240,
            },
            "hourly": {
                "time": hourly_times,
                "temperature_2m": [12.0 + (hour % 24) * 0.3 for hour in range(hours)],
                "weather_code": [3] * hours,
                "precipitation_probability": [hour % 100 for hour in range(hours)],
            },
            "daily_units": {
                "time": "iso8601",
                "weather_code": "wmo code",
                "temperature_2m_max": "°C",
                "temperature_2m_min": "°C",
                "sunrise": "iso8601",
                "sunset": "iso8601",
            },
            "daily": {
                "time": dates,
                "weather_code": [3, 61, 2, 1, 0, 80, 45][:days] + [3] * max(0, days - 7),
                "temperature_2m_max": [20.0 + offset for offset in range(days)],
                "temperature_2m_min": [11.0 + offset * 0.5 for offset in range(days)],
                "sunrise": [f"{d}T04:43" for d in dates],
                "sunset": [f"{d}T21:13" for d in dates],
            },
        }

    @staticmethod
    def create_key_request(name: str = "Test Client", email: str = "client@example.com",
                           tier: str = "free") -> Dict[str, Any]:
        """Body for ``POST /admin/keys``."""
        return {"name": name, "email": email, "tier": tier}


class FakeWeatherProvider:
    """In-memory provider that records every fetch.

    ``payload`` is returned as-is, ``error`` is raised instead when set, and
    ``delay`` makes each fetch sleep first so concurrent callers overlap.
    """

    name = "fake-provider"

    def __init__(self, payload: Optional[Any] = None, error: Optional[BaseException] = None,
                 delay: float = 0.0):
        self.payload = TestDataFactory.create_open_meteo_payload() if payload is None else payload
        self.error = error
        self.delay = delay
        self.calls: List[Tuple[float, float, int]] = []
        self.closed = False
        self.timeouts = 0

    async def fetch(self, latitude: float, longitude: float, days: int) -> Dict[str, Any]:
        self.calls.append((latitude, longitude, days))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.payload

    def report_timeout(self) -> None:
        self.timeouts += 1

    async def close(self) -> None:
        self.closed = True

    def health(self) -> Dict[str, Any]:
        return {"status": "ok"}

    @property
    def call_count(self) -> int:
        return len(self.calls)


class TestEnvironment:
    """Config overrides for a self-contained service under test."""

    __test__ = False

    ADMIN_KEY = "test-admin-key"
    FREE_KEY = "ukw_test_free"
    PRO_KEY = "ukw_test_pro"

    @classmethod
    def config_overrides(cls, **extra) -> Dict[str, Any]:
        overrides: Dict[str, Any] = {
            "env": "test",
            "log_level": "warning",
            "admin_key": cls.ADMIN_KEY,
            "static_api_keys": {cls.FREE_KEY: "free", cls.PRO_KEY: "pro"},
        }
        overrides.update(extra)
        return overrides
