"""
Normalized weather records built from provider payloads.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple


class MalformedPayloadError(ValueError):
    """Provider payload is missing fields or has the wrong shape."""


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    def label(self) -> str:
        return f"{self.latitude}, {self.longitude}"


@dataclass(frozen=True)
class CurrentConditions:
    time: Optional[str]
    temperature: Optional[float]
    humidity: Optional[float]
    weather_code: Optional[int]
    wind_speed: Optional[float]
    wind_direction: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.time,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "weather_code": self.weather_code,
            "wind_speed": self.wind_speed,
            "wind_direction": self.wind_direction,
        }


@dataclass(frozen=True)
class DailySeries:
    dates: Tuple[str, ...]
    weather_codes: Tuple[Optional[int], ...]
    temp_max: Tuple[Optional[float], ...]
    temp_min: Tuple[Optional[float], ...]
    sunrise: Tuple[Optional[str], ...]
    sunset: Tuple[Optional[str], ...]

    def __len__(self) -> int:
        return len(self.dates)

    def head(self, days: int) -> Dict[str, Any]:
        """First ``days`` entries of every series."""
        return {
            "dates": list(self.dates[:days]),
            "weather_codes": list(self.weather_codes[:days]),
            "temp_max": list(self.temp_max[:days]),
            "temp_min": list(self.temp_min[:days]),
            "sunrise": list(self.sunrise[:days]),
            "sunset": list(self.sunset[:days]),
        }


@dataclass(frozen=True)
class HourlySeries:
    time: Tuple[str, ...]
    temperature: Tuple[Optional[float], ...]
    precipitation_probability: Tuple[Optional[float], ...]

    def head(self, hours: int) -> Dict[str, Any]:
        return {
            "time": list(self.time[:hours]),
            "temperature": list(self.temperature[:hours]),
            "precipitation_probability": list(self.precipitation_probability[:hours]),
        }


@dataclass(frozen=True)
class WeatherReport:
    """Everything the gateway serves for one coordinate pair."""

    current: CurrentConditions
    current_units: Dict[str, str]
    daily: DailySeries
    daily_units: Dict[str, str]
    hourly: Optional[HourlySeries] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "WeatherReport":
        """Validate an Open-Meteo style document.

        Raises ``MalformedPayloadError`` when required sections or fields
        are missing, so a broken upstream response is never cached.
        """
        if not isinstance(payload, Mapping):
            raise MalformedPayloadError("payload is not an object")

        current = _section(payload, "current")
        daily = _section(payload, "daily")

        conditions = CurrentConditions(
            time=_optional_str(_field(current, "time", "current")),
            temperature=_number(_field(current, "temperature_2m", "current"), "temperature_2m"),
            humidity=_number(_field(current, "relative_humidity_2m", "current"), "relative_humidity_2m"),
            weather_code=_code(_field(current, "weather_code", "current")),
            wind_speed=_number(_field(current, "wind_speed_10m", "current"), "wind_speed_10m"),
            wind_direction=_number(_field(current, "wind_direction_10m", "current"), "wind_direction_10m"),
        )

        series = DailySeries(
            dates=tuple(str(value) for value in _series(daily, "time", "daily")),
            weather_codes=tuple(_code(value) for value in _series(daily, "weather_code", "daily")),
            temp_max=tuple(_number(value, "temperature_2m_max") for value in _series(daily, "temperature_2m_max", "daily")),
            temp_min=tuple(_number(value, "temperature_2m_min") for value in _series(daily, "temperature_2m_min", "daily")),
            sunrise=tuple(_optional_str(value) for value in _series(daily, "sunrise", "daily")),
            sunset=tuple(_optional_str(value) for value in _series(daily, "sunset", "daily")),
        )

        hourly: Optional[HourlySeries] = None
        raw_hourly = payload.get("hourly")
        if isinstance(raw_hourly, Mapping):
            hourly = HourlySeries(
                time=tuple(str(value) for value in _series(raw_hourly, "time", "hourly")),
                temperature=tuple(
                    _number(value, "temperature_2m") for value in raw_hourly.get("temperature_2m") or ()
                ),
                precipitation_probability=tuple(
                    _number(value, "precipitation_probability")
                    for value in raw_hourly.get("precipitation_probability") or ()
                ),
            )

        return cls(
            current=conditions,
            current_units=_units(payload.get("current_units")),
            daily=series,
            daily_units=_units(payload.get("daily_units")),
            hourly=hourly,
        )


def _section(payload: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = payload.get(name)
    if not isinstance(section, Mapping):
        raise MalformedPayloadError(f"missing '{name}' section")
    return section


def _field(section: Mapping[str, Any], name: str, where: str) -> Any:
    if name not in section:
        raise MalformedPayloadError(f"missing '{where}.{name}'")
    return section[name]


def _series(section: Mapping[str, Any], name: str, where: str) -> Sequence[Any]:
    values = section.get(name)
    if not isinstance(values, (list, tuple)):
        raise MalformedPayloadError(f"missing '{where}.{name}' series")
    return values


def _number(value: Any, name: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedPayloadError(f"'{name}' is not numeric")
    if not math.isfinite(value):
        raise MalformedPayloadError(f"'{name}' is not finite")
    return value


def _code(value: Any) -> Optional[int]:
    number = _number(value, "weather_code")
    return None if number is None else int(number)


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _units(value: Any) -> Dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    return {str(key): str(unit) for key, unit in value.items()}
