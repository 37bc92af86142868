"""
Domain package for the weather gateway.

Holds the city gazetteer, payload normalization, and the dispatcher that
sequences rate limiting, authentication, location resolution and caching.
"""

from .models import Coordinates, MalformedPayloadError, WeatherReport
from .gazetteer import UK_CITIES, Gazetteer
from .dispatcher import MAX_FORECAST_DAYS, DispatchResult, GatewayDispatcher, WeatherQuery

__all__ = [
    "MAX_FORECAST_DAYS",
    "Coordinates",
    "DispatchResult",
    "Gazetteer",
    "GatewayDispatcher",
    "MalformedPayloadError",
    "UK_CITIES",
    "WeatherQuery",
    "WeatherReport",
]
