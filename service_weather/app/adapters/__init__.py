"""
Adapters package for the weather gateway.

Contains the provider interface and the Open-Meteo HTTP client. Adapters
map transport and status failures to ``ExternalServiceError`` and never
retry on their own.
"""

from .weather_provider import WeatherProvider
from .open_meteo_client import OpenMeteoClient

__all__ = ["OpenMeteoClient", "WeatherProvider"]
