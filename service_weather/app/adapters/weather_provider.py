"""
Provider interface used by the dispatcher.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class WeatherProvider(ABC):
    """Source of Open-Meteo shaped weather documents.

    Implementations raise ``ExternalServiceError`` when the remote service is
    unreachable or answers with a non-success status.
    """

    name: str = "weather-provider"

    @abstractmethod
    async def fetch(self, latitude: float, longitude: float, days: int) -> Dict[str, Any]:
        """Return current conditions and up to ``days`` of daily forecast."""

    def report_timeout(self) -> None:
        """Called when the caller gave up waiting on ``fetch``."""

    async def close(self) -> None:
        """Release network resources."""

    def health(self) -> Dict[str, Any]:
        return {"status": "ok"}
