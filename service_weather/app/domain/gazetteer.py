"""
Named UK locations served without free-form coordinates.
"""

from typing import Dict, List, Mapping, Optional

from service_weather.app.domain.models import Coordinates


UK_CITIES: Dict[str, Coordinates] = {
    "london": Coordinates(51.5074, -0.1278),
    "manchester": Coordinates(53.4808, -2.2426),
    "birmingham": Coordinates(52.4862, -1.8904),
    "edinburgh": Coordinates(55.9533, -3.1883),
    "bristol": Coordinates(51.4545, -2.5879),
    "leeds": Coordinates(53.8008, -1.5491),
    "glasgow": Coordinates(55.8642, -4.2518),
    "liverpool": Coordinates(53.4084, -2.9916),
    "newcastle": Coordinates(54.9783, -1.6178),
    "sheffield": Coordinates(53.3811, -1.4701),
    "cardiff": Coordinates(51.4816, -3.1791),
    "belfast": Coordinates(54.5973, -5.9301),
    "nottingham": Coordinates(52.9548, -1.1581),
    "southampton": Coordinates(50.9097, -1.4044),
    "brighton": Coordinates(50.8225, -0.1372),
}


class Gazetteer:
    """Case-insensitive lookup of place names."""

    def __init__(self, places: Optional[Mapping[str, Coordinates]] = None):
        source = UK_CITIES if places is None else places
        self._places = {name.strip().lower(): coords for name, coords in source.items()}

    def lookup(self, name: str) -> Optional[Coordinates]:
        return self._places.get(name.strip().lower())

    def names(self) -> List[str]:
        return list(self._places)

    def __contains__(self, name: str) -> bool:
        return self.lookup(name) is not None
