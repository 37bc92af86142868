"""
Time sources for window and expiry calculations.

Components take a ``Clock`` at construction so tests can drive window
rollover and TTL expiry without sleeping.
"""

import time


class Clock:
    """Monotonic time source."""

    def monotonic(self) -> float:
        """Seconds on a clock that never goes backwards."""
        return time.monotonic()


class ManualClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0):
        self._now = start

    def monotonic(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds


SYSTEM_CLOCK = Clock()
