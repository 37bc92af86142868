"""
Coordinate-keyed TTL cache for upstream weather payloads.
"""

import asyncio
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TYPE_CHECKING

from shared.clock import Clock, SYSTEM_CLOCK
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_TTL_SECONDS = 900.0

CoordinateKey = Tuple[float, float]


def coordinate_key(latitude: float, longitude: float) -> CoordinateKey:
    """Exact float pair; no rounding, so distinct inputs never share an entry."""
    return float(latitude), float(longitude)


@dataclass(frozen=True)
class CacheEntry:
    payload: Any
    stored_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ResponseCache:
    """Process-local cache shared by every caller.

    Expiry is evaluated on read. Expired entries stay in the table until
    ``purge_expired`` runs; ``get`` never deletes. Entries are immutable and
    replaced wholesale, so readers never observe a partial write.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Optional[Clock] = None,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self.clock = clock or SYSTEM_CLOCK
        self.metrics = metrics
        self.logger = get_logger("weather.response_cache")

        self._entries: Dict[CoordinateKey, CacheEntry] = {}
        self._in_flight: Dict[CoordinateKey, "asyncio.Task[Any]"] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: CoordinateKey) -> Optional[Any]:
        """Return the cached payload, or None when absent or expired."""
        now = self.clock.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            hit = entry is not None and not entry.is_expired(now)
            if hit:
                self._hits += 1
            else:
                self._misses += 1

        self._record(hit)
        return entry.payload if hit else None

    def put(self, key: CoordinateKey, payload: Any) -> None:
        """Store ``payload``, replacing any previous entry for ``key``."""
        now = self.clock.monotonic()
        entry = CacheEntry(payload=payload, stored_at=now, expires_at=now + self.ttl_seconds)
        with self._lock:
            self._entries[key] = entry
        self.logger.debug("Cached weather payload", latitude=key[0], longitude=key[1], ttl=self.ttl_seconds)

    async def get_or_fetch(
        self,
        key: CoordinateKey,
        fetcher: Callable[[], Awaitable[Any]],
    ) -> Tuple[Any, bool]:
        """Return ``(payload, cached)``, fetching at most once per key at a time.

        The first miss starts the fetch as a task of its own; every caller,
        the first included, waits on it through ``asyncio.shield``. Cancelling
        one caller leaves the fetch running for the rest. Concurrent misses
        receive its payload or its exception. Failures are not stored.
        """
        cached = self.get(key)
        if cached is not None:
            return cached, True

        loop = asyncio.get_running_loop()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and not entry.is_expired(self.clock.monotonic()):
                # Another fetch completed between the read above and this lock
                return entry.payload, True
            task = self._in_flight.get(key)
            owner = task is None
            if owner:
                task = loop.create_task(self._run_fetch(key, fetcher))
                task.add_done_callback(_consume_exception)
                self._in_flight[key] = task

        if not owner:
            self.logger.debug("Joining in-flight fetch", latitude=key[0], longitude=key[1])
        payload = await asyncio.shield(task)
        return payload, not owner

    async def _run_fetch(self, key: CoordinateKey, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        try:
            payload = await fetcher()
            self.put(key, payload)
            return payload
        finally:
            with self._lock:
                self._in_flight.pop(key, None)

    def purge_expired(self) -> int:
        """Delete expired entries and return how many were removed."""
        now = self.clock.monotonic()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            self.logger.debug("Purged expired cache entries", count=len(expired))
        return len(expired)

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Purge expired entries every ``interval_seconds`` until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            self.purge_expired()

    def stats(self) -> Dict[str, Any]:
        now = self.clock.monotonic()
        with self._lock:
            total = len(self._entries)
            live = sum(1 for entry in self._entries.values() if not entry.is_expired(now))
            in_flight = len(self._in_flight)
            hits, misses = self._hits, self._misses
        lookups = hits + misses
        return {
            "entries": total,
            "live_entries": live,
            "in_flight": in_flight,
            "hits": hits,
            "misses": misses,
            "hit_ratio": hits / lookups if lookups else 0.0,
            "ttl_seconds": self.ttl_seconds,
        }

    def _record(self, hit: bool) -> None:
        if self.metrics is None:
            return
        metric = "cache_hits_total" if hit else "cache_misses_total"
        self.metrics.increment_counter(metric, cache_type="weather")


def _consume_exception(task: "asyncio.Task[Any]") -> None:
    # Every caller may have been cancelled; keep asyncio from reporting an unobserved failure
    if not task.cancelled():
        task.exception()
