"""
Request pipeline for weather queries.

Every query is rate checked first, then authenticated, then resolved to a
coordinate pair, then served from the response cache or the provider.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING

from shared.errors import (
    AuthenticationError,
    AuthorizationError,
    ExternalServiceError,
    LocationNotFoundError,
    RateLimitError,
    ValidationError,
    WeatherGatewayException,
)
from shared.logging import get_logger, set_caller_context

from service_weather.app.adapters.weather_provider import WeatherProvider
from service_weather.app.caching import ResponseCache, coordinate_key
from service_weather.app.domain.gazetteer import Gazetteer
from service_weather.app.domain.models import Coordinates, MalformedPayloadError, WeatherReport
from service_weather.app.keys import KeyStore, Tier
from service_weather.app.ratelimit import FixedWindowRateLimiter, RateLimitDecision

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


MAX_FORECAST_DAYS = 7
HOURLY_TODAY = 24


class UpstreamFailure(Exception):
    """Fetch failure shared between callers waiting on the same cache key."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


@dataclass(frozen=True)
class WeatherQuery:
    """Raw caller input; values are strings exactly as received."""

    api_key: Optional[str] = None
    city: Optional[str] = None
    lat: Optional[str] = None
    lon: Optional[str] = None
    days: Optional[str] = None


@dataclass(frozen=True)
class DispatchResult:
    body: Dict[str, Any]
    rate_limit: RateLimitDecision
    cached: bool = False

    @property
    def headers(self) -> Dict[str, str]:
        return self.rate_limit.headers()


class GatewayDispatcher:
    """Ties key store, rate limiter, cache and provider together."""

    def __init__(
        self,
        key_store: KeyStore,
        rate_limiter: FixedWindowRateLimiter,
        cache: ResponseCache,
        provider: WeatherProvider,
        *,
        gazetteer: Optional[Gazetteer] = None,
        metrics: Optional["MetricsCollector"] = None,
        fetch_timeout: float = 10.0,
    ):
        self.key_store = key_store
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.provider = provider
        self.gazetteer = gazetteer or Gazetteer()
        self.metrics = metrics
        self.fetch_timeout = fetch_timeout
        self.logger = get_logger("weather.dispatcher")

    async def current(self, query: WeatherQuery) -> DispatchResult:
        """Current conditions for the resolved location."""
        decision, tier = self._admit(query.api_key)
        try:
            location, coords = self.resolve_location(query, tier)
            report, cached = await self._load(coords)
        except WeatherGatewayException as exc:
            exc.headers.update(decision.headers())
            raise

        body = {
            "location": location,
            "coordinates": coords.to_dict(),
            "current": report.current.to_dict(),
            "units": report.current_units,
            "cached": cached,
            "rate_limit": decision.to_dict(),
        }
        return DispatchResult(body=body, rate_limit=decision, cached=cached)

    async def forecast(self, query: WeatherQuery) -> DispatchResult:
        """Daily forecast clamped to ``MAX_FORECAST_DAYS`` plus today's hours."""
        decision, tier = self._admit(query.api_key)
        try:
            days = self.clamp_days(query.days)
            location, coords = self.resolve_location(query, tier)
            report, cached = await self._load(coords)
        except WeatherGatewayException as exc:
            exc.headers.update(decision.headers())
            raise

        body: Dict[str, Any] = {
            "location": location,
            "coordinates": coords.to_dict(),
            "days": days,
            "daily": report.daily.head(days),
            "units": report.daily_units,
            "cached": cached,
            "rate_limit": decision.to_dict(),
        }
        if report.hourly is not None:
            body["hourly_today"] = report.hourly.head(HOURLY_TODAY)
        return DispatchResult(body=body, rate_limit=decision, cached=cached)

    def cities(self) -> Dict[str, Any]:
        names = self.gazetteer.names()
        return {"cities": names, "count": len(names)}

    @staticmethod
    def clamp_days(raw: Optional[str]) -> int:
        """Clamp into [1, MAX_FORECAST_DAYS]; missing or non-numeric means the maximum."""
        if raw is None:
            return MAX_FORECAST_DAYS
        try:
            value = float(str(raw).strip())
        except ValueError:
            return MAX_FORECAST_DAYS
        if not math.isfinite(value):
            return MAX_FORECAST_DAYS
        return max(1, min(MAX_FORECAST_DAYS, int(value)))

    def resolve_location(self, query: WeatherQuery, tier: Tier) -> Tuple[str, Coordinates]:
        """Return ``(label, coordinates)`` for the query.

        A city name wins over coordinates. Coordinates are parsed and range
        checked before the tier gate, so malformed input is reported as a
        validation error whatever the caller's plan.
        """
        if query.city is not None and query.city.strip():
            coords = self.gazetteer.lookup(query.city)
            if coords is None:
                raise LocationNotFoundError(
                    f"City not supported: {query.city}",
                    details={"supported_cities": self.gazetteer.names()},
                    hint="Use /weather/cities to see available cities",
                )
            return query.city.strip().title(), coords

        has_lat = query.lat is not None and query.lat.strip() != ""
        has_lon = query.lon is not None and query.lon.strip() != ""
        if has_lat and has_lon:
            coords = Coordinates(
                latitude=_parse_coordinate(query.lat, "lat", 90.0),
                longitude=_parse_coordinate(query.lon, "lon", 180.0),
            )
            if not tier.allows_coordinates:
                raise AuthorizationError(
                    "Coordinate lookups require the pro plan",
                    details={"tier": tier.value},
                    hint="Upgrade to pro or query by city name",
                )
            return coords.label(), coords

        if has_lat or has_lon:
            raise ValidationError(
                "Both lat and lon are required",
                hint="Supply lat and lon together, or a city name",
            )

        raise ValidationError(
            "Location required",
            details={"supported_cities": self.gazetteer.names()},
            hint="Supply city (one of: " + ", ".join(self.gazetteer.names()) + ") or lat and lon",
        )

    def _admit(self, api_key: Optional[str]) -> Tuple[RateLimitDecision, Tier]:
        decision = self.rate_limiter.check(api_key)

        lookup = self.key_store.validate(api_key)
        if not lookup.found:
            message = "API key required" if not api_key else "Invalid API key"
            self.logger.info("Rejected unauthenticated request", reason=message)
            error = AuthenticationError(
                message,
                hint="Pass your key as the api_key query parameter or the X-API-Key header",
            )
            error.headers.update(decision.headers())
            raise error

        set_caller_context(api_key, lookup.tier.value)

        if not decision.allowed:
            if self.metrics is not None:
                self.metrics.increment_counter("rate_limit_rejections_total", tier=lookup.tier.value)
            error = RateLimitError(decision.reset_in, details=decision.to_dict())
            error.headers.update(decision.headers())
            raise error

        return decision, lookup.tier

    async def _load(self, coords: Coordinates) -> Tuple[WeatherReport, bool]:
        key = coordinate_key(coords.latitude, coords.longitude)
        try:
            report, cached = await self.cache.get_or_fetch(key, lambda: self._fetch(coords))
        except UpstreamFailure as exc:
            # Fresh exception per caller; waiters share the UpstreamFailure
            raise ExternalServiceError(service=self.provider.name, message=exc.message, details=dict(exc.details))
        return report, cached

    async def _fetch(self, coords: Coordinates) -> WeatherReport:
        start = time.perf_counter()
        outcome = "error"
        try:
            payload = await asyncio.wait_for(
                self.provider.fetch(coords.latitude, coords.longitude, MAX_FORECAST_DAYS),
                timeout=self.fetch_timeout,
            )
            report = WeatherReport.from_payload(payload)
            outcome = "success"
            return report
        except asyncio.TimeoutError:
            outcome = "timeout"
            self.provider.report_timeout()
            self.logger.warning("Provider fetch timed out", timeout=self.fetch_timeout, **coords.to_dict())
            raise UpstreamFailure(f"Timed out after {self.fetch_timeout:g}s", {"timeout": self.fetch_timeout})
        except MalformedPayloadError as exc:
            outcome = "malformed"
            self.logger.error("Provider returned malformed payload", error=str(exc), **coords.to_dict())
            raise UpstreamFailure("Malformed provider payload", {"reason": str(exc)})
        except ExternalServiceError as exc:
            self.logger.error("Provider fetch failed", error=exc.message, **coords.to_dict())
            raise UpstreamFailure(exc.reason, exc.details)
        except Exception as exc:
            self.logger.exception("Unexpected provider error", **coords.to_dict())
            raise UpstreamFailure(f"Provider error: {exc.__class__.__name__}")
        finally:
            self._record_upstream(outcome, time.perf_counter() - start)

    def _record_upstream(self, outcome: str, duration: float) -> None:
        if self.metrics is None:
            return
        self.metrics.increment_counter("upstream_requests_total", outcome=outcome)
        self.metrics.observe_histogram("upstream_request_duration_seconds", duration, outcome=outcome)


def _parse_coordinate(raw: str, name: str, bound: float) -> float:
    try:
        value = float(raw.strip())
    except ValueError:
        raise ValidationError(f"Invalid {name}: {raw!r}", hint=f"{name} must be a number")
    if not math.isfinite(value) or not -bound <= value <= bound:
        raise ValidationError(
            f"{name} out of range: {raw}",
            hint=f"{name} must be between {-bound:g} and {bound:g}",
        )
    return value
