"""
Weather gateway service for the UK Weather API.
"""

import asyncio
from typing import Any, Dict, Optional

from fastapi import Header, Query, Response
from pydantic import BaseModel

from shared.base_service import BaseService, SERVICE_VERSION
from shared.clock import Clock
from shared.config import DEFAULT_ADMIN_KEY

from service_weather.app.adapters import OpenMeteoClient, WeatherProvider
from service_weather.app.caching import ResponseCache
from service_weather.app.domain import GatewayDispatcher, WeatherQuery
from service_weather.app.keys import KeyStore, Tier
from service_weather.app.ratelimit import FixedWindowRateLimiter


SERVICE_NAME = "weather"
DEFAULT_PORT = 8787


class AdminRequest(BaseModel):
    """Body carrying only the admin credential."""

    admin_key: Optional[str] = None


class CreateKeyRequest(AdminRequest):
    """Body of ``POST /admin/keys``."""

    name: Optional[str] = None
    email: Optional[str] = None
    tier: Optional[str] = None
    metadata: Dict[str, Any] = {}


class WeatherGatewayService(BaseService):
    """Weather gateway service implementation."""

    def __init__(
        self,
        provider: Optional[WeatherProvider] = None,
        clock: Optional[Clock] = None,
        **config_overrides,
    ):
        super().__init__(SERVICE_NAME, DEFAULT_PORT, **config_overrides)
        self.clock = clock

        if self.config.admin_key == DEFAULT_ADMIN_KEY:
            self.logger.warning("Using the default admin key, set WEATHER_ADMIN_KEY in production")

        self.key_store = KeyStore(self.config.admin_key, self.config.static_api_keys)
        self.rate_limiter = FixedWindowRateLimiter(
            self.key_store,
            quotas={Tier.FREE: self.config.free_tier_quota, Tier.PRO: self.config.pro_tier_quota},
            window_seconds=self.config.rate_limit_window_seconds,
            clock=clock,
        )
        self.cache = ResponseCache(self.config.cache_ttl_seconds, clock, metrics=self.metrics)
        self.provider = provider or OpenMeteoClient(
            self.config.upstream_url,
            timeout=self.config.upstream_timeout_seconds,
            timezone=self.config.upstream_timezone,
            failure_threshold=self.config.circuit_failure_threshold,
            recovery_timeout=self.config.circuit_recovery_timeout,
            clock=clock,
        )
        self.dispatcher = GatewayDispatcher(
            self.key_store,
            self.rate_limiter,
            self.cache,
            self.provider,
            metrics=self.metrics,
            fetch_timeout=self.config.upstream_timeout_seconds,
        )
        self._sweeper: Optional[asyncio.Task] = None

        @self.app.on_event("startup")
        async def _startup():
            self._sweeper = asyncio.create_task(self._sweep(self.config.cache_sweep_interval_seconds))
            self.logger.info(
                "Weather gateway started",
                provider=self.provider.name,
                static_keys=len(self.key_store),
                cache_ttl=self.config.cache_ttl_seconds,
            )

        @self.app.on_event("shutdown")
        async def _shutdown():
            if self._sweeper is not None:
                self._sweeper.cancel()
                try:
                    await self._sweeper
                except asyncio.CancelledError:
                    pass
                self._sweeper = None
            await self.provider.close()

        self._setup_weather_routes()
        self._setup_admin_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.weather_service = self

    async def _sweep(self, interval: float) -> None:
        """Reclaim expired cache entries and stale rate-limit windows."""
        while True:
            await asyncio.sleep(interval)
            purged = self.cache.purge_expired()
            stale = self.rate_limiter.purge_stale()
            if purged or stale:
                self.logger.debug("Sweep completed", cache_entries=purged, rate_windows=stale)

    async def _check_dependencies(self) -> Dict[str, Any]:
        return {"provider": self.provider.health()}

    @staticmethod
    def _caller_key(
        api_key: Optional[str],
        x_api_key: Optional[str],
        authorization: Optional[str],
    ) -> Optional[str]:
        """Query parameter first, then ``X-API-Key``, then a bearer token."""
        if api_key:
            return api_key
        if x_api_key:
            return x_api_key
        if authorization:
            scheme, _, token = authorization.partition(" ")
            if scheme.lower() == "bearer" and token.strip():
                return token.strip()
        return None

    def _setup_weather_routes(self):
        """Set up public weather routes."""

        @self.app.get("/")
        async def root():
            """Service index."""
            return {
                "name": "UK Weather API",
                "version": SERVICE_VERSION,
                "endpoints": {
                    "/weather/current": "Current conditions (city, or lat and lon on pro)",
                    "/weather/forecast": "Daily forecast for up to 7 days (days, city, or lat and lon on pro)",
                    "/weather/cities": "Supported city names",
                    "/health": "Service health",
                    "/metrics": "Prometheus metrics",
                },
                "authentication": "api_key query parameter, X-API-Key header, or Authorization: Bearer",
                "plans": {
                    Tier.FREE.value: f"{self.config.free_tier_quota} requests per window, city lookups",
                    Tier.PRO.value: f"{self.config.pro_tier_quota} requests per window, city and coordinate lookups",
                },
            }

        @self.app.get("/weather/cities")
        async def list_cities():
            """Supported city names."""
            return self.dispatcher.cities()

        @self.app.get("/weather/current")
        async def current_weather(
            response: Response,
            city: Optional[str] = Query(None),
            lat: Optional[str] = Query(None),
            lon: Optional[str] = Query(None),
            api_key: Optional[str] = Query(None),
            x_api_key: Optional[str] = Header(None),
            authorization: Optional[str] = Header(None),
        ):
            """Current conditions."""
            query = WeatherQuery(
                api_key=self._caller_key(api_key, x_api_key, authorization),
                city=city,
                lat=lat,
                lon=lon,
            )
            result = await self.dispatcher.current(query)
            response.headers.update(result.headers)
            return result.body

        @self.app.get("/weather/forecast")
        async def forecast_weather(
            response: Response,
            city: Optional[str] = Query(None),
            lat: Optional[str] = Query(None),
            lon: Optional[str] = Query(None),
            days: Optional[str] = Query(None),
            api_key: Optional[str] = Query(None),
            x_api_key: Optional[str] = Header(None),
            authorization: Optional[str] = Header(None),
        ):
            """Daily forecast plus today's hourly series."""
            query = WeatherQuery(
                api_key=self._caller_key(api_key, x_api_key, authorization),
                city=city,
                lat=lat,
                lon=lon,
                days=days,
            )
            result = await self.dispatcher.forecast(query)
            response.headers.update(result.headers)
            return result.body

    def _setup_admin_routes(self):
        """Set up key administration routes."""

        @self.app.post("/admin/keys", status_code=201)
        async def create_key(
            body: Optional[CreateKeyRequest] = None,
            admin_key: Optional[str] = Query(None),
            x_admin_key: Optional[str] = Header(None),
        ):
            """Issue a new API key."""
            body = body or CreateKeyRequest()
            metadata = dict(body.metadata)
            if body.email is not None:
                metadata["email"] = body.email
            record = self.key_store.create(
                body.admin_key or admin_key or x_admin_key,
                name=body.name,
                metadata=metadata,
                tier=body.tier,
            )
            return {"success": True, **record.to_dict()}

        @self.app.get("/admin/keys")
        async def list_keys(
            admin_key: Optional[str] = Query(None),
            x_admin_key: Optional[str] = Header(None),
        ):
            """List issued keys with truncated identifiers."""
            keys = self.key_store.list(admin_key or x_admin_key)
            return {"keys": keys, "count": len(keys)}

        @self.app.delete("/admin/keys/{key}")
        async def revoke_key(
            key: str,
            body: Optional[AdminRequest] = None,
            admin_key: Optional[str] = Query(None),
            x_admin_key: Optional[str] = Header(None),
        ):
            """Revoke a key."""
            credential = (body.admin_key if body else None) or admin_key or x_admin_key
            revoked = self.key_store.revoke(credential, key)
            return {"success": revoked, "revoked": revoked}

        @self.app.get("/admin/stats")
        async def gateway_stats(
            admin_key: Optional[str] = Query(None),
            x_admin_key: Optional[str] = Header(None),
        ):
            """Cache and rate limiter statistics."""
            self.key_store.authorize_admin(admin_key or x_admin_key)
            return {
                "keys": len(self.key_store),
                "cache": self.cache.stats(),
                "rate_limiter": self.rate_limiter.stats(),
                "provider": self.provider.health(),
            }


def create_app(
    provider: Optional[WeatherProvider] = None,
    clock: Optional[Clock] = None,
    **config_overrides,
):
    """Create FastAPI application."""
    service = WeatherGatewayService(provider=provider, clock=clock, **config_overrides)
    return service.app


if __name__ == "__main__":
    service = WeatherGatewayService()
    service.run()
