"""
Integration tests for the weather gateway request flow.

Drives the assembled service through TestClient with a manual clock so
cache expiry and rate-limit windows can be crossed without sleeping.
"""

import pytest
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_weather.app.main import create_app
from shared.clock import ManualClock
from shared.errors import ExternalServiceError
from shared.test_helpers import FakeWeatherProvider, TestEnvironment


class TestWeatherFlow:
    """End-to-end flows across key store, rate limiter, cache and provider."""

    @pytest.fixture
    def clock(self):
        return ManualClock()

    @pytest.fixture
    def provider(self):
        return FakeWeatherProvider()

    @pytest.fixture
    def client(self, provider, clock):
        app = create_app(
            provider=provider,
            clock=clock,
            **TestEnvironment.config_overrides(free_tier_quota=5, pro_tier_quota=50),
        )
        return TestClient(app)

    def _current(self, client, key, **params):
        return client.get("/weather/current", params={"api_key": key, **params})

    def test_cache_shared_across_callers_and_expires(self, client, provider, clock):
        """Different keys share cached data; expiry causes one refetch."""
        first = self._current(client, TestEnvironment.FREE_KEY, city="London")
        second = self._current(client, TestEnvironment.PRO_KEY, city="london")

        assert first.json()["cached"] is False
        assert second.json()["cached"] is True
        assert provider.call_count == 1

        clock.advance(901)
        third = self._current(client, TestEnvironment.PRO_KEY, city="London")
        fourth = self._current(client, TestEnvironment.FREE_KEY, city="London")

        assert third.json()["cached"] is False
        assert fourth.json()["cached"] is True
        assert provider.call_count == 2

    def test_quota_window_lifecycle(self, client, clock):
        """Exhaust the free quota, get 429, and recover after the window."""
        remaining = [
            self._current(client, TestEnvironment.FREE_KEY, city="York" if i == 2 else "Leeds")
            for i in range(5)
        ]

        assert [r.status_code for r in remaining] == [200, 200, 404, 200, 200]
        assert remaining[-1].headers["X-RateLimit-Remaining"] == "0"

        limited = self._current(client, TestEnvironment.FREE_KEY, city="Leeds")
        assert limited.status_code == 429
        retry_after = int(limited.headers["Retry-After"])
        assert 0 < retry_after <= 3600

        clock.advance(retry_after + 1)
        recovered = self._current(client, TestEnvironment.FREE_KEY, city="Leeds")

        assert recovered.status_code == 200
        assert recovered.headers["X-RateLimit-Remaining"] == "4"

    def test_anonymous_callers_share_one_bucket(self, client, provider):
        """Requests without valid keys drain a shared bucket but still get 401."""
        statuses = []
        for key in [None, "ukw_a", "ukw_b", "ukw_c", "ukw_d", "ukw_e"]:
            params = {"city": "London"}
            if key:
                params["api_key"] = key
            response = client.get("/weather/current", params=params)
            statuses.append((response.status_code, response.headers["X-RateLimit-Remaining"]))

        assert [status for status, _ in statuses] == [401] * 6
        assert [remaining for _, remaining in statuses] == ["4", "3", "2", "1", "0", "0"]
        assert provider.call_count == 0

        valid = self._current(client, TestEnvironment.FREE_KEY, city="London")
        assert valid.status_code == 200

    def test_key_lifecycle(self, client, provider):
        """Issue a pro key, use coordinates, revoke it."""
        created = client.post(
            "/admin/keys",
            json={"admin_key": TestEnvironment.ADMIN_KEY, "name": "Partner", "tier": "pro"},
        )
        key = created.json()["key"]

        ok = self._current(client, key, lat="54.9783", lon="-1.6178")
        assert ok.status_code == 200
        assert ok.headers["X-RateLimit-Limit"] == "50"
        assert provider.calls[-1] == (54.9783, -1.6178, 7)

        client.delete(f"/admin/keys/{key}", headers={"X-Admin-Key": TestEnvironment.ADMIN_KEY})

        revoked = self._current(client, key, lat="54.9783", lon="-1.6178")
        assert revoked.status_code == 401

    def test_upstream_outage_then_recovery(self, client, provider):
        """Failures are not cached, so recovery is immediate."""
        provider.error = ExternalServiceError("fake-provider", "Unexpected status 503")
        failed = client.get(
            "/weather/forecast",
            params={"city": "Sheffield", "days": "2", "api_key": TestEnvironment.FREE_KEY},
        )
        assert failed.status_code == 503

        provider.error = None
        recovered = client.get(
            "/weather/forecast",
            params={"city": "Sheffield", "days": "2", "api_key": TestEnvironment.FREE_KEY},
        )

        assert recovered.status_code == 200
        assert len(recovered.json()["daily"]["dates"]) == 2
        assert provider.call_count == 2

        stats = client.get("/admin/stats", headers={"X-Admin-Key": TestEnvironment.ADMIN_KEY}).json()
        assert stats["cache"]["entries"] == 1
