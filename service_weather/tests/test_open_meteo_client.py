"""
Unit tests for the Open-Meteo client.
"""

import asyncio

import httpx
import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_weather.app.adapters import OpenMeteoClient
from shared.clock import ManualClock
from shared.errors import ExternalServiceError
from shared.test_helpers import TestDataFactory


BASE_URL = "https://weather.test/v1/forecast"


def make_client(handler, **kwargs) -> OpenMeteoClient:
    return OpenMeteoClient(
        BASE_URL,
        timeout=1.0,
        transport=httpx.MockTransport(handler),
        clock=kwargs.pop("clock", ManualClock()),
        **kwargs,
    )


class TestOpenMeteoClient:
    """Test cases for OpenMeteoClient."""

    @pytest.mark.asyncio
    async def test_fetch_sends_forecast_query(self):
        seen = []
        payload = TestDataFactory.create_open_meteo_payload()

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=payload)

        client = make_client(handler)
        result = await client.fetch(51.5074, -0.1278, 7)
        await client.close()

        assert result == payload
        params = seen[0].url.params
        assert params["latitude"] == "51.5074"
        assert params["longitude"] == "-0.1278"
        assert params["forecast_days"] == "7"
        assert params["timezone"] == "Europe/London"
        assert "temperature_2m" in params["current"]
        assert "precipitation_probability" in params["hourly"]
        assert "sunrise" in params["daily"]

    @pytest.mark.asyncio
    async def test_non_success_status(self):
        client = make_client(lambda request: httpx.Response(502, text="bad gateway"))

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.fetch(51.5, -0.1, 7)

        assert exc_info.value.status_code == 503
        assert exc_info.value.service == "open-meteo"
        assert exc_info.value.details["status_code"] == 502

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, content=b"<html>oops</html>"))

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.fetch(51.5, -0.1, 7)

        assert "Invalid JSON" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.fetch(51.5, -0.1, 7)

        assert "ConnectError" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_open_circuit_skips_network(self):
        """After repeated failures the client stops calling the provider."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500)

        client = make_client(handler, failure_threshold=2, recovery_timeout=30.0)

        for _ in range(2):
            with pytest.raises(ExternalServiceError):
                await client.fetch(51.5, -0.1, 7)

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.fetch(51.5, -0.1, 7)

        assert len(calls) == 2
        assert exc_info.value.details == {"circuit": "open"}
        assert client.health()["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_circuit_recovers(self):
        clock = ManualClock()
        responses = [httpx.Response(500), httpx.Response(200, json={"ok": True})]

        client = make_client(lambda request: responses.pop(0), failure_threshold=1,
                             recovery_timeout=10.0, clock=clock)

        with pytest.raises(ExternalServiceError):
            await client.fetch(51.5, -0.1, 7)
        clock.advance(10)

        assert await client.fetch(51.5, -0.1, 7) == {"ok": True}
        assert client.health()["status"] == "ok"

    @pytest.mark.asyncio
    async def test_reported_timeouts_open_circuit(self):
        calls = []

        async def hanging(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            await asyncio.sleep(1.0)
            return httpx.Response(200, json={})

        client = make_client(hanging, failure_threshold=2)

        for _ in range(2):
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(client.fetch(51.5, -0.1, 7), timeout=0.01)
            client.report_timeout()

        assert client.circuit_breaker.is_open()
        with pytest.raises(ExternalServiceError) as exc_info:
            await client.fetch(51.5, -0.1, 7)
        assert exc_info.value.details == {"circuit": "open"}
        assert len(calls) == 2
