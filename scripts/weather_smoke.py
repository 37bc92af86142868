#!/usr/bin/env python3
"""
Smoke test a running weather gateway.

Hits the health endpoint, current conditions and a short forecast for
London, printing status, rate-limit headers and a summary of each body.
The API key is read from WEATHER_API_KEY unless --api-key is given.
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Dict, List, Optional

import httpx


CHECKS = [
    ("health", "/health", {}),
    ("current", "/weather/current", {"city": "London"}),
    ("forecast", "/weather/forecast", {"city": "London", "days": "3"}),
]


async def run_checks(base_url: str, api_key: Optional[str], timeout: float) -> List[Dict[str, Any]]:
    """Execute every check and return one result record per endpoint."""
    headers = {"X-API-Key": api_key} if api_key else {}
    results = []

    async with httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, headers=headers) as client:
        for name, path, params in CHECKS:
            try:
                response = await client.get(path, params=params)
            except httpx.HTTPError as exc:
                results.append({"check": name, "ok": False, "error": f"{exc.__class__.__name__}: {exc}"})
                continue

            try:
                body = response.json()
            except ValueError:
                body = {"raw": response.text[:200]}

            results.append({
                "check": name,
                "ok": response.is_success,
                "status": response.status_code,
                "rate_limit": {
                    key: value for key, value in response.headers.items()
                    if key.lower().startswith("x-ratelimit") or key.lower() == "retry-after"
                },
                "summary": _summarize(name, body),
            })

    return results


def _summarize(name: str, body: Dict[str, Any]) -> Dict[str, Any]:
    if "code" in body and "message" in body:
        return {"code": body["code"], "message": body["message"], "hint": body.get("hint")}
    if name == "current":
        return {"location": body.get("location"), "current": body.get("current")}
    if name == "forecast":
        daily = body.get("daily") or {}
        return {"location": body.get("location"), "dates": daily.get("dates"), "temp_max": daily.get("temp_max")}
    return body


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Smoke test the UK weather gateway.")
    parser.add_argument("--base-url", default=os.getenv("WEATHER_BASE_URL", "http://localhost:8787"), help="Gateway base URL")
    parser.add_argument("--api-key", default=os.getenv("WEATHER_API_KEY"), help="API key (defaults to WEATHER_API_KEY)")
    parser.add_argument("--timeout", type=float, default=15.0, help="Per-request timeout in seconds")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    if not args.api_key:
        print("[weather-smoke] WEATHER_API_KEY not set, weather checks will return 401", file=sys.stderr)

    try:
        results = asyncio.run(run_checks(args.base_url, args.api_key, args.timeout))
    except KeyboardInterrupt:
        return 130

    print(json.dumps(results, indent=2))
    return 0 if all(result["ok"] for result in results) else 1


if __name__ == "__main__":
    raise SystemExit(main())
