"""
Shared utilities for the UK Weather Gateway.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- circuit_breaker: Protection for upstream calls
- clock: Injectable time source

Do not import from service_* packages into shared/.
"""
