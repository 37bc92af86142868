"""
Shared error handling for the UK Weather Gateway.

Every error kind maps to one HTTP status category. Handlers render
``to_response()`` directly; nothing here is retried.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    hint: Optional[str] = None
    details: Dict[str, Any] = {}


class WeatherGatewayException(Exception):
    """Base exception for gateway services."""

    status_code: int = 400

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        hint: Optional[str] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.hint = hint
        # Response headers, e.g. rate-limit state attached by the dispatcher
        self.headers: Dict[str, str] = {}
        super().__init__(message)

    def to_response(self, trace_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            hint=self.hint,
            details=self.details
        )


class AuthenticationError(WeatherGatewayException):
    """Missing or unknown API key."""

    status_code = 401

    def __init__(self, message: str = "Invalid API key", details: Optional[Dict[str, Any]] = None,
                 hint: Optional[str] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details, hint)


class AuthorizationError(WeatherGatewayException):
    """Bad admin credential, or a feature the caller's tier does not include."""

    status_code = 403

    def __init__(self, message: str = "Forbidden", details: Optional[Dict[str, Any]] = None,
                 hint: Optional[str] = None):
        super().__init__("AUTHORIZATION_ERROR", message, details, hint)


class ValidationError(WeatherGatewayException):
    """Missing or malformed request parameters."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None,
                 hint: Optional[str] = None):
        super().__init__("VALIDATION_ERROR", message, details, hint)


class LocationNotFoundError(WeatherGatewayException):
    """City name not present in the gazetteer."""

    status_code = 404

    def __init__(self, message: str = "City not supported", details: Optional[Dict[str, Any]] = None,
                 hint: Optional[str] = None):
        super().__init__("LOCATION_NOT_FOUND", message, details, hint)


class RateLimitError(WeatherGatewayException):
    """Rate limiting errors."""

    status_code = 429

    def __init__(self, retry_after: int, message: str = "Rate limit exceeded",
                 details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        details["retry_after"] = retry_after
        self.retry_after = retry_after
        super().__init__(
            "RATE_LIMIT_ERROR",
            message,
            details,
            hint=f"Retry in {retry_after} seconds",
        )
        self.headers["Retry-After"] = str(retry_after)


class ExternalServiceError(WeatherGatewayException):
    """Upstream provider failed, timed out, or returned an unusable payload."""

    status_code = 503

    def __init__(self, service: str, message: str = "External service error",
                 details: Optional[Dict[str, Any]] = None):
        self.service = service
        self.reason = message
        super().__init__(
            "UPSTREAM_UNAVAILABLE",
            f"{service}: {message}",
            details,
            hint="The weather provider is unavailable, try again shortly",
        )
