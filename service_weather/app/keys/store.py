"""
In-memory API key store.
"""

import hmac
import secrets
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from shared.errors import AuthorizationError, ValidationError
from shared.logging import get_logger, redact_key


KEY_PREFIX = "ukw_"
_REDACTED_LENGTH = 10


class Tier(str, Enum):
    """Service level attached to an API key."""

    FREE = "free"
    PRO = "pro"

    @property
    def allows_coordinates(self) -> bool:
        """Free-form lat/lon lookups are a paid feature."""
        return self is Tier.PRO

    @classmethod
    def parse(cls, value: Union[str, "Tier", None]) -> "Tier":
        if value is None:
            return cls.FREE
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Unknown tier '{value}'",
                hint="tier must be one of: " + ", ".join(t.value for t in cls),
            )


@dataclass(frozen=True)
class ApiKey:
    """An issued API key and the metadata recorded with it."""

    key: str
    tier: Tier
    name: Optional[str] = None
    email: Optional[str] = None
    created: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "key": self.key,
            "name": self.name,
            "email": self.email,
            "created": self.created,
            "plan": self.tier.value,
        }
        if self.metadata:
            payload["metadata"] = dict(self.metadata)
        return payload

    def redacted(self) -> Dict[str, Any]:
        payload = self.to_dict()
        payload["key"] = self.key[:_REDACTED_LENGTH] + "..."
        return payload


@dataclass(frozen=True)
class KeyLookup:
    """Result of ``KeyStore.validate``."""

    found: bool
    tier: Optional[Tier] = None


class KeyStore:
    """Thread-safe table of API keys.

    Lookups never mutate state. Unknown keys fail closed: they are reported
    as not found and are never given a default tier. Create, list, and
    revoke require the administrative credential.
    """

    def __init__(self, admin_key: str, static_keys: Optional[Mapping[str, Any]] = None):
        if not admin_key:
            raise ValueError("admin_key must be a non-empty string")
        self._admin_key = admin_key
        self._keys: Dict[str, ApiKey] = {}
        self._lock = threading.Lock()
        self.logger = get_logger("weather.key_store")

        for key, tier in (static_keys or {}).items():
            self._keys[key] = ApiKey(
                key=key,
                tier=Tier.parse(tier),
                name="static",
                created=_utc_now(),
            )
        if self._keys:
            self.logger.info("Loaded static API keys", count=len(self._keys))

    def validate(self, key: Optional[str]) -> KeyLookup:
        """Look up ``key`` without side effects."""
        if not key:
            return KeyLookup(found=False)
        with self._lock:
            record = self._keys.get(key)
        if record is None:
            return KeyLookup(found=False)
        return KeyLookup(found=True, tier=record.tier)

    def authorize_admin(self, credential: Optional[str]) -> None:
        """Raise ``AuthorizationError`` unless ``credential`` is the admin key."""
        supplied = (credential or "").encode("utf-8")
        if not hmac.compare_digest(supplied, self._admin_key.encode("utf-8")):
            self.logger.warning("Rejected administrative request")
            raise AuthorizationError("Invalid admin key")

    def create(
        self,
        admin_key: Optional[str],
        name: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        tier: Union[str, Tier, None] = Tier.FREE,
    ) -> ApiKey:
        """Issue a new key."""
        self.authorize_admin(admin_key)
        extra = dict(metadata or {})
        email = extra.pop("email", None)
        record = ApiKey(
            key=generate_key(),
            tier=Tier.parse(tier),
            name=name,
            email=email,
            created=_utc_now(),
            metadata=extra,
        )
        with self._lock:
            self._keys[record.key] = record

        self.logger.info("API key created", api_key=redact_key(record.key), tier=record.tier.value)
        return record

    def revoke(self, admin_key: Optional[str], key: str) -> bool:
        """Delete ``key``; returns False when it was not present."""
        self.authorize_admin(admin_key)
        with self._lock:
            removed = self._keys.pop(key, None)

        if removed is not None:
            self.logger.info("API key revoked", api_key=redact_key(key))
        return removed is not None

    def list(self, admin_key: Optional[str]) -> List[Dict[str, Any]]:
        """All keys, with identifiers truncated."""
        self.authorize_admin(admin_key)
        with self._lock:
            records = list(self._keys.values())
        return [record.redacted() for record in records]

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)


def generate_key() -> str:
    """Nanosecond timestamp plus 96 random bits."""
    return f"{KEY_PREFIX}{time.time_ns()}_{secrets.token_urlsafe(12)}"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")
