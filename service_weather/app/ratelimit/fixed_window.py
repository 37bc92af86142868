"""
Fixed window rate limiter for the weather gateway.
"""

import math
import threading
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from shared.clock import Clock, SYSTEM_CLOCK
from shared.logging import get_logger

from service_weather.app.keys import KeyStore, Tier


ANONYMOUS_IDENTITY = "anonymous"

DEFAULT_QUOTAS: Dict[Tier, int] = {
    Tier.FREE: 100,
    Tier.PRO: 1000,
}


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single rate limit check."""

    allowed: bool
    remaining: int
    limit: int
    reset_in: int
    tier: Tier
    identity: str

    def headers(self) -> Dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_in),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_in)
        return headers

    def to_dict(self) -> Dict[str, Any]:
        return {"limit": self.limit, "remaining": self.remaining, "reset_in": self.reset_in}


@dataclass
class UsageWindow:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """Counts requests per identity inside fixed windows.

    A window starts on the first request after the previous one expired
    and lasts ``window_seconds``. Denied requests do not count against the
    window, so ``count`` never exceeds the quota.
    """

    def __init__(
        self,
        key_store: KeyStore,
        quotas: Optional[Mapping[Tier, int]] = None,
        window_seconds: float = 3600.0,
        clock: Optional[Clock] = None,
    ):
        merged = dict(DEFAULT_QUOTAS)
        merged.update(quotas or {})
        if merged[Tier.PRO] < merged[Tier.FREE]:
            raise ValueError("pro quota must not be lower than the free quota")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.key_store = key_store
        self.quotas = merged
        self.window_seconds = window_seconds
        self.clock = clock or SYSTEM_CLOCK
        self.logger = get_logger("weather.rate_limiter")

        self._windows: Dict[str, UsageWindow] = {}
        self._lock = threading.Lock()

    def identity_for(self, api_key: Optional[str]) -> Tuple[str, Tier]:
        """Map a caller to its bucket; unknown callers share the anonymous one."""
        lookup = self.key_store.validate(api_key)
        if not lookup.found:
            return ANONYMOUS_IDENTITY, Tier.FREE
        return f"key:{api_key}", lookup.tier

    def check(self, api_key: Optional[str]) -> RateLimitDecision:
        """Consume one request from the caller's window if quota remains."""
        identity, tier = self.identity_for(api_key)
        limit = self.quotas[tier]
        now = self.clock.monotonic()

        with self._lock:
            window = self._current_window(identity, now)
            if window.count >= limit:
                allowed = False
            else:
                window.count += 1
                allowed = True
            remaining = max(0, limit - window.count)
            reset_in = self._seconds_until(window.reset_at, now)

        if not allowed:
            self.logger.warning(
                "Rate limit exceeded",
                identity=identity if identity == ANONYMOUS_IDENTITY else "key",
                tier=tier.value,
                limit=limit,
                reset_in=reset_in,
            )

        return RateLimitDecision(
            allowed=allowed,
            remaining=remaining,
            limit=limit,
            reset_in=reset_in,
            tier=tier,
            identity=identity,
        )

    def status(self, api_key: Optional[str]) -> RateLimitDecision:
        """Report the caller's window without consuming quota."""
        identity, tier = self.identity_for(api_key)
        limit = self.quotas[tier]
        now = self.clock.monotonic()

        with self._lock:
            window = self._windows.get(identity)
            if window is None or now > window.reset_at:
                count, reset_in = 0, math.ceil(self.window_seconds)
            else:
                count, reset_in = window.count, self._seconds_until(window.reset_at, now)

        remaining = max(0, limit - count)
        return RateLimitDecision(
            allowed=remaining > 0,
            remaining=remaining,
            limit=limit,
            reset_in=reset_in,
            tier=tier,
            identity=identity,
        )

    def reset(self, identity: str) -> bool:
        """Forget one identity's window."""
        with self._lock:
            return self._windows.pop(identity, None) is not None

    def purge_stale(self) -> int:
        """Drop windows that have already expired."""
        now = self.clock.monotonic()
        with self._lock:
            stale = [identity for identity, window in self._windows.items() if now > window.reset_at]
            for identity in stale:
                del self._windows[identity]
        if stale:
            self.logger.debug("Purged stale rate limit windows", count=len(stale))
        return len(stale)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            tracked = len(self._windows)
            anonymous = self._windows.get(ANONYMOUS_IDENTITY)
            anonymous_count = anonymous.count if anonymous else 0
        return {
            "tracked_identities": tracked,
            "anonymous_requests": anonymous_count,
            "window_seconds": self.window_seconds,
            "quotas": {tier.value: quota for tier, quota in self.quotas.items()},
        }

    def _current_window(self, identity: str, now: float) -> UsageWindow:
        # Caller holds self._lock
        window = self._windows.get(identity)
        if window is None or now > window.reset_at:
            window = UsageWindow(count=0, reset_at=now + self.window_seconds)
            self._windows[identity] = window
        return window

    @staticmethod
    def _seconds_until(reset_at: float, now: float) -> int:
        return max(1, math.ceil(reset_at - now))
