"""
Rate limiting package for the weather gateway.

Holds the fixed-window limiter that enforces per-key hourly quotas by tier,
with unauthenticated callers sharing a single anonymous bucket.
"""

from .fixed_window import ANONYMOUS_IDENTITY, FixedWindowRateLimiter, RateLimitDecision

__all__ = ["ANONYMOUS_IDENTITY", "FixedWindowRateLimiter", "RateLimitDecision"]
