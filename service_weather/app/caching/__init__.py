"""
Caching package for the weather gateway.

Holds the coordinate-keyed response cache with lazy TTL expiry and
per-key in-flight fetch de-duplication.
"""

from .response_cache import CacheEntry, CoordinateKey, ResponseCache, coordinate_key

__all__ = ["CacheEntry", "CoordinateKey", "ResponseCache", "coordinate_key"]
