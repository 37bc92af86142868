"""
API key package for the weather gateway.

Holds the in-memory key table, tier definitions, and the administrative
credential check guarding key management.
"""

from .store import ApiKey, KeyLookup, KeyStore, Tier, generate_key

__all__ = ["ApiKey", "KeyLookup", "KeyStore", "Tier", "generate_key"]
