"""
Unit tests for the API key store.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_weather.app.keys import KeyStore, Tier, generate_key
from shared.errors import AuthorizationError, ValidationError


ADMIN_KEY = "admin-secret"


class TestKeyStore:
    """Test cases for KeyStore."""

    @pytest.fixture
    def store(self):
        """Store seeded with one static pro key."""
        return KeyStore(ADMIN_KEY, {"ukw_static_pro": "pro", "ukw_static_free": "FREE"})

    def test_validate_static_keys(self, store):
        """Static keys are found with their configured tier."""
        assert store.validate("ukw_static_pro").tier is Tier.PRO
        assert store.validate("ukw_static_free").tier is Tier.FREE

    @pytest.mark.parametrize("key", [None, "", "ukw_unknown", "UKW_STATIC_PRO"])
    def test_validate_fails_closed(self, store, key):
        """Unknown, empty and case-mangled keys are not found and carry no tier."""
        lookup = store.validate(key)

        assert lookup.found is False
        assert lookup.tier is None

    def test_create_issues_usable_key(self, store):
        """Created keys validate immediately with the requested tier."""
        record = store.create(ADMIN_KEY, name="Acme", metadata={"email": "ops@acme.test"}, tier="pro")

        assert record.key.startswith("ukw_")
        assert record.email == "ops@acme.test"
        assert record.metadata == {}
        assert store.validate(record.key).tier is Tier.PRO
        assert len(store) == 3

    def test_create_defaults_to_free(self, store):
        """Keys without a tier are free."""
        record = store.create(ADMIN_KEY, name="Hobbyist", tier=None)

        assert record.tier is Tier.FREE
        assert record.to_dict()["plan"] == "free"

    @pytest.mark.parametrize("credential", [None, "", "admin", "admin-secret "])
    def test_admin_operations_require_exact_credential(self, store, credential):
        """Wrong and missing admin credentials get the same error."""
        with pytest.raises(AuthorizationError) as exc_info:
            store.create(credential, name="Mallory")

        assert exc_info.value.message == "Invalid admin key"
        assert exc_info.value.status_code == 403
        assert len(store) == 2

    def test_revoke(self, store):
        """Revoked keys stop validating; revoking twice reports False."""
        record = store.create(ADMIN_KEY, name="Temp")

        assert store.revoke(ADMIN_KEY, record.key) is True
        assert store.validate(record.key).found is False
        assert store.revoke(ADMIN_KEY, record.key) is False

    def test_revoke_requires_admin(self, store):
        """Revocation is an administrative operation."""
        with pytest.raises(AuthorizationError):
            store.revoke("nope", "ukw_static_pro")

        assert store.validate("ukw_static_pro").found is True

    def test_list_redacts_identifiers(self, store):
        """Listed keys show only the first ten characters."""
        record = store.create(ADMIN_KEY, name="Listed")

        keys = store.list(ADMIN_KEY)
        listed = [entry for entry in keys if entry["name"] == "Listed"][0]

        assert listed["key"] == record.key[:10] + "..."
        assert all(entry["key"].endswith("...") for entry in keys)
        assert record.key not in str(keys)

    def test_unknown_tier_rejected(self, store):
        """Tier names outside free/pro are a validation error."""
        with pytest.raises(ValidationError):
            store.create(ADMIN_KEY, tier="enterprise")

    def test_empty_admin_key_not_allowed(self):
        """A store cannot be built without an admin credential."""
        with pytest.raises(ValueError):
            KeyStore("")

    def test_generated_keys_are_unique(self):
        """Key generation does not repeat."""
        keys = {generate_key() for _ in range(200)}

        assert len(keys) == 200
        assert all(key.startswith("ukw_") for key in keys)


class TestTier:
    """Test cases for Tier."""

    def test_only_pro_allows_coordinates(self):
        assert Tier.PRO.allows_coordinates is True
        assert Tier.FREE.allows_coordinates is False

    def test_parse(self):
        assert Tier.parse(None) is Tier.FREE
        assert Tier.parse(" Pro ") is Tier.PRO
        assert Tier.parse(Tier.FREE) is Tier.FREE
