"""Tests for request identities."""

from uuid import uuid4

import pytest

from genealogy_buddy.entitlements.identity import Identity, is_valid_anon_key, new_anon_key


class TestAnonymousKeys:
    """Tests for anonymous identity keys."""

    def test_new_keys_are_valid_and_distinct(self) -> None:
        keys = {new_anon_key() for _ in range(20)}
        assert len(keys) == 20
        assert all(is_valid_anon_key(key) for key in keys)

    @pytest.mark.parametrize(
        "value",
        [None, "", "anon_", "anon_XYZ", "user_" + "a" * 32, "anon_" + "a" * 31, "anon_" + "A" * 32],
    )
    def test_invalid_keys(self, value) -> None:
        assert not is_valid_anon_key(value)

    def test_anonymous_rejects_malformed_key(self) -> None:
        with pytest.raises(ValueError):
            Identity.anonymous("anon_../../etc")


class TestIdentity:
    """Tests for Identity."""

    def test_user_identity(self) -> None:
        user_id = uuid4()
        identity = Identity.for_user(user_id)
        assert identity.identity_id == str(user_id)
        assert identity.is_authenticated
        assert not identity.is_admin

    def test_anonymous_identity(self) -> None:
        key = new_anon_key()
        identity = Identity.anonymous(key)
        assert identity.identity_id == key
        assert identity.user_id is None
        assert not identity.is_authenticated
