"""
tests/test_passwords.py -- Credential verification against stored bcrypt hashes.

Covers:
  - verify() true iff the plaintext hashes to the stored hash
  - unknown identity, missing hash and malformed hash all verify False
  - authenticate() refuses wrong passwords and inactive users
  - the bcrypt size limit is measured in UTF-8 bytes, not characters
"""

from __future__ import annotations

from auth.models import User
from auth.passwords import authenticate, hash_password, password_fits, verify, verify_password
from auth.store import UserStore


class TestVerifyPassword:
    def test_round_trip(self) -> None:
        hashed = hash_password("correct horse")
        assert verify_password("correct horse", hashed)
        assert not verify_password("correct horse!", hashed)

    def test_hash_is_salted(self) -> None:
        assert hash_password("same") != hash_password("same")

    def test_malformed_stored_hash_is_a_mismatch(self) -> None:
        assert verify_password("anything", "abc123") is False

    def test_size_limit_counts_utf8_bytes(self) -> None:
        assert password_fits("a" * 72)
        assert not password_fits("a" * 73)
        assert password_fits("\u00e9" * 36)
        assert not password_fits("\u00e9" * 37)


class TestVerify:
    """verify() looks up the identity and compares against its current hash."""

    def test_correct_and_wrong_password(self, user_store: UserStore) -> None:
        user_id = user_store.create_user(User(username="seven", hashed_password=hash_password("correct")))
        assert verify(user_store, user_id, "correct") is True
        assert verify(user_store, user_id, "wrong") is False

    def test_unknown_identity(self, user_store: UserStore) -> None:
        assert verify(user_store, 4242, "correct") is False

    def test_identity_without_password(self, user_store: UserStore) -> None:
        user_id = user_store.create_user(User(username="nopass"))
        assert verify(user_store, user_id, "") is False

    def test_only_current_password_verifies(self, user_store: UserStore) -> None:
        user_id = user_store.create_user(User(username="rotated", hashed_password=hash_password("first-pass")))
        user_store.replace_password(user_id, hash_password("second-pass"))
        assert verify(user_store, user_id, "second-pass")
        assert not verify(user_store, user_id, "first-pass")


class TestAuthenticate:
    def test_success_returns_user(self, user_store: UserStore) -> None:
        user_store.create_user(User(username="bob", hashed_password=hash_password("bob-pass-1")))
        user = authenticate(user_store, "bob", "bob-pass-1")
        assert user is not None and user.username == "bob"

    def test_wrong_password_and_unknown_user_look_the_same(self, user_store: UserStore) -> None:
        user_store.create_user(User(username="carol", hashed_password=hash_password("carol-pass")))
        assert authenticate(user_store, "carol", "nope") is None
        assert authenticate(user_store, "nobody", "nope") is None

    def test_inactive_user_refused(self, user_store: UserStore) -> None:
        user_store.create_user(
            User(username="dave", hashed_password=hash_password("dave-pass"), is_active=False)
        )
        assert authenticate(user_store, "dave", "dave-pass") is None
