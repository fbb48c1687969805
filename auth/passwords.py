"""
auth/passwords.py -- Password hashing and credential verification.

bcrypt stores its cost factor and salt inside the hash string, so the
"algorithm parameters" for a verification are always read from the stored
hash: bcrypt.hashpw(plain, stored) recomputes with the stored salt and cost,
and hmac.compare_digest compares the result without an early exit.

Timing parity: unknown identities, identities without a password and wrong
passwords all run exactly one bcrypt computation and return the same False /
None. Callers never learn which case occurred.

Layer rule: no imports from api/ or records/.
"""

from __future__ import annotations

import hmac
import logging
from typing import TYPE_CHECKING

import bcrypt

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("aquarium.auth.passwords")

# bcrypt rejects (5.x) or silently truncates (4.x) anything longer.
MAX_PASSWORD_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Callers must keep plain within MAX_PASSWORD_BYTES once UTF-8 encoded;
    see password_fits().
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def password_fits(plain: str) -> bool:
    return len(plain.encode("utf-8")) <= MAX_PASSWORD_BYTES

def verify_password(plain: str, hashed: str) -> bool:
    """Return True if plain hashes to hashed under hashed's own salt and cost."""
    try:
        candidate = bcrypt.hashpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        # Malformed stored hash: treat as a mismatch, never as a crash.
        return False
    return hmac.compare_digest(candidate, hashed.encode("utf-8"))


# Computed once at import so the first failed login is not measurably faster
# than later ones.
_DUMMY_HASH: str = hash_password("aquarium_timing_dummy")


def verify(store: UserStore, user_id: int, plain: str) -> bool:
    """Check plain against the identity's current password hash."""
    user = store.get_by_id(user_id)
    if user is None or not user.hashed_password:
        verify_password(plain, _DUMMY_HASH)
        return False
    return verify_password(plain, user.hashed_password)


def authenticate(store: UserStore, username: str, plain: str) -> User | None:
    """Resolve a username/password login to a User, or None on any failure."""
    user = store.get_by_username(username)
    if user is None or not user.hashed_password:
        verify_password(plain, _DUMMY_HASH)
        return None
    if not verify_password(plain, user.hashed_password):
        return None
    if not user.is_active:
        logger.info("Login refused for inactive user_id=%s", user.id)
        return None
    return user
