"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, almost no logic). Mirrors
records/models.py -- dataclasses own domain shape; stores and routes do the
work.

Layer rule: no imports from api/ or records/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class User:
    """An identity that owns aquariums.

    hashed_password is the single active bcrypt hash. It is replaced, never
    edited, by a password change; the previous value survives only in the
    password history.
    """

    username: str
    id: int | None = None
    hashed_password: str | None = None
    email: str | None = None
    name: str | None = None
    roles: list[str] = field(default_factory=lambda: ["user"])
    created_at: str | None = None
    last_login: str | None = None
    is_active: bool = True
    row_version: bytes | None = None


@dataclass
class PasswordHistoryEntry:
    """One append-only password record.

    expired_at is derived when the history is listed: the created_at of the
    next password set for the same user, or None for the current password.
    """

    user_id: int
    password_hash: str
    created_at: datetime
    expired_at: datetime | None = None
    id: int | None = None

    def was_active_at(self, instant: datetime) -> bool:
        """True if this password was the active one at instant."""
        if instant < self.created_at:
            return False
        return self.expired_at is None or instant < self.expired_at


@dataclass(frozen=True)
class SignedToken:
    """A compact JWT and the instant it stops verifying."""

    token: str
    expires_at: datetime
