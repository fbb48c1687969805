"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as records/store.py).
UserStore is the identity repository; PasswordStore is the password history
repository and shares UserStore's engine. _row_to_* are the mappers.

Password history is append-only. Nothing in this module updates or deletes a
user_passwords row. Each entry's validity end is derived when the history is
read, never stored: one ordered query plus one linear pass pairs every entry
with the created_at of the entry set after it.

Failure policy: store failures are logged here and raised as StoreError.
A failed history append is never reported as success.

Security:
  All queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, text
from sqlalchemy.engine import Connection, Engine

from auth.models import PasswordHistoryEntry, User
from core.config import get_settings
from core.db import delete_versioned, make_engine, now_iso, store_errors, update_versioned, version_bytes

logger = logging.getLogger("aquarium.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(50), nullable=False, unique=True),
    Column("hashed_password", Text),
    Column("email", String(255)),
    Column("name", String(100)),
    Column("roles", Text, nullable=False, server_default='["user"]'),  # JSON array
    Column("created_at", String(32), nullable=False),
    Column("last_login", String(32)),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("row_version", Integer, nullable=False, server_default="1"),
)

_user_passwords = Table(
    "user_passwords",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Password history
# ---------------------------------------------------------------------------


class PasswordStore:
    """Append-only password history for every identity."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def append(self, user_id: int, password_hash: str, conn: Optional[Connection] = None) -> None:
        """Record password_hash as set now. Pass conn to join an open transaction."""
        logger.info("Adding password. user_id=%s", user_id)
        stmt = _user_passwords.insert().values(user_id=user_id, password_hash=password_hash, created_at=now_iso())
        with store_errors(logger, "adding a new password"):
            if conn is not None:
                conn.execute(stmt)
            else:
                with self.engine.begin() as own:
                    own.execute(stmt)

    def list_history(self, user_id: int) -> list[PasswordHistoryEntry]:
        """Return the user's passwords, most recent first, with expired_at filled in."""
        with store_errors(logger, "getting a user's passwords"), self.engine.connect() as conn:
            rows = conn.execute(
                _user_passwords.select()
                .where(_user_passwords.c.user_id == user_id)
                .order_by(_user_passwords.c.created_at.desc(), _user_passwords.c.id.desc())
            ).fetchall()

        history: list[PasswordHistoryEntry] = []
        newer: Optional[datetime] = None
        for row in rows:
            entry = _row_to_history_entry(row, expired_at=newer)
            history.append(entry)
            newer = entry.created_at
        return history


def hash_active_at(history: Iterable[PasswordHistoryEntry], password_hash: str, instant: datetime) -> bool:
    """Was password_hash the active password at instant?"""
    return any(e.password_hash == password_hash and e.was_active_at(instant) for e in history)


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        user_id = store.create_user(User(username="alice", hashed_password=hash_password("secret")))
        user = store.get_by_username("alice")
        history = store.passwords.list_history(user_id)
        store.close()
    """

    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)
        self.passwords = PasswordStore(self.engine)

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return (result or 0) > 0

    def create_user(self, user: User) -> int:
        """Insert a new user and, if it has a password, its first history entry.

        Both writes share one transaction. Raises StoreError if the username
        already exists or the store fails; callers check get_by_username()
        first to report duplicates precisely.
        """
        with store_errors(logger, "creating user"), self.engine.begin() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    hashed_password=user.hashed_password,
                    email=user.email,
                    name=user.name,
                    roles=json.dumps(user.roles),
                    created_at=now_iso(),
                    is_active=1 if user.is_active else 0,
                    row_version=1,
                )
            )
            user_id = result.inserted_primary_key[0]
            if user.hashed_password:
                self.passwords.append(user_id, user.hashed_password, conn=conn)
        return user_id

    def get_by_username(self, username: str) -> Optional[User]:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> Optional[User]:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_profile(self, user: User, expected: Optional[bytes] = None) -> Optional[bytes]:
        """Persist email and name. Returns the new row version, or None if the guard failed."""
        with store_errors(logger, "updating user"), self.engine.begin() as conn:
            return update_versioned(conn, _users, user.id, {"email": user.email, "name": user.name}, expected)

    def replace_password(
        self, user_id: int, hashed_password: str, expected: Optional[bytes] = None
    ) -> Optional[bytes]:
        """Swap the active hash and append it to the history in one transaction.

        Returns the new row version, or None if the user does not exist or
        expected no longer matches (in which case nothing is written).
        """
        with store_errors(logger, "changing password"), self.engine.begin() as conn:
            new_version = update_versioned(conn, _users, user_id, {"hashed_password": hashed_password}, expected)
            if new_version is None:
                return None
            self.passwords.append(user_id, hashed_password, conn=conn)
        return new_version

    def update_last_login(self, user_id: int) -> None:
        """Stamp last_login for audit. Does not advance row_version."""
        with store_errors(logger, "updating last login"), self.engine.begin() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(last_login=now_iso()))

    def delete_user(self, user_id: int, expected: Optional[bytes] = None) -> bool:
        """Delete an identity. Its password history is kept."""
        with store_errors(logger, "deleting user"), self.engine.begin() as conn:
            return delete_versioned(conn, _users, user_id, expected)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        hashed_password=row.hashed_password,
        email=row.email,
        name=row.name,
        roles=json.loads(row.roles) if row.roles else [],
        created_at=row.created_at,
        last_login=row.last_login,
        is_active=bool(row.is_active),
        row_version=version_bytes(row.row_version),
    )


def _row_to_history_entry(row, expired_at: Optional[datetime]) -> PasswordHistoryEntry:
    return PasswordHistoryEntry(
        id=row.id,
        user_id=row.user_id,
        password_hash=row.password_hash,
        created_at=datetime.fromisoformat(row.created_at),
        expired_at=expired_at,
    )
