#!/usr/bin/env python3
"""
Aquarium Monitor -- account administration from the command line.

Usage:
  python main.py create-user alice --email alice@example.com
  python main.py create-user admin --admin
  python main.py create-user bob --skip-breach-check
  python main.py history alice

Environment variables:
  DATABASE_URL   SQLAlchemy URL of the store (default: ./aquarium_monitor.db)
  SECRET_KEY     Required unless DEBUG=true.
"""

import argparse
import asyncio
import getpass
import sys
from typing import Optional

import auth.rules  # noqa: F401 -- registers User validation rules
from auth.models import User
from auth.passwords import hash_password, password_fits
from auth.pwned import PwnedPasswordsClient
from auth.store import UserStore
from core.config import get_settings
from core.errors import RecordsError
from core.validation import validate


async def _is_pwned(password: str) -> bool:
    settings = get_settings()
    client = PwnedPasswordsClient(base_url=settings.pwned_api_url, timeout=settings.pwned_timeout_seconds)
    try:
        return await client.is_password_pwned(password)
    finally:
        await client.aclose()


def _prompt_password() -> Optional[str]:
    password = getpass.getpass("  Password: ")
    if password != getpass.getpass("  Repeat password: "):
        print("  [!] Passwords do not match.")
        return None
    if len(password) < 8 or not password_fits(password):
        print("  [!] Password must be at least 8 characters and at most 72 bytes.")
        return None
    return password


def create_user(store: UserStore, args: argparse.Namespace) -> int:
    """Create an identity and record its first password. Returns an exit code."""
    roles = ["admin", "user"] if args.admin else ["user"]
    user = User(username=args.username, email=args.email, name=args.name, roles=roles)
    failures = validate(user)
    if failures:
        for failure in failures:
            print(f"  [!] {failure.field}: {failure.message}")
        return 1
    if store.get_by_username(args.username) is not None:
        print(f"  [!] User '{args.username}' already exists.")
        return 1

    password = _prompt_password()
    if password is None:
        return 1
    if args.skip_breach_check:
        print("  Breach check skipped.")
    else:
        print("  Checking password against known breaches...", end=" ", flush=True)
        if asyncio.run(_is_pwned(password)):
            print("\n  [!] This password appears in a known breach. Choose another.")
            return 1
        print("done.")

    user.hashed_password = hash_password(password)
    user_id = store.create_user(user)
    print(f"  Created user '{user.username}' (id={user_id}, roles={','.join(roles)}).")
    return 0


def history(store: UserStore, args: argparse.Namespace) -> int:
    """Print a user's password validity windows, most recent first."""
    user = store.get_by_username(args.username)
    if user is None:
        print(f"  [!] No user named '{args.username}'.")
        return 1
    entries = store.passwords.list_history(user.id)
    if not entries:
        print(f"  '{user.username}' has no password history.")
        return 0
    print(f"\nPassword history for {user.username}")
    print("─" * 40)
    for entry in entries:
        until = entry.expired_at.isoformat() if entry.expired_at else "current"
        print(f"  {entry.created_at.isoformat()}  ->  {until}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="aquarium-monitor",
        description="Account administration for Aquarium Monitor.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_create = sub.add_parser("create-user", help="Create a user and set their first password")
    p_create.add_argument("username")
    p_create.add_argument("--email", default=None)
    p_create.add_argument("--name", default=None)
    p_create.add_argument("--admin", action="store_true", help="Grant the admin role")
    p_create.add_argument(
        "--skip-breach-check",
        action="store_true",
        help="Do not query the Pwned Passwords service (offline setups)",
    )
    p_create.set_defaults(handler=create_user)

    p_history = sub.add_parser("history", help="Show when each of a user's passwords was active")
    p_history.add_argument("username")
    p_history.set_defaults(handler=history)

    args = parser.parse_args(argv)
    store = UserStore()
    try:
        return args.handler(store, args)
    except RecordsError as exc:
        print(f"  [!] {exc.message}")
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
