"""
tests/test_cli.py -- Account administration CLI (main.py).

The handlers are called directly with an in-memory UserStore; getpass and
the breach check are monkeypatched so nothing prompts or hits the network.
"""

from __future__ import annotations

import argparse

import pytest

import main as cli
from auth.passwords import verify
from auth.store import UserStore


def _args(username: str, **overrides) -> argparse.Namespace:
    values = {"username": username, "email": None, "name": None, "admin": False, "skip_breach_check": True}
    values.update(overrides)
    return argparse.Namespace(**values)


@pytest.fixture
def typed_password(monkeypatch: pytest.MonkeyPatch):
    def set_password(value: str) -> None:
        monkeypatch.setattr(cli.getpass, "getpass", lambda prompt="": value)

    return set_password


def test_create_user_records_first_password(user_store: UserStore, typed_password, capsys) -> None:
    typed_password("tank-keeper-1")
    assert cli.create_user(user_store, _args("keeper", admin=True)) == 0

    user = user_store.get_by_username("keeper")
    assert user.roles == ["admin", "user"]
    assert verify(user_store, user.id, "tank-keeper-1")
    assert len(user_store.passwords.list_history(user.id)) == 1
    assert "Breach check skipped" in capsys.readouterr().out


def test_create_user_rejects_pwned_password(user_store: UserStore, typed_password, monkeypatch) -> None:
    async def always_pwned(password: str) -> bool:
        return True

    monkeypatch.setattr(cli, "_is_pwned", always_pwned)
    typed_password("password123")
    assert cli.create_user(user_store, _args("careless", skip_breach_check=False)) == 1
    assert user_store.get_by_username("careless") is None


def test_create_user_rejects_invalid_username(user_store: UserStore, capsys) -> None:
    assert cli.create_user(user_store, _args("no spaces allowed")) == 1
    assert "username" in capsys.readouterr().out


def test_create_user_rejects_duplicate(user_store: UserStore, typed_password) -> None:
    typed_password("tank-keeper-1")
    cli.create_user(user_store, _args("twice"))
    assert cli.create_user(user_store, _args("twice")) == 1


def test_history_lists_windows(user_store: UserStore, typed_password, capsys) -> None:
    typed_password("tank-keeper-1")
    cli.create_user(user_store, _args("historian"))
    user = user_store.get_by_username("historian")
    user_store.replace_password(user.id, "second-hash")
    capsys.readouterr()

    assert cli.history(user_store, _args("historian")) == 0
    out = capsys.readouterr().out
    assert out.count("->") == 2
    assert "current" in out


def test_history_unknown_user(user_store: UserStore) -> None:
    assert cli.history(user_store, _args("nobody")) == 1
