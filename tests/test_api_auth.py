"""
tests/test_api_auth.py -- Integration tests for /api/v1/auth routes.

Fixtures used (from conftest.py):
  - api: ApiHarness with "testadmin" and "alice" already created.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from auth.tokens import decode_access_token
from core.config import get_settings

USER_PASSWORD = "user-pass-123"


class TestTokenEndpoint:
    """POST /api/v1/auth/token"""

    def test_valid_credentials_return_token(self, api) -> None:
        resp = api.client.post("/api/v1/auth/token", json={"username": "alice", "password": USER_PASSWORD})
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        assert resp.headers["Cache-Control"] == "no-store"

        data = resp.json()
        payload = decode_access_token(data["token"], get_settings().secret_key)
        assert payload is not None
        assert payload["user_id"] == api.user_id
        assert payload["roles"] == ["user"]

        expiration = datetime.fromisoformat(data["expiration"].replace("Z", "+00:00"))
        expected = datetime.now(timezone.utc) + timedelta(minutes=get_settings().token_duration_minutes)
        assert abs(expiration - expected) < timedelta(seconds=30)

    def test_login_stamps_last_login(self, api) -> None:
        api.client.post("/api/v1/auth/token", json={"username": "alice", "password": USER_PASSWORD})
        assert api.user_store.get_by_id(api.user_id).last_login is not None

    def test_wrong_password_and_unknown_user_are_identical(self, api) -> None:
        wrong = api.client.post("/api/v1/auth/token", json={"username": "alice", "password": "nope"})
        unknown = api.client.post("/api/v1/auth/token", json={"username": "ghost", "password": "nope"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.headers["Cache-Control"] == "no-store"

    def test_missing_fields_are_422(self, api) -> None:
        resp = api.client.post("/api/v1/auth/token", json={"username": "alice"})
        assert resp.status_code == 422
        assert resp.json()["error"]["failures"][0]["field"] == "password"


class TestMe:
    def test_me_returns_identity(self, api) -> None:
        resp = api.client.get("/api/v1/auth/me", headers=api.admin_headers)
        assert resp.status_code == 200, resp.text
        assert resp.json() == {"user_id": api.admin_id, "username": "testadmin", "roles": ["admin", "user"]}

    def test_me_requires_token(self, api) -> None:
        resp = api.client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_tampered_token_rejected(self, api) -> None:
        resp = api.client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {api.user_token}x"})
        assert resp.status_code == 401
