"""
tests/test_api_aquariums.py -- Integration tests for /api/v1/aquariums routes.

Coverage:
  - auth required on every route
  - create 201 + ETag, list, detail 200 + ETag
  - If-Match round trip: current tag succeeds with a new tag, stale tag 412
  - aquariums owned by another user are 404
  - rule failures are 422 with per-field failures
  - non-finite numbers in a raw JSON body are 422, never stored
  - delete honors If-Match and removes the aquarium
"""

from __future__ import annotations

import pytest

REEF = {"name": "Reef", "type": "marine", "volume": 200, "volume_unit": "litres"}


def _create(api, headers=None, **overrides):
    resp = api.client.post("/api/v1/aquariums", json={**REEF, **overrides}, headers=headers or api.user_headers)
    assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
    return resp


class TestAuthRequired:
    @pytest.mark.parametrize(
        "method,path",
        [("get", "/api/v1/aquariums"), ("post", "/api/v1/aquariums"), ("get", "/api/v1/aquariums/1")],
    )
    def test_unauthenticated_is_401(self, api, method: str, path: str) -> None:
        resp = getattr(api.client, method)(path)
        assert resp.status_code == 401, f"Expected 401, got {resp.status_code}"


class TestCrud:
    def test_create_sets_etag_and_location(self, api) -> None:
        resp = _create(api, length=120, width=50, height=60, dimension_unit="cm")
        data = resp.json()
        assert resp.headers["ETag"]
        assert resp.headers["Location"] == f"/api/v1/aquariums/{data['id']}"
        assert data["dimension_unit"] == "cm"

    def test_list_only_own_aquariums(self, api) -> None:
        _create(api, name="Alice tank")
        _create(api, headers=api.admin_headers, name="Admin tank")
        names = [a["name"] for a in api.client.get("/api/v1/aquariums", headers=api.user_headers).json()]
        assert "Alice tank" in names
        assert "Admin tank" not in names

    def test_detail_etag_matches_create_etag(self, api) -> None:
        created = _create(api)
        detail = api.client.get(f"/api/v1/aquariums/{created.json()['id']}", headers=api.user_headers)
        assert detail.status_code == 200
        assert detail.headers["ETag"] == created.headers["ETag"]

    def test_other_users_aquarium_is_404(self, api) -> None:
        admin_tank = _create(api, headers=api.admin_headers, name="Private").json()["id"]
        resp = api.client.get(f"/api/v1/aquariums/{admin_tank}", headers=api.user_headers)
        assert resp.status_code == 404
        resp = api.client.put(f"/api/v1/aquariums/{admin_tank}", json=REEF, headers=api.user_headers)
        assert resp.status_code == 404

    def test_validation_failures_are_422(self, api) -> None:
        resp = api.client.post(
            "/api/v1/aquariums",
            json={**REEF, "type": "lake", "volume": -5, "length": 10},
            headers=api.user_headers,
        )
        assert resp.status_code == 422
        error = resp.json()["error"]
        assert error["code"] == "validation_error"
        assert {f["field"] for f in error["failures"]} == {"type", "volume", "dimension_unit"}

    def test_infinite_volume_is_422(self, api) -> None:
        headers = {**api.user_headers, "Content-Type": "application/json"}
        body = '{"name": "Endless", "type": "marine", "volume": Infinity}'
        resp = api.client.post("/api/v1/aquariums", content=body, headers=headers)
        assert resp.status_code == 422, resp.text
        assert [f["field"] for f in resp.json()["error"]["failures"]] == ["volume"]

    def test_malformed_body_is_422(self, api) -> None:
        resp = api.client.post("/api/v1/aquariums", json={"name": "No volume"}, headers=api.user_headers)
        assert resp.status_code == 422
        assert resp.json()["error"]["failures"]


class TestOptimisticConcurrency:
    """ETag / If-Match round trips on PUT and DELETE."""

    def test_update_with_current_tag_then_stale_tag(self, api) -> None:
        created = _create(api, name="Versioned")
        url = f"/api/v1/aquariums/{created.json()['id']}"
        tag = created.headers["ETag"]

        first = api.client.put(url, json={**REEF, "name": "Renamed"}, headers={**api.user_headers, "If-Match": tag})
        assert first.status_code == 200, first.text
        new_tag = first.headers["ETag"]
        assert new_tag != tag

        second = api.client.put(url, json={**REEF, "name": "Lost"}, headers={**api.user_headers, "If-Match": tag})
        assert second.status_code == 412
        assert api.client.get(url, headers=api.user_headers).json()["name"] == "Renamed"

    def test_update_without_tag_succeeds(self, api) -> None:
        created = _create(api)
        url = f"/api/v1/aquariums/{created.json()['id']}"
        resp = api.client.put(url, json={**REEF, "notes": "no tag"}, headers=api.user_headers)
        assert resp.status_code == 200
        assert resp.headers["ETag"] != created.headers["ETag"]

    def test_garbage_tag_is_412(self, api) -> None:
        created = _create(api)
        url = f"/api/v1/aquariums/{created.json()['id']}"
        resp = api.client.put(url, json=REEF, headers={**api.user_headers, "If-Match": "not-a-tag!"})
        assert resp.status_code == 412

    def test_invalid_update_keeps_version(self, api) -> None:
        created = _create(api)
        url = f"/api/v1/aquariums/{created.json()['id']}"
        resp = api.client.put(url, json={**REEF, "volume": 0}, headers=api.user_headers)
        assert resp.status_code == 422
        assert api.client.get(url, headers=api.user_headers).headers["ETag"] == created.headers["ETag"]

    def test_delete_with_stale_tag_then_current_tag(self, api) -> None:
        created = _create(api)
        url = f"/api/v1/aquariums/{created.json()['id']}"
        stale = created.headers["ETag"]
        current = api.client.put(url, json={**REEF, "name": "Bumped"}, headers=api.user_headers).headers["ETag"]

        resp = api.client.delete(url, headers={**api.user_headers, "If-Match": stale})
        assert resp.status_code == 412

        resp = api.client.delete(url, headers={**api.user_headers, "If-Match": current})
        assert resp.status_code == 204
        assert api.client.get(url, headers=api.user_headers).status_code == 404

    def test_delete_missing_is_404(self, api) -> None:
        resp = api.client.delete("/api/v1/aquariums/987654", headers=api.user_headers)
        assert resp.status_code == 404
