"""
Live API tests, run by ``wp test test`` against a server started with .env.test.
"""

import os

import httpx
import pytest

BASE_URL = os.environ.get("WAYPOINT_BASE_URL")

pytestmark = pytest.mark.skipif(not BASE_URL, reason="WAYPOINT_BASE_URL not set (run through `wp test`)")


@pytest.fixture
def client():
    with httpx.Client(base_url=BASE_URL, timeout=10.0) as client:
        yield client


class TestPublic:

    def test_hello(self, client):
        response = client.get("/Public/v1.0/test")
        assert response.status_code == 200
        assert response.json() == {"ok": True, "message": "hello world"}

    def test_disabled_route_is_not_served(self, client):
        response = client.get("/Public/v1.0/legacy")
        assert response.status_code == 404


class TestUserCrud:

    def test_create_read_delete(self, client):
        created = client.post("/User/v1.0/", json={
            "name": "  Ada  ", "email": "ada.live@example.com", "password": "secret1",
        })
        assert created.status_code == 201
        user = created.json()["data"]
        assert user["name"] == "Ada"

        fetched = client.get(f"/User/v1.0/{user['_id']}")
        assert fetched.status_code == 200
        assert fetched.json()["data"]["email"] == "ada.live@example.com"

        deleted = client.delete(f"/User/v1.0/{user['_id']}")
        assert deleted.json() == {"success": True, "message": "Item deleted successfully"}

    def test_validation_envelope(self, client):
        response = client.post("/User/v1.0/", json={"email": "nope"})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Validation failed"
