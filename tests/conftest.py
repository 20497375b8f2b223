import os
import tempfile
import uuid

# Must run before cityshare.config is imported
_db_dir = tempfile.mkdtemp(prefix="cityshare-tests-")
os.environ["ENV"] = "dev"
os.environ["DB_URL"] = f"sqlite:///{os.path.join(_db_dir, 'cityshare.db')}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("WS_REQUIRE_SESSION", "true")

from fastapi.testclient import TestClient  # noqa: E402

from cityshare.main import app  # noqa: E402,F401


def register(client: TestClient, name: str = "user", password: str = "pw1"):
    """Register a fresh user; returns (bearer headers, user json).

    The client's cookie jar is cleared so one client can act as several users.
    """
    username = f"{name}-{uuid.uuid4().hex[:8]}"
    r = client.post("/api/register", json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    token = r.cookies.get("cityshare_sid")
    assert token
    client.cookies.clear()
    return {"Authorization": f"Bearer {token}"}, r.json()


def create_item(client: TestClient, headers: dict, **overrides):
    body = {
        "title": "Drill",
        "description": "Cordless drill with two batteries",
        "category": "tools",
        "location": "Downtown",
        "images": [],
    }
    body.update(overrides)
    r = client.post("/api/items", headers=headers, json=body)
    assert r.status_code == 200, r.text
    return r.json()


def completed_booking(client: TestClient, owner_h: dict, borrower_h: dict, item_id: str):
    r = client.post(
        "/api/bookings",
        headers=borrower_h,
        json={"itemId": item_id, "pickupDate": "2025-06-01", "returnDate": "2025-06-03"},
    )
    assert r.status_code == 200, r.text
    bid = r.json()["id"]
    for status in ("accepted", "completed"):
        r = client.patch(f"/api/bookings/{bid}/status", headers=owner_h, json={"status": status})
        assert r.status_code == 200, r.text
    return r.json()

