from fastapi.testclient import TestClient

from cityshare.main import app


def _login(username: str, password: str) -> TestClient:
    c = TestClient(app)
    r = c.post("/api/register", json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    c.cookies.clear()
    r = c.post("/api/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return c


def test_lending_walkthrough():
    alice = _login("alice", "pw1")
    bob = _login("bob", "pw2")

    r = alice.post(
        "/api/items",
        json={"title": "Drill", "description": "Cordless", "category": "tools", "location": "Springfield"},
    )
    assert r.status_code == 200, r.text
    item = r.json()
    assert item["id"]
    assert item["status"] == "available"

    r = alice.get("/api/items/my-items")
    assert [i["id"] for i in r.json()] == [item["id"]]

    r = bob.post("/api/bookings", json={"itemId": item["id"], "pickupDate": "2025-06-01", "returnDate": "2025-05-30"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "invalid_date_range"

    alice_id = alice.get("/api/auth/user").json()["id"]
    bob_id = bob.get("/api/auth/user").json()["id"]
    assert bob.post("/api/messages", json={"receiverId": alice_id, "content": "Can I borrow the drill?"}).status_code == 200
    assert alice.post("/api/messages", json={"receiverId": bob_id, "content": "Sure, Saturday works"}).status_code == 200

    for c in (alice, bob):
        convs = c.get("/api/conversations").json()
        assert len(convs) == 1
        assert convs[0]["lastMessage"]["content"] == "Sure, Saturday works"
