import uuid

from fastapi.testclient import TestClient

from cityshare.auth import hash_password, verify_password
from cityshare.database import session_scope
from cityshare.main import app
from cityshare.models import User
from conftest import register


client = TestClient(app)


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json().get("status") == "ok"
    assert r.headers.get("X-Request-ID")


def test_metrics_exposed():
    client.get("/health")
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "http_requests_total" in r.text


def test_register_login_logout_with_cookie():
    c = TestClient(app)
    username = f"alice-{uuid.uuid4().hex[:8]}"
    r = c.post("/api/register", json={"username": username, "password": "pw1"})
    assert r.status_code == 200, r.text
    user = r.json()
    assert user["username"] == username
    assert "password" not in user and "passwordHash" not in user
    assert user["itemsListed"] == 0

    r = c.get("/api/auth/user")
    assert r.status_code == 200, r.text
    assert r.json()["id"] == user["id"]

    r = c.post("/api/logout")
    assert r.status_code == 200
    assert r.json() == {"success": True}
    c.cookies.clear()
    r = c.get("/api/auth/user")
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "unauthorized"

    r = c.post("/api/login", json={"username": username, "password": "pw1"})
    assert r.status_code == 200, r.text
    assert r.json()["id"] == user["id"]
    assert c.get("/api/auth/user").status_code == 200


def test_logged_out_token_is_rejected():
    headers, _ = register(client, "bob")
    assert client.get("/api/auth/user", headers=headers).status_code == 200
    r = client.post("/api/logout", headers=headers)
    assert r.status_code == 200
    assert client.get("/api/auth/user", headers=headers).status_code == 401


def test_login_aliases_and_bad_credentials():
    _, user = register(client, "carol")
    r = client.post("/api/auth/login", json={"username": user["username"], "password": "pw1"})
    assert r.status_code == 200, r.text
    client.cookies.clear()

    r = client.post("/api/login", json={"username": user["username"], "password": "wrong"})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "invalid_credentials"
    r = client.post("/api/login", json={"username": "nobody-" + uuid.uuid4().hex, "password": "pw1"})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "invalid_credentials"


def test_duplicate_username():
    _, user = register(client, "dave")
    r = client.post("/api/auth/register", json={"username": user["username"], "password": "other"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "username_taken"


def test_register_requires_fields():
    r = client.post("/api/register", json={"username": "   ", "password": "pw"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "validation_error"
    r = client.post("/api/register", json={"username": "x"})
    assert r.status_code == 400
    body = r.json()["error"]
    assert body["code"] == "validation_error"
    assert isinstance(body["details"], list)


def test_password_is_stored_hashed():
    _, user = register(client, "erin", password="s3cret")
    with session_scope() as db:
        row = db.get(User, uuid.UUID(user["id"]))
        assert row.password_hash != "s3cret"
        assert verify_password("s3cret", row.password_hash)
        assert not verify_password("nope", row.password_hash)


def test_verify_password_rejects_unknown_hash():
    assert verify_password("pw", hash_password("pw"))
    assert not verify_password("pw", "plaintext")
    assert not verify_password("pw", None)


def test_protected_endpoints_require_session():
    for method, path in [
        ("get", "/api/items/my-items"),
        ("post", "/api/items"),
        ("get", "/api/bookings"),
        ("get", "/api/conversations"),
        ("get", "/api/wishlist"),
        ("get", "/api/impact/stats"),
    ]:
        r = getattr(client, method)(path)
        assert r.status_code == 401, path
        assert r.json()["error"]["code"] == "unauthorized"


def test_update_profile_and_public_profile():
    headers, user = register(client, "frank")
    r = client.patch(
        "/api/auth/user",
        headers=headers,
        json={"firstName": "Frank", "bio": "Weekend woodworker", "location": "Riverside"},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["firstName"] == "Frank"
    assert body["bio"] == "Weekend woodworker"

    r = client.get(f"/api/users/{user['id']}")
    assert r.status_code == 200
    public = r.json()
    assert public["firstName"] == "Frank"
    assert "email" not in public

    r = client.get(f"/api/users/{uuid.uuid4()}")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "user_not_found"


def test_unknown_route_uses_error_envelope():
    r = client.get("/api/does-not-exist")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"
