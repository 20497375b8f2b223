import asyncio
import time
import uuid

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from cityshare.database import session_scope
from cityshare.main import app
from cityshare.models import Message
from cityshare.utils.ids import conversation_id_for, conversation_participants
from cityshare.ws_manager import ws_manager
from conftest import create_item, register


client = TestClient(app)


def _send(headers, receiver_id, content, **extra):
    return client.post("/api/messages", headers=headers, json={"receiverId": receiver_id, "content": content, **extra})


def test_conversation_id_is_symmetric():
    a, b = uuid.uuid4(), uuid.uuid4()
    assert conversation_id_for(a, b) == conversation_id_for(b, a)
    assert conversation_id_for(str(a), b) == conversation_id_for(a, str(b))
    assert set(conversation_participants(conversation_id_for(a, b))) == {a, b}
    assert conversation_participants("nope") is None
    assert conversation_participants("x:y") is None


def test_send_and_read_conversation():
    ha, alice = register(client, "alice")
    hb, bob = register(client, "bob")
    item = create_item(client, ha)

    r = _send(hb, alice["id"], "Is the drill free this weekend?", itemId=item["id"])
    assert r.status_code == 200, r.text
    first = r.json()
    assert first["conversationId"] == conversation_id_for(alice["id"], bob["id"])
    assert first["isRead"] is False
    assert first["itemId"] == item["id"]

    r = _send(ha, bob["id"], "  Yes, pick it up Saturday  ", conversationId=first["conversationId"])
    assert r.status_code == 200, r.text
    assert r.json()["content"] == "Yes, pick it up Saturday"

    r = client.get(f"/api/messages/{first['conversationId']}", headers=ha)
    assert r.status_code == 200
    history = r.json()
    assert [m["content"] for m in history] == ["Is the drill free this weekend?", "Yes, pick it up Saturday"]
    assert history[0]["sender"]["username"] == bob["username"]

    outsider_h, _ = register(client, "eve")
    r = client.get(f"/api/messages/{first['conversationId']}", headers=outsider_h)
    assert r.status_code == 403
    assert client.get("/api/messages/garbage", headers=ha).status_code == 404


def test_conversations_unread_and_mark_read():
    ha, alice = register(client, "alice")
    hb, bob = register(client, "bob")
    hc, carol = register(client, "carol")

    _send(hb, alice["id"], "hi from bob")
    m2 = _send(hb, alice["id"], "still there?").json()
    _send(hc, alice["id"], "hi from carol")

    r = client.get("/api/conversations", headers=ha)
    assert r.status_code == 200
    convs = r.json()
    assert [c["otherUserId"] for c in convs] == [carol["id"], bob["id"]]
    assert convs[1]["lastMessage"]["content"] == "still there?"
    assert convs[1]["unreadCount"] == 2
    assert convs[1]["otherUser"]["username"] == bob["username"]

    # Only the receiver may mark a message read
    assert client.patch(f"/api/messages/{m2['id']}/read", headers=hb).status_code == 403
    r = client.patch(f"/api/messages/{m2['id']}/read", headers=ha)
    assert r.status_code == 200
    assert r.json()["isRead"] is True
    assert client.patch(f"/api/messages/{m2['id']}/read", headers=ha).status_code == 200

    convs = client.get("/api/conversations", headers=ha).json()
    assert convs[1]["unreadCount"] == 1
    # Messages bob sent are never unread for bob
    assert client.get("/api/conversations", headers=hb).json()[0]["unreadCount"] == 0


def test_send_message_validation():
    ha, alice = register(client, "alice")
    hb, bob = register(client, "bob")
    _, carol = register(client, "carol")

    r = _send(ha, alice["id"], "talking to myself")
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "self_message"

    r = _send(ha, bob["id"], "   ")
    assert r.status_code == 400

    r = _send(ha, str(uuid.uuid4()), "hello?")
    assert r.status_code == 404

    r = _send(ha, bob["id"], "hi", conversationId=conversation_id_for(alice["id"], carol["id"]))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "conversation_mismatch"


def _wait_registered(c: TestClient, user_id: str) -> None:
    for _ in range(100):
        if c.portal.call(ws_manager.is_connected, user_id):
            return
        time.sleep(0.01)
    raise AssertionError(f"user {user_id} never registered")


def test_ws_receives_pushed_message():
    with TestClient(app) as c:
        ha, alice = register(c, "alice")
        hb, bob = register(c, "bob")
        with c.websocket_connect("/ws", headers=hb) as ws:
            ws.send_json({"type": "hello"})
            ws.send_text("not json")
            ws.send_json({"type": "auth", "userId": bob["id"]})
            _wait_registered(c, bob["id"])

            r = c.post("/api/messages", headers=ha, json={"receiverId": bob["id"], "content": "Drill is ready"})
            assert r.status_code == 200, r.text
            frame = ws.receive_json()
            assert frame["type"] == "message"
            assert frame["data"]["id"] == r.json()["id"]
            assert frame["data"]["content"] == "Drill is ready"
            assert frame["data"]["senderId"] == alice["id"]
        for _ in range(100):
            if not c.portal.call(ws_manager.is_connected, bob["id"]):
                break
            time.sleep(0.01)
        assert not c.portal.call(ws_manager.is_connected, bob["id"])


def test_message_to_offline_user_still_succeeds():
    ha, _ = register(client, "alice")
    _, bob = register(client, "bob")
    r = _send(ha, bob["id"], "you there?")
    assert r.status_code == 200, r.text


def test_ws_without_session_is_closed():
    with TestClient(app) as c:
        with c.websocket_connect("/ws") as ws:
            ws.send_json({"type": "auth", "userId": str(uuid.uuid4())})
            with pytest.raises(WebSocketDisconnect) as exc:
                ws.receive_json()
            assert exc.value.code == 4401


def test_ws_identity_mismatch_is_closed():
    with TestClient(app) as c:
        _, alice = register(c, "alice")
        hb, _ = register(c, "bob")
        with c.websocket_connect("/ws", headers=hb) as ws:
            ws.send_json({"type": "auth", "userId": alice["id"]})
            with pytest.raises(WebSocketDisconnect) as exc:
                ws.receive_json()
            assert exc.value.code == 4403
        assert not c.portal.call(ws_manager.is_connected, alice["id"])


class RefetchingSocket:
    """Stands in for a client that refetches the thread as soon as a frame arrives."""

    def __init__(self):
        self.visible = []

    async def send_json(self, payload):
        with session_scope() as db:
            n = db.query(Message).filter(Message.id == uuid.UUID(payload["data"]["id"])).count()
        self.visible.append(n)


def test_pushed_message_is_already_committed():
    with TestClient(app) as c:
        ha, _ = register(c, "alice")
        _, bob = register(c, "bob")
        sock = RefetchingSocket()
        c.portal.call(ws_manager.register, bob["id"], sock)
        try:
            r = c.post("/api/messages", headers=ha, json={"receiverId": bob["id"], "content": "Committed before push"})
            assert r.status_code == 200, r.text
        finally:
            c.portal.call(ws_manager.unregister, bob["id"], sock)
        assert sock.visible == [1]


def test_ws_session_lookup_runs_off_the_event_loop(monkeypatch):
    from cityshare.routers import ws as ws_router

    seen = []
    original = ws_router._session_user_id

    def recording(token):
        try:
            asyncio.get_running_loop()
            seen.append("event-loop")
        except RuntimeError:
            seen.append("worker-thread")
        return original(token)

    monkeypatch.setattr(ws_router, "_session_user_id", recording)
    with TestClient(app) as c:
        hb, bob = register(c, "bob")
        with c.websocket_connect("/ws", headers=hb) as ws:
            ws.send_json({"type": "auth", "userId": bob["id"]})
            _wait_registered(c, bob["id"])
    assert seen == ["worker-thread"]
