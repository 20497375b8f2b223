import asyncio

from cityshare.ws_manager import UserWSManager


class FakeSocket:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def send_json(self, payload):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(payload)


def test_push_to_registered_user():
    async def scenario():
        mgr = UserWSManager()
        ws = FakeSocket()
        assert await mgr.register("u1", ws) is None
        assert await mgr.is_connected("u1")
        assert await mgr.push("u1", {"type": "message", "data": {"id": "m1"}})
        return ws

    ws = asyncio.run(scenario())
    assert ws.sent == [{"type": "message", "data": {"id": "m1"}}]


def test_push_to_offline_user_is_noop():
    async def scenario():
        mgr = UserWSManager()
        return await mgr.push("nobody", {"type": "message", "data": {}})

    assert asyncio.run(scenario()) is False


def test_newer_registration_replaces_older():
    async def scenario():
        mgr = UserWSManager()
        old, new = FakeSocket(), FakeSocket()
        await mgr.register("u1", old)
        replaced = await mgr.register("u1", new)
        await mgr.push("u1", {"n": 1})
        # The stale socket disconnecting must not evict the new one
        removed = await mgr.unregister("u1", old)
        still = await mgr.is_connected("u1")
        return replaced, removed, still, old, new

    replaced, removed, still, old, new = asyncio.run(scenario())
    assert replaced is old
    assert removed is False
    assert still is True
    assert old.sent == []
    assert new.sent == [{"n": 1}]


def test_failed_push_drops_mapping():
    async def scenario():
        mgr = UserWSManager()
        await mgr.register("u1", FakeSocket(fail=True))
        delivered = await mgr.push("u1", {"n": 1})
        return delivered, await mgr.is_connected("u1")

    assert asyncio.run(scenario()) == (False, False)


def test_unregister_current_socket():
    async def scenario():
        mgr = UserWSManager()
        ws = FakeSocket()
        await mgr.register("u1", ws)
        removed = await mgr.unregister("u1", ws)
        return removed, await mgr.is_connected("u1")

    assert asyncio.run(scenario()) == (True, False)
