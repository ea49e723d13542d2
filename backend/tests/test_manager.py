"""Tests for the ConnectionManager registry and group broadcasts."""
import pytest

from app.chat.manager import ConnectionManager, room_group, user_group


class FakeSocket:
    def __init__(self, fail: bool = False, fail_close: bool = False):
        self.sent = []
        self.fail = fail
        self.fail_close = fail_close
        self.close_code = None

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(data)

    async def close(self, code: int = 1000):
        if self.fail_close:
            raise RuntimeError("already closed")
        self.close_code = code


@pytest.fixture
def mgr():
    return ConnectionManager()


def test_register_joins_personal_group(mgr):
    info = mgr.register(FakeSocket(), "u1")
    assert mgr.group_members(user_group("u1")) == [info.connection_id]
    assert mgr.user_connection_count("u1") == 1


def test_multiple_devices_share_personal_group(mgr):
    mgr.register(FakeSocket(), "u1")
    mgr.register(FakeSocket(), "u1")
    assert mgr.user_connection_count("u1") == 2


def test_unregister_leaves_every_group(mgr):
    info = mgr.register(FakeSocket(), "u1")
    mgr.join_room(info.connection_id, "r1")
    mgr.join_room(info.connection_id, "r2")

    removed = mgr.unregister(info.connection_id)

    assert removed is info
    assert mgr.groups == {}
    assert mgr.unregister(info.connection_id) is None


def test_join_unknown_connection(mgr):
    assert mgr.join_room("missing", "r1") is False
    assert mgr.room_connection_count("r1") == 0


def test_leave_room_is_always_safe(mgr):
    info = mgr.register(FakeSocket(), "u1")
    mgr.leave_room(info.connection_id, "never-joined")
    mgr.join_room(info.connection_id, "r1")
    mgr.leave_room(info.connection_id, "r1")
    assert room_group("r1") not in mgr.groups
    assert info.rooms == set()


def test_remove_user_from_room_detaches_all_devices(mgr):
    phone = mgr.register(FakeSocket(), "u1")
    laptop = mgr.register(FakeSocket(), "u1")
    other = mgr.register(FakeSocket(), "u2")
    for info in (phone, laptop, other):
        mgr.join_room(info.connection_id, "r1")

    assert mgr.remove_user_from_room("u1", "r1") == 2
    assert mgr.group_members(room_group("r1")) == [other.connection_id]


@pytest.mark.asyncio
async def test_emit_to_room_with_exclude(mgr):
    a_sock, b_sock = FakeSocket(), FakeSocket()
    a = mgr.register(a_sock, "u1")
    b = mgr.register(b_sock, "u2")
    mgr.join_room(a.connection_id, "r1")
    mgr.join_room(b.connection_id, "r1")

    delivered = await mgr.emit_to_room("r1", "userTyping", {"isTyping": True}, exclude=a.connection_id)

    assert delivered == 1
    assert a_sock.sent == []
    assert b_sock.sent == [{"type": "userTyping", "isTyping": True}]


@pytest.mark.asyncio
async def test_emit_to_empty_group_is_noop(mgr):
    assert await mgr.emit_to_room("nobody-here", "newMessage", {}) == 0
    assert await mgr.emit_to_user("ghost", "newNotification", {}) == 0


@pytest.mark.asyncio
async def test_failed_delivery_prunes_connection(mgr):
    good = mgr.register(FakeSocket(), "u1")
    bad = mgr.register(FakeSocket(fail=True), "u1")

    delivered = await mgr.emit_to_user("u1", "roomUpdated", {"room": {}})

    assert delivered == 1
    assert bad.connection_id not in mgr.connections
    assert mgr.group_members(user_group("u1")) == [good.connection_id]
    # the pruned socket is closed so its receive loop ends
    assert bad.websocket.close_code == 1001
    assert good.websocket.close_code is None


@pytest.mark.asyncio
async def test_failed_reply_prunes_and_closes(mgr):
    info = mgr.register(FakeSocket(fail=True), "u1")
    mgr.join_room(info.connection_id, "r1")

    assert await mgr.emit(info.connection_id, "joinedRoom", {"roomId": "r1"}) is False

    assert mgr.connections == {}
    assert mgr.groups == {}
    assert info.websocket.close_code == 1001
    # later events for the pruned connection are dropped, not raised
    assert mgr.join_room(info.connection_id, "r2") is False
    assert await mgr.emit(info.connection_id, "error", {"message": "x"}) is False


@pytest.mark.asyncio
async def test_close_errors_are_swallowed(mgr):
    info = mgr.register(FakeSocket(fail=True, fail_close=True), "u1")

    assert await mgr.emit_to_user("u1", "roomUpdated", {}) == 0
    assert info.connection_id not in mgr.connections


@pytest.mark.asyncio
async def test_emit_single_connection(mgr):
    sock = FakeSocket()
    info = mgr.register(sock, "u1")
    assert await mgr.emit(info.connection_id, "connected", {"userId": "u1"}) is True
    assert sock.sent == [{"type": "connected", "userId": "u1"}]
    assert await mgr.emit("missing", "connected", {}) is False
