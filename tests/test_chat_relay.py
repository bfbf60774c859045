"""
Unit tests for the chat relay, independent of Flask
"""

import json
from datetime import datetime, timezone

import pytest

from lunaexecutor.errors import StorageError
from lunaexecutor.relay import ChatRelay, ConnectionManager, Principal


class FakeMessage:
    def __init__(self, id, user_id, content, timestamp, is_admin):
        self.id = id
        self.user_id = user_id
        self.content = content
        self.timestamp = timestamp
        self.is_admin = is_admin

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "isAdmin": self.is_admin,
        }


class FakeUser:
    def __init__(self, id, is_admin=False):
        self.id = id
        self.is_admin = is_admin


class FakeRepository:
    def __init__(self, fail=False):
        self.saved = []
        self.fail = fail
        self.users = {1: FakeUser(1), 2: FakeUser(2, is_admin=True), 3: FakeUser(3)}

    def get_user(self, user_id):
        return self.users.get(user_id)

    def save_chat_message(self, user_id, content, timestamp, is_admin):
        if self.fail:
            raise StorageError("Could not save chat message.")
        message = FakeMessage(len(self.saved) + 1, user_id, content, timestamp, is_admin)
        self.saved.append(message)
        return message


class FakeSocketIO:
    def __init__(self, broken=()):
        self.sent = []
        self.broken = set(broken)
        self.closed = []
        self.server = self

    def send(self, data, to=None, namespace=None):
        if to in self.broken:
            raise ConnectionError("socket closed")
        self.sent.append((to, json.loads(data)))

    def disconnect(self, sid, namespace=None):
        self.closed.append((sid, namespace))


@pytest.fixture
def relay():
    relay = ChatRelay(FakeSocketIO(), FakeRepository(), max_length=20)
    relay.connect("sid-a", Principal(user_id=1, username="alice"))
    relay.connect("sid-b", Principal(user_id=2, username="bob"))
    return relay


def test_receive_persists_then_broadcasts_to_everyone(relay):
    """Test the stored row is sent to every connection, sender included"""
    message = relay.receive(
        "sid-a", json.dumps({"userId": 1, "content": "hi", "isAdmin": False})
    )

    assert message is not None
    assert len(relay.repository.saved) == 1
    recipients = [sid for sid, _ in relay.socketio.sent]
    assert sorted(recipients) == ["sid-a", "sid-b"]
    for _, frame in relay.socketio.sent:
        assert frame == message.to_dict()
        assert frame["content"] == "hi"


def test_identity_comes_from_connection_not_payload(relay):
    """Test spoofed userId/isAdmin fields are ignored"""
    message = relay.receive(
        "sid-a", json.dumps({"userId": 2, "content": "I am bob", "isAdmin": True})
    )

    assert message.user_id == 1
    assert message.is_admin is False


def test_admin_flag_copied_from_sender(relay):
    """Test an admin principal produces admin messages even without the field"""
    message = relay.receive("sid-b", json.dumps({"content": "How can I help?"}))

    assert message.user_id == 2
    assert message.is_admin is True


def test_admin_flag_read_at_send_time(relay):
    """Test admin changes on an open connection apply to the next message"""
    relay.repository.users[2].is_admin = False
    revoked = relay.receive("sid-b", json.dumps({"content": "after revoke"}))

    relay.repository.users[1].is_admin = True
    promoted = relay.receive("sid-a", json.dumps({"content": "after promote"}))

    assert revoked.is_admin is False
    assert promoted.is_admin is True


def test_missing_author_drops_message(relay):
    """Test a connection whose user no longer exists cannot post"""
    del relay.repository.users[1]

    assert relay.receive("sid-a", json.dumps({"content": "ghost"})) is None
    assert relay.repository.saved == []
    assert relay.socketio.sent == []


def test_anonymous_sender_is_never_admin():
    """Test anonymous connections skip the author lookup"""
    relay = ChatRelay(FakeSocketIO(), FakeRepository())
    relay.connect("sid-x", Principal.anonymous())

    message = relay.receive("sid-x", json.dumps({"content": "guest", "isAdmin": True}))

    assert message.user_id is None
    assert message.is_admin is False


def test_disconnect_user_closes_only_their_sockets(relay):
    """Test every socket bound to a user is closed and unregistered"""
    relay.connect("sid-a2", Principal(user_id=1, username="alice"))

    relay.disconnect_user(1)

    assert sorted(sid for sid, _ in relay.socketio.closed) == ["sid-a", "sid-a2"]
    assert relay.connections.sids() == ["sid-b"]
    assert relay.receive("sid-a", json.dumps({"content": "still me?"})) is None


def test_timestamp_is_assigned_by_server(relay):
    """Test a client-supplied timestamp never reaches storage"""
    before = datetime.now(timezone.utc)
    message = relay.receive(
        "sid-a",
        json.dumps({"content": "hello", "timestamp": "1999-01-01T00:00:00+00:00"}),
    )

    assert message.timestamp >= before


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        "[1, 2, 3]",
        json.dumps({"userId": 1}),
        json.dumps({"content": 42}),
        json.dumps({"content": "   "}),
        json.dumps({"content": "x" * 21}),
        b"\xff\xfe",
    ],
)
def test_malformed_frames_are_dropped(relay, raw):
    """Test unusable frames are neither stored nor broadcast"""
    assert relay.receive("sid-a", raw) is None
    assert relay.repository.saved == []
    assert relay.socketio.sent == []
    assert "sid-a" in relay.connections


def test_dict_frames_are_accepted(relay):
    """Test an already-decoded JSON object is handled like text"""
    message = relay.receive("sid-a", {"content": "  padded  "})

    assert message.content == "padded"


def test_storage_failure_drops_message():
    """Test nothing is broadcast when the repository write fails"""
    relay = ChatRelay(FakeSocketIO(), FakeRepository(fail=True))
    relay.connect("sid-a", Principal(user_id=1, username="alice"))

    assert relay.receive("sid-a", json.dumps({"content": "lost"})) is None
    assert relay.socketio.sent == []
    assert "sid-a" in relay.connections


def test_unregistered_connection_is_ignored(relay):
    """Test frames from an unknown sid are not persisted"""
    assert relay.receive("sid-unknown", json.dumps({"content": "hi"})) is None
    assert relay.repository.saved == []


def test_failed_send_prunes_only_that_connection():
    """Test a broken socket is removed while the others still receive"""
    relay = ChatRelay(FakeSocketIO(broken={"sid-b"}), FakeRepository())
    relay.connect("sid-a", Principal(user_id=1, username="alice"))
    relay.connect("sid-b", Principal(user_id=2, username="bob"))
    relay.connect("sid-c", Principal(user_id=3, username="carol"))

    relay.receive("sid-a", json.dumps({"content": "hi"}))

    assert sorted(sid for sid, _ in relay.socketio.sent) == ["sid-a", "sid-c"]
    assert "sid-b" not in relay.connections
    assert len(relay.connections) == 2


def test_sender_disconnect_after_persist_still_broadcasts(relay):
    """Test the message reaches remaining connections if the sender is gone"""

    class DisconnectingRepository(FakeRepository):
        def save_chat_message(self, **kwargs):
            relay.disconnect("sid-a")
            return super().save_chat_message(**kwargs)

    relay.repository = DisconnectingRepository()
    message = relay.receive("sid-a", json.dumps({"content": "bye"}))

    assert message is not None
    assert [sid for sid, _ in relay.socketio.sent] == ["sid-b"]


def test_connection_manager_add_remove():
    """Test registry bookkeeping"""
    manager = ConnectionManager()
    manager.add("s1", Principal.anonymous())
    manager.add("s2", Principal(user_id=5, username="eve"))

    assert len(manager) == 2
    assert manager.get("s2").user_id == 5
    assert manager.remove("s1").user_id is None
    assert manager.remove("s1") is None
    assert manager.sids() == ["s2"]
