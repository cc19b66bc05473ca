"""Room registry, join authorization and the /ws protocol of the bridge."""

import asyncio
import json
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from canteen import ws_bridge
from canteen.notifier import RoomFamily
from canteen.settings import settings
from canteen.tokens import create_access_token


class FakeSocket:
    def __init__(self, broken: bool = False):
        self.broken = broken
        self.sent: list[str] = []

    async def send_text(self, data: str) -> None:
        if self.broken:
            raise RuntimeError("connection closed")
        self.sent.append(data)


def _token(role: str) -> str:
    return create_access_token({"sub": role, "role": role}, expires_delta=timedelta(minutes=5))


@pytest.fixture(autouse=True)
def empty_registry():
    ws_bridge.registry.rooms.clear()
    yield
    ws_bridge.registry.rooms.clear()


@pytest.fixture
def known_orders(monkeypatch):
    orders = {"ORD20240115001"}

    async def fake_order_exists(order_id: str) -> bool:
        return order_id in orders

    monkeypatch.setattr(ws_bridge, "order_exists", fake_order_exists)
    return orders


@pytest.fixture
def bridge():
    return TestClient(ws_bridge.app)


# ============ REGISTRY ============

def test_broadcast_reaches_room_members_only():
    registry = ws_bridge.RoomRegistry()
    kitchen, student, other = FakeSocket(), FakeSocket(), FakeSocket()
    registry.join("kitchen", kitchen)
    registry.join("order:ORD20240115001", student)
    registry.join("order:ORD20240115002", other)

    delivered = asyncio.run(registry.broadcast("order:ORD20240115001", "hello"))

    assert delivered == 1
    assert student.sent == ["hello"]
    assert kitchen.sent == [] and other.sent == []


def test_broadcast_drops_dead_sockets():
    registry = ws_bridge.RoomRegistry()
    alive, dead = FakeSocket(), FakeSocket(broken=True)
    registry.join("kitchen", alive)
    registry.join("kitchen", dead)
    registry.join("admin", dead)

    delivered = asyncio.run(registry.broadcast("kitchen", "update"))

    assert delivered == 1
    assert registry.members("kitchen") == {alive}
    assert registry.members("admin") == set()


def test_leave_and_discard():
    registry = ws_bridge.RoomRegistry()
    socket = FakeSocket()
    registry.join("kitchen", socket)
    registry.join("order:ORD20240115001", socket)

    registry.leave("kitchen", socket)
    assert registry.count(RoomFamily.kitchen) == 0
    assert registry.count(RoomFamily.order) == 1

    registry.discard(socket)
    assert registry.count() == 0
    assert registry.rooms == {}


def test_room_family():
    assert ws_bridge.room_family("kitchen") is RoomFamily.kitchen
    assert ws_bridge.room_family("admin") is RoomFamily.admin
    assert ws_bridge.room_family("order:ORD20240115001") is RoomFamily.order
    assert ws_bridge.room_family("order:") is None
    assert ws_bridge.room_family("tables") is None


def test_dispatch_strips_channel_prefix():
    socket = FakeSocket()
    ws_bridge.registry.join("kitchen", socket)

    delivered = asyncio.run(ws_bridge.dispatch_message(f"{settings.redis_channel_prefix}kitchen", '{"x": 1}'))
    ignored = asyncio.run(ws_bridge.dispatch_message("orders:tenant:1", '{"x": 2}'))

    assert delivered == 1
    assert ignored == 0
    assert socket.sent == ['{"x": 1}']


# ============ AUTHORIZATION ============

def test_order_rooms_require_existing_order(known_orders):
    assert asyncio.run(ws_bridge.authorize_join("order:ORD20240115001", None)) is None
    assert asyncio.run(ws_bridge.authorize_join("order:ORD20240115099", None)) == "Order not found"


@pytest.mark.parametrize("room", ["order:phone/9876543210", "order:ORD2024011500", "order:../health"])
def test_malformed_order_rooms_never_reach_the_api(room, monkeypatch):
    looked_up = []

    async def fake_order_exists(order_id: str) -> bool:
        looked_up.append(order_id)
        return True

    monkeypatch.setattr(ws_bridge, "order_exists", fake_order_exists)

    assert asyncio.run(ws_bridge.authorize_join(room, None)) == "Order not found"
    assert looked_up == []


@pytest.mark.parametrize(
    "room, token, reason",
    [
        ("kitchen", None, "Missing authentication token"),
        ("kitchen", "garbage", "Invalid authentication token"),
        ("kitchen", "kitchen", None),
        ("kitchen", "admin", None),
        ("admin", "kitchen", "Not authorized for this room"),
        ("admin", "admin", None),
        ("lobby", "admin", "Unknown room"),
    ],
)
def test_staff_rooms_require_role(room, token, reason):
    if token in ("kitchen", "admin"):
        token = _token(token)
    assert asyncio.run(ws_bridge.authorize_join(room, token)) == reason


# ============ PROTOCOL ============

def test_join_ping_leave(bridge, known_orders):
    with bridge.websocket_connect("/ws") as websocket:
        websocket.send_text(json.dumps({"action": "join", "room": "order:ORD20240115001"}))
        assert websocket.receive_json() == {"type": "joined", "room": "order:ORD20240115001"}
        assert ws_bridge.registry.count(RoomFamily.order) == 1

        websocket.send_text(json.dumps({"action": "ping"}))
        assert websocket.receive_json() == {"type": "pong"}

        websocket.send_text(json.dumps({"action": "leave", "room": "order:ORD20240115001"}))
        assert websocket.receive_json() == {"type": "left", "room": "order:ORD20240115001"}
        assert ws_bridge.registry.count() == 0


def test_connection_starts_in_no_room(bridge):
    with bridge.websocket_connect("/ws") as websocket:
        websocket.send_text(json.dumps({"action": "ping"}))
        websocket.receive_json()
        assert ws_bridge.registry.count() == 0


def test_refused_join_keeps_connection_open(bridge, known_orders):
    with bridge.websocket_connect("/ws") as websocket:
        websocket.send_text(json.dumps({"action": "join", "room": "kitchen"}))
        assert websocket.receive_json() == {
            "type": "error",
            "room": "kitchen",
            "detail": "Missing authentication token",
        }

        websocket.send_text(json.dumps({"action": "join", "room": "kitchen", "token": _token("kitchen")}))
        assert websocket.receive_json() == {"type": "joined", "room": "kitchen"}


def test_malformed_messages(bridge):
    with bridge.websocket_connect("/ws") as websocket:
        websocket.send_text("not json")
        assert websocket.receive_json() == {"type": "error", "detail": "Invalid JSON"}

        websocket.send_text(json.dumps({"action": "dance"}))
        assert websocket.receive_json() == {"type": "error", "detail": "Unknown action: dance"}

        websocket.send_text(json.dumps({"action": "join"}))
        assert websocket.receive_json() == {"type": "error", "detail": "Missing room"}


def test_disconnect_forgets_socket(bridge):
    with bridge.websocket_connect("/ws") as websocket:
        websocket.send_text(json.dumps({"action": "join", "room": "admin", "token": _token("admin")}))
        assert websocket.receive_json()["type"] == "joined"
        assert ws_bridge.registry.count(RoomFamily.admin) == 1

    assert ws_bridge.registry.count() == 0


def test_health_reports_counts(bridge):
    ws_bridge.registry.join("kitchen", FakeSocket())
    ws_bridge.registry.join("order:ORD20240115001", FakeSocket())

    body = bridge.get("/health").json()

    assert body == {
        "status": "ok",
        "order_connections": 1,
        "kitchen_connections": 1,
        "admin_connections": 0,
        "total_connections": 2,
    }
