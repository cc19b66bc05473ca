"""
Shared fixtures: an in-memory SQLite database, a recording notifier in place
of Redis, seeded staff users and menu items, and a TestClient wired to them.
"""

import os

# Must be set before the canteen package builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import timedelta

import bcrypt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from canteen.db import get_session
from canteen.main import app
from canteen.models import CanteenSettings, MenuItem, Role, User
from canteen.notifier import get_notifier
from canteen.tokens import create_access_token


class RecordingNotifier:
    """Keeps every published message instead of sending it to Redis."""

    def __init__(self):
        self.messages: list[tuple[str, dict]] = []

    def publish(self, channel: str, payload: dict) -> None:
        self.messages.append((channel, payload))

    @property
    def rooms(self) -> list[str]:
        return [channel for channel, _ in self.messages]

    def for_room(self, room: str) -> list[dict]:
        return [payload for channel, payload in self.messages if channel == room]


def _hash(password: str) -> str:
    # Low cost factor keeps the suite fast
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


def bearer(username: str, role: Role) -> dict:
    token = create_access_token(
        data={"sub": username, "role": role.value},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="notifier")
def notifier_fixture():
    return RecordingNotifier()


@pytest.fixture(name="client")
def client_fixture(session, notifier):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_notifier] = lambda: notifier
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="users")
def users_fixture(session) -> dict[str, User]:
    users = {
        "admin": User(username="admin", hashed_password=_hash("admin123"), role=Role.admin),
        "kitchen": User(username="kitchen", hashed_password=_hash("kitchen123"), role=Role.kitchen),
    }
    for user in users.values():
        session.add(user)
    session.commit()
    for user in users.values():
        session.refresh(user)
    return users


@pytest.fixture
def admin_headers(users) -> dict:
    return bearer("admin", Role.admin)


@pytest.fixture
def kitchen_headers(users) -> dict:
    return bearer("kitchen", Role.kitchen)


@pytest.fixture(name="menu")
def menu_fixture(session) -> dict[str, MenuItem]:
    items = {
        "idli": MenuItem(name="Idli Sambar", category="Breakfast", price_cents=4000),
        "dosa": MenuItem(name="Masala Dosa", category="Breakfast", price_cents=5000),
        "tea": MenuItem(name="Tea", category="Beverages", price_cents=1000),
        "juice": MenuItem(name="Fresh Juice", category="Beverages", price_cents=3500, is_available=False),
    }
    for item in items.values():
        session.add(item)
    session.add(CanteenSettings(canteen_name="College Canteen", upi_id="canteen@oksbi"))
    session.commit()
    for item in items.values():
        session.refresh(item)
    return items


@pytest.fixture
def place_order(client, menu):
    """POST /orders with (menu key, quantity) pairs; returns the response JSON."""

    def _place(*lines, student_name="Asha", student_phone="9876543210", **extra):
        lines = lines or (("idli", 2),)
        payload = {
            "student_name": student_name,
            "student_phone": student_phone,
            "items": [
                {"menu_item_id": menu[key].id, "quantity": quantity}
                for key, quantity in lines
            ],
            **extra,
        }
        response = client.post("/orders", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _place


@pytest.fixture
def advance(client, admin_headers, kitchen_headers):
    """Drive an order through the happy path up to `status`."""
    steps = [
        ("payment_submitted", lambda oid: client.put(f"/orders/{oid}/submit-payment")),
        ("verified", lambda oid: client.put(
            f"/admin/orders/{oid}/verify-payment",
            json={"action": "approve"},
            headers=admin_headers,
        )),
        ("preparing", lambda oid: client.put(
            f"/kitchen/orders/{oid}/status", json={"status": "preparing"}, headers=kitchen_headers
        )),
        ("ready", lambda oid: client.put(
            f"/kitchen/orders/{oid}/status", json={"status": "ready"}, headers=kitchen_headers
        )),
        ("completed", lambda oid: client.put(
            f"/kitchen/orders/{oid}/status", json={"status": "completed"}, headers=kitchen_headers
        )),
    ]

    path = [step_status for step_status, _ in steps]

    def _advance(order_id: str, status: str) -> dict:
        current = client.get(f"/orders/{order_id}").json()["status"]
        start = path.index(current) + 1 if current in path else 0
        for step_status, call in steps[start:]:
            response = call(order_id)
            assert response.status_code == 200, response.text
            body = response.json()
            if step_status == status:
                return body
        raise AssertionError(f"Unknown target status {status}")

    return _advance
