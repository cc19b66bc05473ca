"""
Publishing order updates for the websocket bridge.

Rooms:
- order:{order_id} - the student tracking one order
- kitchen          - kitchen displays
- admin            - admin dashboards (joinable, nothing published yet)

The API publishes to Redis channel `{prefix}{room}`; ws_bridge relays each
message to the sockets that joined that room. Delivery is best effort: a
client that reconnects re-fetches the order instead of expecting a replay.
"""

import json
import logging
from enum import Enum
from functools import lru_cache
from typing import Any, Protocol

import redis

from .settings import settings

logger = logging.getLogger(__name__)


class RoomFamily(str, Enum):
    order = "order"
    kitchen = "kitchen"
    admin = "admin"


KITCHEN_ROOM = RoomFamily.kitchen.value
ADMIN_ROOM = RoomFamily.admin.value

# Event names per room family
ORDER_UPDATED = "order_updated"
NEW_VERIFIED_ORDER = "new_verified_order"


def order_room(order_id: str) -> str:
    return f"{RoomFamily.order.value}:{order_id}"


def room_for(family: RoomFamily, order_id: str) -> str:
    if family is RoomFamily.order:
        return order_room(order_id)
    return family.value


def event_for(family: RoomFamily) -> str:
    return NEW_VERIFIED_ORDER if family is RoomFamily.kitchen else ORDER_UPDATED


class Notifier(Protocol):
    def publish(self, channel: str, payload: dict[str, Any]) -> None:
        ...


class RedisNotifier:
    def __init__(self, redis_url: str, channel_prefix: str):
        self.redis_url = redis_url
        self.channel_prefix = channel_prefix
        self._client: redis.Redis | None = None

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self.redis_url)
        return self._client

    def publish(self, channel: str, payload: dict[str, Any]) -> None:
        try:
            self._get_client().publish(
                f"{self.channel_prefix}{channel}", json.dumps(payload, default=str)
            )
        except redis.RedisError as e:
            # The store already holds the new state; clients can re-fetch it
            logger.warning(f"Could not publish to {channel}: {e}")
            self._client = None


def publish_order_event(notifier: Notifier, families: tuple[RoomFamily, ...], order: dict) -> None:
    """Fan one order snapshot out to every room the transition names."""
    for family in families:
        room = room_for(family, order["order_id"])
        notifier.publish(room, {"event": event_for(family), "room": room, "order": order})


@lru_cache()
def get_notifier() -> Notifier:
    return RedisNotifier(settings.redis_url, settings.redis_channel_prefix)
