"""
WebSocket Bridge

Subscribes to the Redis channels the API publishes order updates on and
relays each message to the WebSocket clients that joined the matching room.

Rooms:
- order:{order_id} - public, the order must exist
- kitchen          - JWT with role kitchen or admin
- admin            - JWT with role admin

Clients connect to /ws and send JSON actions:
  {"action": "join", "room": "...", "token": "..."}
  {"action": "leave", "room": "..."}
  {"action": "ping"}
"""
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import redis.asyncio as redis
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from .models import Role
from .notifier import ADMIN_ROOM, KITCHEN_ROOM, RoomFamily
from .order_ids import is_order_id
from .settings import settings
from .tokens import decode_access_token

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

ROOM_ROLES = {
    KITCHEN_ROOM: {Role.kitchen, Role.admin},
    ADMIN_ROOM: {Role.admin},
}


class RoomRegistry:
    """Room name -> connected sockets."""

    def __init__(self):
        self.rooms: dict[str, set[WebSocket]] = {}

    def join(self, room: str, websocket: WebSocket) -> None:
        self.rooms.setdefault(room, set()).add(websocket)

    def leave(self, room: str, websocket: WebSocket) -> None:
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[room]

    def discard(self, websocket: WebSocket) -> None:
        """Forget a socket in every room it joined."""
        for room in list(self.rooms):
            self.leave(room, websocket)

    def members(self, room: str) -> set[WebSocket]:
        return set(self.rooms.get(room, ()))

    def count(self, family: Optional[RoomFamily] = None) -> int:
        return sum(
            len(members)
            for room, members in self.rooms.items()
            if family is None or room_family(room) is family
        )

    async def broadcast(self, room: str, data: str) -> int:
        """Send `data` to every member of `room`; returns how many got it."""
        dead_connections = set()
        delivered = 0
        for websocket in self.members(room):
            try:
                await websocket.send_text(data)
                delivered += 1
            except Exception:
                dead_connections.add(websocket)

        for websocket in dead_connections:
            self.discard(websocket)
        if dead_connections:
            logger.info(f"Dropped {len(dead_connections)} dead connection(s) from {room}")
        return delivered


registry = RoomRegistry()


def room_family(room: str) -> Optional[RoomFamily]:
    if room == KITCHEN_ROOM:
        return RoomFamily.kitchen
    if room == ADMIN_ROOM:
        return RoomFamily.admin
    prefix = f"{RoomFamily.order.value}:"
    if room.startswith(prefix) and len(room) > len(prefix):
        return RoomFamily.order
    return None


async def order_exists(order_id: str) -> bool:
    """Ask the API whether the order exists."""
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.get(f"{settings.api_url}/orders/{order_id}")
            return response.status_code == 200
    except httpx.HTTPError as e:
        logger.error(f"Error validating order {order_id}: {e}", exc_info=True)
        return False


async def authorize_join(room: str, token: Optional[str]) -> Optional[str]:
    """Return the reason a join is refused, or None when it is allowed."""
    family = room_family(room)
    if family is None:
        return "Unknown room"

    if family is RoomFamily.order:
        order_id = room.split(":", 1)[1]
        if not is_order_id(order_id) or not await order_exists(order_id):
            return "Order not found"
        return None

    if not token:
        return "Missing authentication token"
    claims = decode_access_token(token)
    if claims is None:
        return "Invalid authentication token"
    if claims["role"] not in ROOM_ROLES[room]:
        return "Not authorized for this room"
    return None


async def handle_message(websocket: WebSocket, raw: str) -> dict:
    """Apply one client action and build the reply."""
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        return {"type": "error", "detail": "Invalid JSON"}
    if not isinstance(message, dict):
        return {"type": "error", "detail": "Invalid message"}

    action = message.get("action")
    room = message.get("room")

    if action == "ping":
        return {"type": "pong"}

    if action not in ("join", "leave"):
        return {"type": "error", "detail": f"Unknown action: {action}"}
    if not isinstance(room, str) or not room:
        return {"type": "error", "detail": "Missing room"}

    if action == "leave":
        registry.leave(room, websocket)
        return {"type": "left", "room": room}

    reason = await authorize_join(room, message.get("token"))
    if reason:
        logger.warning(f"Join to {room} refused: {reason}")
        return {"type": "error", "room": room, "detail": reason}

    registry.join(room, websocket)
    logger.info(f"Client joined {room}")
    return {"type": "joined", "room": room}


async def dispatch_message(channel: str, data: str) -> int:
    """Relay one pub/sub message to the room named by its channel."""
    prefix = settings.redis_channel_prefix
    if not channel.startswith(prefix):
        return 0
    return await registry.broadcast(channel[len(prefix):], data)


async def redis_listener():
    """Subscribe to Redis and broadcast to WebSocket clients."""
    while True:
        try:
            r = redis.from_url(settings.redis_url)
            pubsub = r.pubsub()
            await pubsub.psubscribe(f"{settings.redis_channel_prefix}*")
            logger.info(f"Listening on {settings.redis_channel_prefix}*")

            async for message in pubsub.listen():
                if message["type"] != "pmessage":
                    continue
                channel = message["channel"]
                data = message["data"]
                if isinstance(channel, bytes):
                    channel = channel.decode()
                if isinstance(data, bytes):
                    data = data.decode()
                await dispatch_message(channel, data)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Redis connection error: {e}", exc_info=True)
            await asyncio.sleep(5)  # Retry after 5 seconds


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Start Redis listener on startup
    task = asyncio.create_task(redis_listener())
    yield
    task.cancel()


app = FastAPI(title="Canteen WS Bridge", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {
        "status": "ok",
        "order_connections": registry.count(RoomFamily.order),
        "kitchen_connections": registry.count(RoomFamily.kitchen),
        "admin_connections": registry.count(RoomFamily.admin),
        "total_connections": registry.count(),
    }


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    client_host = websocket.client.host if websocket.client else "unknown"
    await websocket.accept()
    logger.info(f"WebSocket connected from {client_host}")

    try:
        while True:
            raw = await websocket.receive_text()
            reply = await handle_message(websocket, raw)
            await websocket.send_text(json.dumps(reply))
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected from {client_host}")
    finally:
        registry.discard(websocket)
