"""Real-time fan-out of domain events.

Mutation handlers talk to a single ``Publisher``; the publisher hands each
event to its sinks:

* ``RoomSink``: WebSocket clients grouped into rooms (the public
  ``shipments`` room and one ``user:<id>`` room per signed-in user).
* ``StreamSink``: Server-Sent Event subscribers, one bounded queue each.

Delivery is best-effort. A slow or broken subscriber never fails or blocks
the request that produced the event.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from fastapi import WebSocket

from freight_market.app.config import get_settings

logger = logging.getLogger(__name__)

PUBLIC_ROOM = "shipments"


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


class ConnectionManager:
    """Manages WebSocket connections with room support.

    Connections can belong to named rooms (e.g. "shipments", "user:user-0002").
    Broadcasting targets a specific room so unrelated clients are not affected.
    """

    def __init__(self):
        # client_id -> WebSocket
        self.active_connections: dict[str, WebSocket] = {}
        # room name -> set of client_ids
        self.rooms: dict[str, set[str]] = {}

    async def connect(self, websocket: WebSocket, client_id: str, rooms: Iterable[str] = ()):
        """Accept a WebSocket and add it to the given rooms."""
        await websocket.accept()
        self.active_connections[client_id] = websocket
        for room in rooms:
            self.join(client_id, room)

    def join(self, client_id: str, room: str):
        self.rooms.setdefault(room, set()).add(client_id)

    def disconnect(self, client_id: str):
        """Remove a client from all rooms and drop its connection."""
        self.active_connections.pop(client_id, None)
        for room in list(self.rooms):
            members = self.rooms[room]
            members.discard(client_id)
            if not members:
                del self.rooms[room]

    async def send_json(self, client_id: str, data: dict):
        """Send JSON to a specific client."""
        ws = self.active_connections.get(client_id)
        if ws:
            try:
                await ws.send_json(data)
            except Exception:
                logger.warning("Failed to send to client %s, removing", client_id)
                self.disconnect(client_id)

    async def broadcast_to_room(self, room: str, data: dict):
        """Broadcast a JSON message to every client in a room."""
        client_ids = list(self.rooms.get(room, set()))
        disconnected: list[str] = []
        for cid in client_ids:
            ws = self.active_connections.get(cid)
            if ws:
                try:
                    await ws.send_json(data)
                except Exception:
                    logger.warning("Broadcast failed for %s, removing", cid)
                    disconnected.append(cid)
        for cid in disconnected:
            self.disconnect(cid)


class RoomSink:
    """Pushes events to WebSocket rooms without awaiting the sends."""

    supports_rooms = True

    def __init__(self, manager: ConnectionManager):
        self.manager = manager
        self._tasks: set[asyncio.Task] = set()

    def deliver(self, rooms: list[str], message: dict) -> None:
        loop = asyncio.get_running_loop()
        for room in rooms:
            if room not in self.manager.rooms:
                continue
            task = loop.create_task(self.manager.broadcast_to_room(room, message))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for in-flight sends (used by tests and shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class StreamSink:
    """Fan-out to long-lived text streams; only public events are streamed."""

    supports_rooms = False

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def deliver(self, rooms: list[str], message: dict) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning("Stream subscriber queue full, dropping %s", message.get("type"))


class Publisher:
    """Single entry point for emitting domain events to every sink."""

    def __init__(self, sinks: Optional[list] = None):
        self.sinks = list(sinks or [])

    @staticmethod
    def envelope(event: str, payload: dict) -> dict:
        return {
            "type": event,
            "data": payload,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def emit_public(self, event: str, payload: dict) -> None:
        """Push to the public room and to every open stream."""
        message = self.envelope(event, payload)
        for sink in self.sinks:
            self._deliver(sink, [PUBLIC_ROOM], message)

    def emit_to_users(self, user_ids: Iterable[str], event: str, payload: dict) -> None:
        """Push only to the given users' rooms. Streams never receive these."""
        rooms = [user_room(uid) for uid in dict.fromkeys(user_ids) if uid]
        if not rooms:
            return
        message = self.envelope(event, payload)
        for sink in self.sinks:
            if sink.supports_rooms:
                self._deliver(sink, rooms, message)

    def _deliver(self, sink, rooms: list[str], message: dict) -> None:
        try:
            sink.deliver(rooms, message)
        except Exception as e:
            logger.warning("Event %s not delivered via %s: %s", message["type"], type(sink).__name__, e)


manager = ConnectionManager()
room_sink = RoomSink(manager)
stream_sink = StreamSink(queue_size=get_settings().stream_queue_size)
publisher = Publisher([room_sink, stream_sink])


def get_publisher() -> Publisher:
    """FastAPI dependency: the process-wide publisher."""
    return publisher
