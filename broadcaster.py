import asyncio
from typing import Dict, Iterable, Optional

from logging_config import get_logger

logger = get_logger(__name__)


class Broadcaster:
    """Room-scoped fan-out of server events to live connections.

    A connection is a WebSocket (or anything with an async `send_json`). Each
    connection belongs to at most one room's delivery group at a time.
    Delivery is fire-and-forget: a failed send is only logged. The connection
    keeps its membership, and its receive loop tears the session down when it
    notices the disconnect.
    """

    def __init__(self):
        # Format: {connection_id: websocket}
        self.connections: Dict[str, object] = {}
        # Format: {room_id: {connection_id: websocket}}
        self.room_connections: Dict[str, Dict[str, object]] = {}

    def register(self, connection_id: str, websocket):
        self.connections[connection_id] = websocket
        logger.debug(f"Registered connection {connection_id} (live connections: {len(self.connections)})")

    def unregister(self, connection_id: str):
        self.connections.pop(connection_id, None)
        for room_id in list(self.room_connections):
            self.leave_group(room_id, connection_id)
        logger.debug(f"Unregistered connection {connection_id} (live connections: {len(self.connections)})")

    def join_group(self, room_id: str, connection_id: str):
        websocket = self.connections.get(connection_id)
        if websocket is None:
            logger.warning(f"Cannot add unknown connection {connection_id} to room {room_id}")
            return
        self.room_connections.setdefault(room_id, {})[connection_id] = websocket
        logger.debug(f"Added connection {connection_id} to room {room_id} (members: {len(self.room_connections[room_id])})")

    def leave_group(self, room_id: str, connection_id: str):
        members = self.room_connections.get(room_id)
        if not members or connection_id not in members:
            return
        del members[connection_id]
        logger.debug(f"Removed connection {connection_id} from room {room_id} (members: {len(members)})")
        if not members:
            del self.room_connections[room_id]

    def members(self, room_id: str) -> Iterable[str]:
        return list(self.room_connections.get(room_id, {}))

    def member_count(self, room_id: str) -> int:
        return len(self.room_connections.get(room_id, {}))

    async def send(self, connection_id: str, event: str, payload: dict) -> bool:
        websocket = self.connections.get(connection_id)
        if websocket is None:
            logger.debug(f"Dropping {event} for unknown connection {connection_id}")
            return False
        try:
            await websocket.send_json({"type": event, **payload})
            return True
        except Exception as e:
            logger.warning(f"Error sending {event} to connection {connection_id}: {e}")
            return False

    async def broadcast(self, room_id: str, event: str, payload: dict, exclude: Optional[str] = None) -> int:
        """Deliver `event` to every member of `room_id`, optionally skipping one connection."""
        members = self.room_connections.get(room_id, {})
        targets = [(conn_id, ws) for conn_id, ws in members.items() if conn_id != exclude]
        if not targets:
            return 0

        message = {"type": event, **payload}
        results = await asyncio.gather(
            *(ws.send_json(message) for _, ws in targets),
            return_exceptions=True,
        )

        delivered = 0
        for (conn_id, _), result in zip(targets, results):
            if isinstance(result, Exception):
                # stays in the group until its receive loop sees the disconnect
                logger.warning(f"Error sending {event} to connection {conn_id} in room {room_id}: {result}")
            else:
                delivered += 1
        logger.debug(f"Broadcasted {event} to {delivered}/{len(targets)} connections in room {room_id}")
        return delivered
