import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from broadcaster import Broadcaster
from chat_log import clean_user_name
from constants import CHAT_REPLAY_LIMIT, DEFAULT_USER_NAME
from errors import RoomNotFound, Unauthorized
from event_keys import (
    CHAT_MESSAGE,
    ERROR_MESSAGE,
    PAUSE,
    PLAY,
    PLAYBACK_ACTIONS,
    ROLE_ADMIN,
    ROLE_VIEWER,
    ROOM_JOINED,
    SYNC_STATE,
    SYSTEM_MESSAGE,
    VIDEO_EVENT,
)
from logging_config import get_logger
from playback import effective_time, resolve_time, to_millis
from room_registry import Room, RoomRegistry

logger = get_logger(__name__)


@dataclass
class Session:
    connection_id: str
    room_id: Optional[str] = None
    role: str = ROLE_VIEWER
    display_name: str = DEFAULT_USER_NAME


class SessionGateway:
    """Handles every real-time event of every connection.

    All room state changes go through here. Each handler that mutates a room
    holds that room's lock until the resulting broadcast has been handed to
    every member, so events of one room are applied and delivered in the
    order they were received while other rooms are never blocked.
    """

    def __init__(self, registry: RoomRegistry, broadcaster: Broadcaster, clock: Callable[[], float] = time.time):
        self.registry = registry
        self.broadcaster = broadcaster
        self.clock = clock
        # Format: {connection_id: Session}
        self.sessions: Dict[str, Session] = {}

    def connect(self, connection_id: str, websocket) -> Session:
        session = Session(connection_id=connection_id)
        self.sessions[connection_id] = session
        self.broadcaster.register(connection_id, websocket)
        logger.info(f"Connection {connection_id} opened")
        return session

    def disconnect(self, connection_id: str):
        session = self.sessions.pop(connection_id, None)
        if session is not None:
            self._leave_current_room(session)
        self.broadcaster.unregister(connection_id)
        logger.info(f"Connection {connection_id} closed")

    async def join(self, connection_id: str, room_id, admin_token=None, user_name=None) -> Optional[dict]:
        """Attach a connection to a room and reply with the room snapshot.

        Presenting the room's admin token makes this connection the admin,
        replacing whichever connection held authority before. Token possession
        is the only check.
        """
        session = self.sessions.get(connection_id)
        if session is None:
            logger.warning(f"Join from unknown connection {connection_id} ignored")
            return None

        try:
            room = self.registry.get(room_id)
        except RoomNotFound:
            logger.info(f"Join rejected for connection {connection_id}: room {room_id} not found")
            await self.broadcaster.send(connection_id, ERROR_MESSAGE, {"message": "Room not found"})
            return None

        display_name = clean_user_name(user_name)
        async with room.lock:
            self._leave_current_room(session)

            role = ROLE_ADMIN if room.token_matches(admin_token) else ROLE_VIEWER
            if role == ROLE_ADMIN:
                self._grant_admin(room, session)

            session.room_id = room.id
            session.role = role
            session.display_name = display_name
            self.broadcaster.join_group(room.id, connection_id)
            logger.info(f"Connection {connection_id} ({display_name}) joined room {room.id} as {role}")

            now = self.clock()
            snapshot = self.snapshot(room, role, now)
            await self.broadcaster.send(connection_id, ROOM_JOINED, snapshot)
            await self.broadcaster.broadcast(
                room.id,
                SYSTEM_MESSAGE,
                {"message": f"{display_name} joined", "ts": to_millis(now)},
                exclude=connection_id,
            )
        return snapshot

    async def admin_action(self, connection_id: str, room_id, action, requested_time=None) -> Optional[dict]:
        """Apply play/pause/seek from the room's admin and broadcast the result.

        Requests from anyone else, for unknown rooms or with unknown actions
        are dropped without a reply.
        """
        room = self.registry.find(room_id)
        if room is None:
            logger.debug(f"Admin action from {connection_id} for unknown room {room_id} ignored")
            return None
        if action not in PLAYBACK_ACTIONS:
            logger.debug(f"Unknown admin action {action!r} from {connection_id} in room {room.id} ignored")
            return None

        async with room.lock:
            try:
                self._authorize(room, connection_id)
            except Unauthorized:
                logger.debug(f"Dropped {action} from non-admin connection {connection_id} in room {room.id}")
                return None

            now = self.clock()
            position = resolve_time(requested_time, room, now)
            if action == PLAY:
                room.is_playing = True
            elif action == PAUSE:
                room.is_playing = False
            # seek keeps is_playing as it is
            room.last_known_time = position
            room.last_update_at = now
            logger.debug(f"Room {room.id}: {action} at {position:.3f}s (playing={room.is_playing})")

            event = {"action": action, "time": position, "at": to_millis(now)}
            await self.broadcaster.broadcast(room.id, VIDEO_EVENT, event)
        return event

    async def request_sync(self, connection_id: str, room_id) -> Optional[dict]:
        room = self.registry.find(room_id)
        if room is None:
            logger.debug(f"Sync request from {connection_id} for unknown room {room_id} ignored")
            return None
        now = self.clock()
        state = {
            "isPlaying": room.is_playing,
            "currentTime": effective_time(room, now),
            "at": to_millis(now),
        }
        await self.broadcaster.send(connection_id, SYNC_STATE, state)
        return state

    async def chat(self, connection_id: str, room_id, user=None, text=None) -> Optional[dict]:
        room = self.registry.find(room_id)
        if room is None:
            logger.debug(f"Chat from {connection_id} for unknown room {room_id} ignored")
            return None

        async with room.lock:
            message = room.chat.append(user, text, to_millis(self.clock()))
            if message is None:
                logger.debug(f"Empty chat message from {connection_id} in room {room.id} ignored")
                return None
            payload = message.to_dict()
            await self.broadcaster.broadcast(room.id, CHAT_MESSAGE, payload)
        return payload

    def snapshot(self, room: Room, role: str, now: float) -> dict:
        return {
            "role": role,
            "room": {
                "id": room.id,
                "name": room.name,
                "video": room.video.to_dict(),
                "isPlaying": room.is_playing,
                "currentTime": effective_time(room, now),
            },
            "chat": [message.to_dict() for message in room.chat.recent(CHAT_REPLAY_LIMIT)],
        }

    def describe(self, room: Room) -> dict:
        """Public view of a room; never includes the admin token."""
        return {
            "roomId": room.id,
            "name": room.name,
            "video": room.video.to_dict(),
            "isPlaying": room.is_playing,
            "currentTime": effective_time(room, self.clock()),
            "memberCount": self.broadcaster.member_count(room.id),
            "hasAdmin": room.admin_connection_id is not None,
        }

    def _authorize(self, room: Room, connection_id: str):
        if not room.is_admin(connection_id):
            raise Unauthorized(f"Connection {connection_id} is not the admin of room {room.id}")

    def _grant_admin(self, room: Room, session: Session):
        previous = room.admin_connection_id
        room.admin_connection_id = session.connection_id
        if previous and previous != session.connection_id:
            # the previous holder is not notified
            demoted = self.sessions.get(previous)
            if demoted is not None and demoted.room_id == room.id:
                demoted.role = ROLE_VIEWER
            logger.info(f"Admin authority for room {room.id} moved from {previous} to {session.connection_id}")
        else:
            logger.info(f"Connection {session.connection_id} holds admin authority for room {room.id}")

    def _leave_current_room(self, session: Session):
        if session.room_id is None:
            return
        room = self.registry.find(session.room_id)
        if room is not None and room.is_admin(session.connection_id):
            room.admin_connection_id = None
            logger.info(f"Admin authority for room {room.id} released by {session.connection_id}")
        self.broadcaster.leave_group(session.room_id, session.connection_id)
        session.room_id = None
        session.role = ROLE_VIEWER
