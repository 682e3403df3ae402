import asyncio
import secrets
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from chat_log import ChatLog
from constants import (
    ADMIN_TOKEN_ALPHABET,
    ADMIN_TOKEN_LENGTH,
    ROOM_ID_ALPHABET,
    ROOM_ID_LENGTH,
    ROOM_ID_MAX_ATTEMPTS,
    ROOM_NAME_MAX_LENGTH,
)
from errors import RoomIdExhausted, RoomNotFound
from logging_config import get_logger
from video_resolver import VideoDescriptor

logger = get_logger(__name__)


def generate_code(alphabet: str, length: int) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


@dataclass
class Room:
    id: str
    name: str
    video: VideoDescriptor
    admin_token: str = field(repr=False)
    admin_connection_id: Optional[str] = None
    is_playing: bool = False
    last_known_time: float = 0.0 # seconds into the video
    last_update_at: float = 0.0 # epoch seconds when last_known_time was sampled
    chat: ChatLog = field(default_factory=ChatLog, repr=False)
    # serializes state changes and the broadcasts they cause
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def is_admin(self, connection_id: str) -> bool:
        return self.admin_connection_id is not None and self.admin_connection_id == connection_id

    def token_matches(self, token) -> bool:
        if not token or not isinstance(token, str):
            return False
        return secrets.compare_digest(token, self.admin_token)


class RoomRegistry:
    """In-memory map of room id -> Room for the lifetime of the process.

    Rooms are never removed; there is no persistence across restarts.
    """

    def __init__(self, rooms: Optional[Dict[str, Room]] = None):
        self._rooms: Dict[str, Room] = rooms if rooms is not None else {}
        logger.info("Initializing RoomRegistry")

    def create(self, name: str, video: VideoDescriptor, now: Optional[float] = None) -> Room:
        room_id = self._fresh_id()
        room = Room(
            id=room_id,
            name=str(name).strip()[:ROOM_NAME_MAX_LENGTH],
            video=video,
            admin_token=generate_code(ADMIN_TOKEN_ALPHABET, ADMIN_TOKEN_LENGTH),
            last_update_at=time.time() if now is None else now,
        )
        self._rooms[room_id] = room
        logger.info(f"Room {room_id} created: name={room.name}, video={video.kind}")
        return room

    def get(self, room_id: str) -> Room:
        room = self.find(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        return room

    def find(self, room_id) -> Optional[Room]:
        if not isinstance(room_id, str):
            return None
        return self._rooms.get(room_id)

    def _fresh_id(self) -> str:
        for _ in range(ROOM_ID_MAX_ATTEMPTS):
            room_id = generate_code(ROOM_ID_ALPHABET, ROOM_ID_LENGTH)
            if room_id not in self._rooms:
                return room_id
            logger.warning(f"Room id collision on {room_id}, regenerating")
        raise RoomIdExhausted(f"No free room id after {ROOM_ID_MAX_ATTEMPTS} attempts")

    def __contains__(self, room_id) -> bool:
        return self.find(room_id) is not None

    def __len__(self) -> int:
        return len(self._rooms)
