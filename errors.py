class WatchPartyError(Exception):
    """Base class for errors raised by the room synchronization core."""


class RoomNotFound(WatchPartyError):
    def __init__(self, room_id: str):
        super().__init__(f"Room {room_id} not found")
        self.room_id = room_id


class Unauthorized(WatchPartyError):
    """A connection attempted an action it holds no authority for."""


class InvalidPayload(WatchPartyError):
    pass


class RoomIdExhausted(WatchPartyError):
    pass
