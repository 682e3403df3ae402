from pydantic import BaseModel
from typing import Any, Optional


class JoinRoomEvent(BaseModel):
    roomId: str
    adminToken: Optional[str] = None
    userName: Optional[str] = None

class AdminActionEvent(BaseModel):
    roomId: str
    action: str
    # validated by the playback clock, anything unusable means "now"
    time: Any = None

class RequestSyncEvent(BaseModel):
    roomId: str

class ChatMessageEvent(BaseModel):
    roomId: str
    user: Any = None
    text: Any = None
