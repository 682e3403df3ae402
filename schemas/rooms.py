from pydantic import BaseModel
from typing import Optional


class CreateRoomRequest(BaseModel):
    roomName: Optional[str] = None
    videoUrl: Optional[str] = None

class CreateRoomResponse(BaseModel):
    roomId: str
    adminUrl: str
    guestUrl: str

class VideoInfo(BaseModel):
    kind: str
    locator: str
    originalUrl: str

class RoomDetailsResponse(BaseModel):
    roomId: str
    name: str
    video: VideoInfo
    isPlaying: bool
    currentTime: float
    memberCount: int
    hasAdmin: bool

class ErrorResponse(BaseModel):
    error: str
