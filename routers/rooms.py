import json
import os

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse
from pydantic import ValidationError

from constants import PUBLIC_DIR
from errors import InvalidPayload
from logging_config import get_logger
from room_registry import RoomRegistry
from schemas.rooms import CreateRoomRequest, CreateRoomResponse, ErrorResponse, RoomDetailsResponse
from sessions import SessionGateway
from video_resolver import resolve_video

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/api", tags=["rooms"])
pages_router = APIRouter(tags=["pages"])

CREATE_ROOM_ERROR = "roomName and videoUrl are required"


def get_registry(request: Request) -> RoomRegistry:
    return request.app.state.registry


def get_gateway(request: Request) -> SessionGateway:
    return request.app.state.gateway


async def parse_create_room(request: Request) -> CreateRoomRequest:
    # Body problems are reported as 400 {error}, not FastAPI's 422
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidPayload(CREATE_ROOM_ERROR)
    if not isinstance(body, dict):
        raise InvalidPayload(CREATE_ROOM_ERROR)
    try:
        payload = CreateRoomRequest.model_validate(body)
    except ValidationError:
        raise InvalidPayload(CREATE_ROOM_ERROR)
    if not (payload.roomName or "").strip() or not (payload.videoUrl or "").strip():
        raise InvalidPayload(CREATE_ROOM_ERROR)
    return payload


@rooms_router.post(
    "/create-room",
    response_model=CreateRoomResponse,
    responses={400: {"model": ErrorResponse}},
)
async def create_room(
    request: Request,
    payload: CreateRoomRequest = Depends(parse_create_room),
    registry: RoomRegistry = Depends(get_registry),
):
    client_host = request.client.host if request.client else "unknown"
    logger.info(f"Room creation request from {client_host}, name: {payload.roomName}")

    video = resolve_video(payload.videoUrl)
    room = registry.create(payload.roomName, video)

    return CreateRoomResponse(
        roomId=room.id,
        adminUrl=f"/room/{room.id}?admin={room.admin_token}",
        guestUrl=f"/room/{room.id}",
    )


@rooms_router.get(
    "/rooms/{room_id}",
    response_model=RoomDetailsResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_room_details(
    room_id: str,
    registry: RoomRegistry = Depends(get_registry),
    gateway: SessionGateway = Depends(get_gateway),
):
    """
    Public state of a room: name, video, playback position and member count.
    The admin token is never part of the response.
    """
    room = registry.get(room_id)
    return RoomDetailsResponse(**gateway.describe(room))


@pages_router.get("/room/{room_id}")
async def room_page(room_id: str):
    # Served for any id; existence is checked when the page joins over the socket
    return FileResponse(os.path.join(PUBLIC_DIR, "room.html"), media_type="text/html")
