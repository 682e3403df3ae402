from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
import json
import os
import time
import uuid
from typing import Callable, Optional

from broadcaster import Broadcaster
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL, PUBLIC_DIR
from errors import InvalidPayload, RoomNotFound
from event_keys import ADMIN_ACTION, CHAT_MESSAGE, ERROR_MESSAGE, JOIN_ROOM, REQUEST_SYNC
from logging_config import get_logger, setup_logging
from room_registry import RoomRegistry
from routers.rooms import pages_router, rooms_router
from schemas.events import AdminActionEvent, ChatMessageEvent, JoinRoomEvent, RequestSyncEvent
from sessions import SessionGateway

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

EVENT_SCHEMAS = {
    JOIN_ROOM: JoinRoomEvent,
    ADMIN_ACTION: AdminActionEvent,
    REQUEST_SYNC: RequestSyncEvent,
    CHAT_MESSAGE: ChatMessageEvent,
}


async def dispatch_event(gateway: SessionGateway, connection_id: str, message: dict):
    """Validate one client frame and hand it to the session gateway."""
    event_type = message.get("type")
    schema = EVENT_SCHEMAS.get(event_type)
    if schema is None:
        logger.debug(f"Ignoring unknown event {event_type!r} from connection {connection_id}")
        return

    try:
        event = schema.model_validate(message)
    except ValidationError as e:
        logger.debug(f"Invalid {event_type} payload from connection {connection_id}: {e}")
        if event_type == JOIN_ROOM:
            await gateway.broadcaster.send(connection_id, ERROR_MESSAGE, {"message": "Invalid join request"})
        return

    if event_type == JOIN_ROOM:
        await gateway.join(connection_id, event.roomId, event.adminToken, event.userName)
    elif event_type == ADMIN_ACTION:
        await gateway.admin_action(connection_id, event.roomId, event.action, event.time)
    elif event_type == REQUEST_SYNC:
        await gateway.request_sync(connection_id, event.roomId)
    elif event_type == CHAT_MESSAGE:
        await gateway.chat(connection_id, event.roomId, event.user, event.text)


async def websocket_endpoint(websocket: WebSocket):
    """Real-time channel. Every frame is a JSON object with a `type` field."""
    gateway: SessionGateway = websocket.app.state.gateway
    connection_id = str(uuid.uuid4())

    await websocket.accept()
    gateway.connect(connection_id, websocket)
    try:
        message_count = 0
        while True:
            try:
                data = await websocket.receive_text()
            except WebSocketDisconnect:
                logger.info(f"WebSocket disconnected normally for connection {connection_id}")
                break
            message_count += 1

            try:
                message = json.loads(data)
            except ValueError:
                # also covers integers past the interpreter's digit limit
                logger.debug(f"Ignoring unparseable frame #{message_count} from connection {connection_id}")
                continue
            if not isinstance(message, dict):
                logger.debug(f"Ignoring non-object frame #{message_count} from connection {connection_id}")
                continue

            await dispatch_event(gateway, connection_id, message)
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        gateway.disconnect(connection_id)
        try:
            await websocket.close()
        except Exception as e:
            logger.debug(f"Error closing WebSocket for connection {connection_id}: {e}")


async def invalid_payload_handler(request: Request, exc: InvalidPayload):
    logger.info(f"Rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"error": str(exc)})


async def room_not_found_handler(request: Request, exc: RoomNotFound):
    logger.info(f"{request.method} {request.url.path}: room {exc.room_id} not found")
    return JSONResponse(status_code=404, content={"error": "Room not found"})


def create_app(registry: Optional[RoomRegistry] = None, clock: Callable[[], float] = time.time) -> FastAPI:
    app = FastAPI(title="WatchParty")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.registry = registry if registry is not None else RoomRegistry()
    app.state.gateway = SessionGateway(app.state.registry, Broadcaster(), clock=clock)

    app.add_exception_handler(InvalidPayload, invalid_payload_handler)
    app.add_exception_handler(RoomNotFound, room_not_found_handler)

    app.include_router(rooms_router)
    app.include_router(pages_router)
    app.add_api_websocket_route("/ws", websocket_endpoint)

    # Catch-all static mount goes last so it never shadows the routes above
    if os.path.isdir(PUBLIC_DIR):
        app.mount("/", StaticFiles(directory=PUBLIC_DIR, html=True), name="public")

    logger.info("FastAPI application initialized")
    return app


app = create_app()
