"""WebSocket endpoint for real-time chat delivery.

Connect with ``ws://host/ws?token=<api key>`` (or an ``x-api-key`` header).
The handshake is refused with close code 4001 when the key is missing or
invalid; otherwise the socket joins its personal room ``user_{id}``.

Client frames:
    {"type": "join_conversation", "conversation_id": "<uuid>"}
    {"type": "leave_conversation", "conversation_id": "<uuid>"}
    {"type": "ping"}

Server frames are ``{"type": <event>, "data": {...}}`` with events
connected, joined, left, pong, new_message, conversation_updated, error.
"""
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.orm import Session

from alumni_chat.database import get_db
from alumni_chat.schemas.chat import ClientFrame
from alumni_chat.middleware.auth import authenticate_api_key
from alumni_chat.middleware.logging import bind_user, get_logger
from alumni_chat.services.gateway import Connection, EventType, FanoutGateway, get_gateway
from alumni_chat.config import get_settings

router = APIRouter()
settings = get_settings()
logger = get_logger()

WS_AUTH_FAILED = 4001


@router.websocket("/ws")
async def realtime(
    websocket: WebSocket,
    db: Session = Depends(get_db),
    gateway: FanoutGateway = Depends(get_gateway)
):
    token = (
        websocket.query_params.get(settings.ws_token_query_param)
        or websocket.headers.get("x-api-key")
    )
    user = authenticate_api_key(db, token)
    # The session is only needed for the handshake
    db.close()

    if user is None:
        logger.warning(
            "ws_auth_failed",
            client_ip=websocket.client.host if websocket.client else None,
            has_token=bool(token)
        )
        await websocket.close(code=WS_AUTH_FAILED)
        return

    bind_user(user.id)
    connection = await gateway.connect(websocket, user.id)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            await handle_frame(gateway, connection, message.get("text"))
    except WebSocketDisconnect:
        pass
    finally:
        await gateway.disconnect(connection)


async def handle_frame(gateway: FanoutGateway, connection: Connection, raw: Optional[str]) -> None:
    """Apply one client frame. Bad frames get an error event, not a disconnect."""
    if raw is None:
        # Binary frames are not part of the protocol
        await gateway.send(connection, EventType.ERROR, {"message": "Invalid frame"})
        return

    try:
        frame = ClientFrame.model_validate_json(raw)
    except ValidationError:
        await gateway.send(connection, EventType.ERROR, {"message": "Invalid frame"})
        return

    if frame.type == "ping":
        await gateway.send(connection, EventType.PONG)
        return

    if frame.conversation_id is None:
        await gateway.send(connection, EventType.ERROR, {"message": "conversation_id is required"})
        return

    if frame.type == "join_conversation":
        room = await gateway.join_conversation_room(connection, frame.conversation_id)
        await gateway.send(connection, EventType.JOINED, {
            "conversation_id": str(frame.conversation_id),
            "room": room
        })
    else:
        room = await gateway.leave_conversation_room(connection, frame.conversation_id)
        await gateway.send(connection, EventType.LEFT, {
            "conversation_id": str(frame.conversation_id),
            "room": room
        })
