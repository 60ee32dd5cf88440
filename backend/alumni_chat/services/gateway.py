"""Real-time fan-out gateway.

Keeps the live WebSocket connections of this process grouped into rooms
and pushes chat events to them:

- ``user_{id}``: personal room, joined automatically on connect
- ``conversation_{id}``: joined while a client has that conversation open

Delivery is best-effort and at-most-once. Nothing is queued for clients
that are not in the target room; they catch up through the REST API.
"""
import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket
from starlette.requests import HTTPConnection

from alumni_chat.schemas.chat import ConversationOut, MessageOut
from alumni_chat.middleware.logging import get_logger

logger = get_logger()


class EventType(str, Enum):
    """Server-to-client event types."""
    CONNECTED = "connected"
    JOINED = "joined"
    LEFT = "left"
    PONG = "pong"
    NEW_MESSAGE = "new_message"
    CONVERSATION_UPDATED = "conversation_updated"
    ERROR = "error"


def personal_room(user_id) -> str:
    return f"user_{user_id}"


def conversation_room(conversation_id) -> str:
    return f"conversation_{conversation_id}"


@dataclass(eq=False)
class Connection:
    """One accepted WebSocket bound to an authenticated user."""
    websocket: WebSocket
    user_id: str
    connection_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    rooms: Set[str] = field(default_factory=set)
    connected_at: datetime = field(default_factory=datetime.utcnow)


class FanoutGateway:
    """
    Registry of live connections and rooms for one server process.

    Constructed once per application and injected into handlers with
    ``get_gateway``. Room bookkeeping is in-memory only.

    Broadcasts to a room hold that room's lock while sending, so two
    messages appended back to back in one conversation leave in append
    order.
    """

    def __init__(self):
        # room name -> member connections
        self._rooms: Dict[str, Set[Connection]] = {}
        # room name -> lock serializing broadcasts to that room
        self._room_locks: Dict[str, asyncio.Lock] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id) -> Connection:
        """
        Accept an authenticated WebSocket and join its personal room.

        Callers must authenticate before calling this; an unauthenticated
        socket is closed by the endpoint and never reaches the registry.
        """
        await websocket.accept()

        connection = Connection(websocket=websocket, user_id=str(user_id))
        async with self._lock:
            self._add(connection, personal_room(connection.user_id))

        logger.info(
            "ws_connected",
            user_id=connection.user_id,
            connection_id=connection.connection_id
        )

        await self.send(connection, EventType.CONNECTED, {
            "user_id": connection.user_id,
            "connection_id": connection.connection_id
        })
        return connection

    async def join_conversation_room(self, connection: Connection, conversation_id) -> str:
        """
        Subscribe a connection to a conversation's live messages.

        No membership check happens here: the room only controls delivery,
        while access to history is enforced by the conversation store.
        """
        room = conversation_room(conversation_id)
        async with self._lock:
            self._add(connection, room)

        logger.info(
            "ws_room_joined",
            user_id=connection.user_id,
            connection_id=connection.connection_id,
            room=room
        )
        return room

    async def leave_conversation_room(self, connection: Connection, conversation_id) -> str:
        room = conversation_room(conversation_id)
        async with self._lock:
            self._remove(connection, room)

        logger.info(
            "ws_room_left",
            user_id=connection.user_id,
            connection_id=connection.connection_id,
            room=room
        )
        return room

    async def disconnect(self, connection: Connection) -> None:
        """Remove a connection from every room it belongs to."""
        async with self._lock:
            for room in list(connection.rooms):
                self._remove(connection, room)

        logger.info(
            "ws_disconnected",
            user_id=connection.user_id,
            connection_id=connection.connection_id
        )

    async def broadcast_new_message(self, message: MessageOut) -> int:
        """Push a stored message to everyone viewing its conversation."""
        return await self.emit_to_room(
            conversation_room(message.conversation_id),
            EventType.NEW_MESSAGE,
            message.model_dump(mode="json")
        )

    async def broadcast_conversation_update(self, conversation: ConversationOut) -> int:
        """
        Push the refreshed conversation to each participant's personal room.

        Drives conversation-list updates for participants who do not have
        the conversation open. Skipped while there is no latest message.
        """
        if conversation.last_message is None:
            return 0

        payload = conversation.model_dump(mode="json")
        delivered = 0
        for participant in conversation.participants:
            delivered += await self.emit_to_room(
                personal_room(participant.id),
                EventType.CONVERSATION_UPDATED,
                payload
            )
        return delivered

    async def emit_to_room(self, room: str, event: EventType, data: Optional[Dict[str, Any]] = None) -> int:
        """
        Send an event to every connection in a room.

        Returns:
            Number of connections the event was written to
        """
        if not self._rooms.get(room):
            return 0

        lock = self._room_locks.setdefault(room, asyncio.Lock())
        delivered = 0
        async with lock:
            for connection in list(self._rooms.get(room, ())):
                if await self.send(connection, event, data):
                    delivered += 1

        # A room emptied mid-broadcast kept its lock; drop it now
        if room not in self._rooms and not lock.locked():
            self._room_locks.pop(room, None)
        return delivered

    async def send(self, connection: Connection, event: EventType, data: Optional[Dict[str, Any]] = None) -> bool:
        """
        Write one event to one connection.

        Transport errors are logged and reported as ``False``; they never
        propagate to the caller.
        """
        try:
            await connection.websocket.send_json({"type": event.value, "data": data})
            return True
        except Exception as e:
            logger.warning(
                "fanout_emit_failed",
                user_id=connection.user_id,
                connection_id=connection.connection_id,
                event_type=event.value,
                error=str(e),
                error_type=type(e).__name__
            )
            return False

    def room_size(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    @property
    def connection_count(self) -> int:
        """Distinct live connections (every connection has a personal room)."""
        return len({c for room, members in self._rooms.items() if room.startswith("user_") for c in members})

    def _add(self, connection: Connection, room: str) -> None:
        self._rooms.setdefault(room, set()).add(connection)
        connection.rooms.add(room)

    def _remove(self, connection: Connection, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[room]
                lock = self._room_locks.get(room)
                if lock is not None and not lock.locked():
                    del self._room_locks[room]
        connection.rooms.discard(room)


def get_gateway(connection: HTTPConnection) -> FanoutGateway:
    """Dependency returning the application's gateway (HTTP or WebSocket)."""
    return connection.app.state.gateway
