"""
Connection manager for WebSocket clients.

Tracks connected clients and the session room each one has joined.
A room is the set of connections receiving broadcasts for one session id.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

from websockets.asyncio.server import ServerConnection

from nuverse_shared.protocol import Message


logger = logging.getLogger(__name__)


@dataclass
class ClientConnection:
    """Tracks a connected client's state."""
    websocket: ServerConnection
    session_id: int | None = None
    user_id: int | None = None
    username: str | None = None
    # Room broadcasts queued while the connection waits for its snapshot
    held_messages: list[str] | None = None

    @property
    def connection_id(self) -> str:
        return str(getattr(self.websocket, "id", id(self.websocket)))

    @property
    def is_held(self) -> bool:
        return self.held_messages is not None


class ConnectionManager:
    """
    Manages WebSocket connections and session rooms.

    Provides methods for:
    - Tracking connections
    - Joining and leaving session rooms (one room per connection)
    - Sending messages to a single connection
    - Broadcasting messages to every connection in a room
    """

    def __init__(self):
        # websocket -> ClientConnection
        self._connections: dict[ServerConnection, ClientConnection] = {}

        # session_id -> set of websockets
        self._rooms: dict[int, set[ServerConnection]] = {}

        self._lock = asyncio.Lock()

    # =========================================================================
    # Connection Lifecycle
    # =========================================================================

    async def connect(self, websocket: ServerConnection) -> ClientConnection:
        """Register a new connection."""
        async with self._lock:
            connection = ClientConnection(websocket=websocket)
            self._connections[websocket] = connection
            logger.info(f"Connection {connection.connection_id} opened")
            return connection

    async def disconnect(self, websocket: ServerConnection) -> ClientConnection | None:
        """
        Forget a connection and drop it from its room.

        The returned ClientConnection keeps the session_id it was in so the
        caller can notify the rest of the room.

        Returns:
            The ClientConnection if found, None otherwise
        """
        async with self._lock:
            connection = self._connections.pop(websocket, None)

            if connection:
                if connection.session_id is not None:
                    self._remove_from_room_internal(websocket, connection.session_id)
                    logger.info(
                        f"Connection {connection.connection_id} ({connection.username}) "
                        f"disconnected from session {connection.session_id}"
                    )
                else:
                    logger.info(f"Connection {connection.connection_id} disconnected")

            return connection

    # =========================================================================
    # Rooms
    # =========================================================================

    async def join_room(
        self,
        websocket: ServerConnection,
        session_id: int,
        user_id: int,
        username: str,
        hold: bool = False
    ) -> int | None:
        """
        Add a connection to a session room, leaving its current room first.

        Args:
            hold: Queue room broadcasts for this connection until the next
                direct send to it (the session snapshot) has gone out

        Returns:
            The session_id of the room that was left, or None
        """
        async with self._lock:
            connection = self._connections.get(websocket)
            if not connection:
                raise KeyError("Connection is not registered")

            previous = connection.session_id
            if previous is not None:
                self._remove_from_room_internal(websocket, previous)

            connection.session_id = session_id
            connection.user_id = user_id
            connection.username = username
            connection.held_messages = [] if hold else None
            self._rooms.setdefault(session_id, set()).add(websocket)

            logger.info(
                f"Connection {connection.connection_id} ({username}) joined room {session_id}"
            )

            return previous if previous != session_id else None

    async def leave_room(self, websocket: ServerConnection) -> int | None:
        """
        Remove a connection from its current room.

        Returns:
            The session_id it left, or None if not in a room
        """
        async with self._lock:
            connection = self._connections.get(websocket)
            if not connection or connection.session_id is None:
                return None

            session_id = connection.session_id
            self._remove_from_room_internal(websocket, session_id)
            connection.session_id = None
            connection.held_messages = None

            logger.info(f"Connection {connection.connection_id} left room {session_id}")

            return session_id

    def _remove_from_room_internal(self, websocket: ServerConnection, session_id: int) -> None:
        """Internal helper to remove a websocket from a room (no lock)."""
        room = self._rooms.get(session_id)
        if room is not None:
            room.discard(websocket)
            if not room:
                del self._rooms[session_id]

    # =========================================================================
    # Queries
    # =========================================================================

    def get_connection(self, websocket: ServerConnection) -> ClientConnection | None:
        """Get connection info for a websocket."""
        return self._connections.get(websocket)

    def get_room_connections(self, session_id: int) -> list[ClientConnection]:
        """Get every connection currently in a room."""
        return [
            self._connections[ws]
            for ws in self._rooms.get(session_id, set())
            if ws in self._connections
        ]

    def get_room_size(self, session_id: int) -> int:
        return len(self._rooms.get(session_id, ()))

    def is_in_room(self, websocket: ServerConnection, session_id: int) -> bool:
        """Check if a connection is in a specific room."""
        return websocket in self._rooms.get(session_id, set())

    # =========================================================================
    # Messaging
    # =========================================================================

    async def send_to_connection(
        self,
        websocket: ServerConnection,
        message: Message | dict | str
    ) -> bool:
        """
        Send a message to a specific websocket connection.

        Room broadcasts held for the connection are flushed right after it,
        in the order they were broadcast.

        Returns:
            True if sent successfully, False on error
        """
        sent = await self._send_to_websocket(websocket, message)
        await self._flush_held(websocket)
        return sent

    async def _flush_held(self, websocket: ServerConnection) -> None:
        """Deliver queued room broadcasts and stop holding."""
        connection = self._connections.get(websocket)
        if connection is None or not connection.is_held:
            return

        # Broadcasts arriving during a send are appended and picked up here
        while connection.held_messages:
            await self._send_to_websocket(websocket, connection.held_messages.pop(0))
        connection.held_messages = None

    async def broadcast_to_room(
        self,
        session_id: int,
        message: Message | dict | str,
        exclude: ServerConnection | None = None
    ) -> int:
        """
        Broadcast a message to every connection in a room.

        Args:
            session_id: The room to broadcast to
            message: Message object, dict, or JSON string
            exclude: Optional connection to leave out

        Returns:
            Number of connections the message was sent to
        """
        data = self._serialize(message)
        sent_count = 0

        for websocket in list(self._rooms.get(session_id, ())):
            if websocket is exclude:
                continue
            connection = self._connections.get(websocket)
            if connection is not None and connection.is_held:
                connection.held_messages.append(data)
                sent_count += 1
                continue
            if await self._send_to_websocket(websocket, data):
                sent_count += 1

        return sent_count

    @staticmethod
    def _serialize(message: Message | dict | str) -> str:
        if isinstance(message, Message):
            return message.to_json()
        if isinstance(message, dict):
            return json.dumps(message)
        return message

    async def _send_to_websocket(
        self,
        websocket: ServerConnection,
        message: Message | dict | str
    ) -> bool:
        """Internal helper to send a message to a websocket."""
        try:
            await websocket.send(self._serialize(message))
            return True

        except Exception as e:
            logger.error(f"Failed to send message: {e}")
            return False

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        """Get connection statistics."""
        return {
            "total_connections": len(self._connections),
            "active_rooms": len(self._rooms),
            "connections_per_room": {
                session_id: len(members)
                for session_id, members in self._rooms.items()
            },
        }
