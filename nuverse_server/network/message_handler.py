"""
Message handler for routing client messages to session actions.

Parses incoming messages, validates them, runs the matching game service
flow, and formats the response and room broadcasts.
"""

import logging
from dataclasses import dataclass

from websockets.asyncio.server import ServerConnection

from nuverse_server.network.connection_manager import ConnectionManager
from nuverse_server.network.game_service import GameService
from nuverse_shared.protocol import (
    Message,
    ErrorMessage,
    GameStateMessage,
    PlayerJoinedMessage,
    PlayerLeftMessage,
    CardCreatedMessage,
    CardMovedMessage,
    CardPlayedMessage,
    parse_message,
)
from nuverse_shared.enums import MessageType


logger = logging.getLogger(__name__)


# Opaque messages for unexpected (server-side) failures
INTERNAL_ERROR_MESSAGES = {
    MessageType.JOIN_GAME: "Failed to join game. See server logs for details.",
    MessageType.CREATE_CARD: "Failed to create card. See server logs for details.",
    MessageType.MOVE_CARD: "Failed to move card. See server logs for details.",
    MessageType.PLAY_CARD: "Failed to play card. See server logs for details.",
}


@dataclass
class HandleResult:
    """Result of handling a message."""
    # Response to send back to the requesting connection (None if no response needed)
    response: Message | None = None
    # Messages to broadcast to the room after the response
    broadcasts: list[Message] | None = None
    # Room the broadcasts go to
    room_id: int | None = None
    # Whether the requesting connection is left out of the broadcasts
    exclude_sender: bool = False


class MessageHandler:
    """
    Routes incoming messages to the game service.

    Each handler method returns a HandleResult containing:
    - A response to send to the requesting connection
    - Broadcasts to send to a session room
    """

    def __init__(self, game_service: GameService, connection_manager: ConnectionManager):
        self._games = game_service
        self._connections = connection_manager

    async def handle_message(
        self,
        websocket: ServerConnection,
        message: Message | str
    ) -> HandleResult:
        """
        Handle an incoming message from a connection.

        Args:
            websocket: The connection that sent the message
            message: The message (Message object or JSON string)

        Returns:
            HandleResult with response and broadcasts
        """
        if isinstance(message, str):
            try:
                message = parse_message(message)
            except Exception as e:
                logger.error(f"Failed to parse message: {e}")
                return HandleResult(
                    response=ErrorMessage.create(f"Invalid message format: {e}", "PARSE_ERROR")
                )

        handler = self._get_handler(message.type)
        if not handler:
            return HandleResult(
                response=ErrorMessage.create(
                    f"Unknown message type: {message.type.value}",
                    "UNKNOWN_MESSAGE_TYPE",
                    message.request_id
                )
            )

        try:
            result = await handler(websocket, message)

            # Preserve request_id in response
            if result.response and message.request_id:
                result.response.request_id = message.request_id

            return result

        except Exception as e:
            logger.exception(f"Error handling message {message.type.value}: {e}")
            return HandleResult(
                response=ErrorMessage.create(
                    INTERNAL_ERROR_MESSAGES.get(message.type, "Internal server error"),
                    "INTERNAL_ERROR",
                    message.request_id
                )
            )

    def _get_handler(self, message_type: MessageType):
        """Get the handler method for a message type."""
        handlers = {
            MessageType.JOIN_GAME: self._handle_join_game,
            MessageType.CREATE_CARD: self._handle_create_card,
            MessageType.MOVE_CARD: self._handle_move_card,
            MessageType.PLAY_CARD: self._handle_play_card,
        }
        return handlers.get(message_type)

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _handle_join_game(self, websocket: ServerConnection, message: Message) -> HandleResult:
        """Handle join-game request."""
        session_name = message.data.get("session_name")
        username = message.data.get("user_id")

        success, msg, joined = await self._games.join_game(session_name, username)

        if not success:
            return HandleResult(
                response=ErrorMessage.create(msg, "JOIN_GAME_FAILED")
            )

        # Enter the room before reading the snapshot so no change committed
        # meanwhile is missed; room traffic is held until the snapshot is sent.
        previous = await self._connections.join_room(
            websocket, joined.session_id, joined.user_id, joined.username, hold=True
        )
        if previous is not None:
            await self._connections.broadcast_to_room(
                previous,
                PlayerLeftMessage.create(joined.user_id, joined.username)
            )

        try:
            state = await self._games.build_state(joined.session)
        except Exception:
            await self._connections.leave_room(websocket)
            raise

        return HandleResult(
            response=GameStateMessage.create(state),
            broadcasts=[PlayerJoinedMessage.create(joined.user_id, joined.username)],
            room_id=joined.session_id,
            exclude_sender=True
        )

    async def _handle_create_card(self, websocket: ServerConnection, message: Message) -> HandleResult:
        """Handle create-card request."""
        session_id = message.data.get("session_id")

        success, msg, record = await self._games.create_card(
            session_id,
            message.data.get("user_id"),
            message.data.get("card_data")
        )

        if not success:
            return HandleResult(
                response=ErrorMessage.create(msg, "CREATE_CARD_FAILED")
            )

        return HandleResult(
            broadcasts=[CardCreatedMessage.create(record.to_dict())],
            room_id=session_id
        )

    async def _handle_move_card(self, websocket: ServerConnection, message: Message) -> HandleResult:
        """Handle move-card request."""
        session_id = message.data.get("session_id")

        success, msg, record = await self._games.move_card(
            session_id=session_id,
            username=message.data.get("user_id"),
            player_card_id=message.data.get("player_card_id"),
            to_location=message.data.get("to_location"),
            to_slot_id=message.data.get("to_slot_id"),
            is_active=message.data.get("is_active", False)
        )

        if not success:
            return HandleResult(
                response=ErrorMessage.create(msg, "MOVE_CARD_FAILED")
            )

        return HandleResult(
            broadcasts=[
                CardMovedMessage.create(record.to_dict(), message.data.get("from_location"))
            ],
            room_id=session_id
        )

    async def _handle_play_card(self, websocket: ServerConnection, message: Message) -> HandleResult:
        """Handle play-card-action request."""
        session_id = message.data.get("session_id")

        success, msg, record = await self._games.play_card(
            session_id=session_id,
            username=message.data.get("user_id"),
            player_card_id=message.data.get("player_card_id")
        )

        if not success:
            return HandleResult(
                response=ErrorMessage.create(msg, "PLAY_CARD_FAILED")
            )

        return HandleResult(
            broadcasts=[
                CardPlayedMessage.create(record.to_dict(), message.data.get("from_location"))
            ],
            room_id=session_id
        )
