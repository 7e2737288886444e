"""
Message protocol for client-server communication.

All messages are JSON objects with a "type" field and optional "data" field.
"""

from dataclasses import dataclass, field
from typing import Any
import json

from nuverse_shared.enums import MessageType


@dataclass
class Message:
    """Base message structure for all client-server communication."""
    type: MessageType
    data: dict[str, Any] = field(default_factory=dict)
    request_id: str | None = None  # Optional, for matching requests to responses

    def to_json(self) -> str:
        """Serialize message to JSON string."""
        return json.dumps(self.to_dict())

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "type": self.type.value,
            "data": self.data,
            "request_id": self.request_id,
        }

    @classmethod
    def from_json(cls, json_str: str) -> "Message":
        """Deserialize message from JSON string."""
        raw = json.loads(json_str)
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: dict) -> "Message":
        """Create message from dictionary."""
        data = raw.get("data") or {}
        if not isinstance(data, dict):
            raise ValueError("data must be an object")
        return cls(
            type=MessageType(raw["type"]),
            data=data,
            request_id=raw.get("request_id"),
        )


@dataclass
class ErrorMessage(Message):
    """Error response message, sent to the originating caller only."""
    type: MessageType = MessageType.ERROR

    @classmethod
    def create(cls, message: str, code: str = "ERROR", request_id: str | None = None) -> "ErrorMessage":
        """Create an error message."""
        return cls(
            data={"message": message, "code": code},
            request_id=request_id,
        )


# =============================================================================
# Client -> Server
# =============================================================================

@dataclass
class JoinGameRequest(Message):
    """Request to join (or lazily create) a named session."""
    type: MessageType = MessageType.JOIN_GAME

    @classmethod
    def create(
        cls,
        session_name: str,
        user_id: str,
        request_id: str | None = None
    ) -> "JoinGameRequest":
        return cls(
            data={
                "session_name": session_name,
                "user_id": user_id,
            },
            request_id=request_id,
        )


@dataclass
class CreateCardRequest(Message):
    """Request to create a card definition and place one copy in the session."""
    type: MessageType = MessageType.CREATE_CARD

    @classmethod
    def create(
        cls,
        session_id: int,
        user_id: str,
        card_data: dict,
        request_id: str | None = None
    ) -> "CreateCardRequest":
        return cls(
            data={
                "session_id": session_id,
                "user_id": user_id,
                "card_data": card_data,
            },
            request_id=request_id,
        )


@dataclass
class MoveCardRequest(Message):
    """Request to move a card instance to another zone/slot."""
    type: MessageType = MessageType.MOVE_CARD

    @classmethod
    def create(
        cls,
        session_id: int,
        user_id: str,
        player_card_id: int,
        from_location: str,
        to_location: str,
        to_slot_id: int | None = None,
        is_active: bool = False,
        request_id: str | None = None
    ) -> "MoveCardRequest":
        return cls(
            data={
                "session_id": session_id,
                "user_id": user_id,
                "player_card_id": player_card_id,
                "from_location": from_location,
                "to_location": to_location,
                "to_slot_id": to_slot_id,
                "is_active": is_active,
            },
            request_id=request_id,
        )


@dataclass
class PlayCardRequest(Message):
    """Request to play (discard) a card instance."""
    type: MessageType = MessageType.PLAY_CARD

    @classmethod
    def create(
        cls,
        session_id: int,
        user_id: str,
        player_card_id: int,
        from_location: str,
        request_id: str | None = None
    ) -> "PlayCardRequest":
        return cls(
            data={
                "session_id": session_id,
                "user_id": user_id,
                "player_card_id": player_card_id,
                "from_location": from_location,
            },
            request_id=request_id,
        )


# =============================================================================
# Server -> Client
# =============================================================================

@dataclass
class GameStateMessage(Message):
    """Full session snapshot, sent to a joining connection only."""
    type: MessageType = MessageType.GAME_STATE

    @classmethod
    def create(cls, game_state: dict, request_id: str | None = None) -> "GameStateMessage":
        return cls(data=game_state, request_id=request_id)


@dataclass
class PlayerJoinedMessage(Message):
    """Broadcast to the rest of the room when a player joins."""
    type: MessageType = MessageType.PLAYER_JOINED

    @classmethod
    def create(cls, user_id: int, username: str) -> "PlayerJoinedMessage":
        return cls(data={
            "user_id": user_id,
            "username": username,
        })


@dataclass
class PlayerLeftMessage(Message):
    """Broadcast to the rest of the room when a player leaves or disconnects."""
    type: MessageType = MessageType.PLAYER_LEFT

    @classmethod
    def create(cls, user_id: int, username: str) -> "PlayerLeftMessage":
        return cls(data={
            "user_id": user_id,
            "username": username,
        })


@dataclass
class CardCreatedMessage(Message):
    """Broadcast to the whole room when a card is created."""
    type: MessageType = MessageType.CARD_CREATED

    @classmethod
    def create(cls, card: dict) -> "CardCreatedMessage":
        return cls(data={"card": card})


@dataclass
class CardMovedMessage(Message):
    """Broadcast to the whole room when a card instance is moved."""
    type: MessageType = MessageType.CARD_MOVED

    @classmethod
    def create(cls, card: dict, previous_location: str | None) -> "CardMovedMessage":
        return cls(data={
            "card": card,
            "previous_location": previous_location,
        })


@dataclass
class CardPlayedMessage(Message):
    """Broadcast to the whole room when a card instance is played."""
    type: MessageType = MessageType.CARD_PLAYED

    @classmethod
    def create(cls, card: dict, previous_location: str | None) -> "CardPlayedMessage":
        return cls(data={
            "card": card,
            "previous_location": previous_location,
        })


# =============================================================================
# Parsing
# =============================================================================

MESSAGE_CLASSES: dict[MessageType, type[Message]] = {
    MessageType.JOIN_GAME: JoinGameRequest,
    MessageType.CREATE_CARD: CreateCardRequest,
    MessageType.MOVE_CARD: MoveCardRequest,
    MessageType.PLAY_CARD: PlayCardRequest,
    MessageType.GAME_STATE: GameStateMessage,
    MessageType.PLAYER_JOINED: PlayerJoinedMessage,
    MessageType.PLAYER_LEFT: PlayerLeftMessage,
    MessageType.CARD_CREATED: CardCreatedMessage,
    MessageType.CARD_MOVED: CardMovedMessage,
    MessageType.CARD_PLAYED: CardPlayedMessage,
    MessageType.ERROR: ErrorMessage,
}


def parse_message(json_str: str) -> Message:
    """
    Parse a JSON string into the appropriate Message subclass.

    Raises:
        json.JSONDecodeError: if the string is not valid JSON
        ValueError: if the type is unknown or data is not an object
        KeyError: if the type field is missing
    """
    raw = json.loads(json_str)
    if not isinstance(raw, dict):
        raise ValueError("Message must be a JSON object")
    base = Message.from_dict(raw)

    msg_class = MESSAGE_CLASSES.get(base.type, Message)
    return msg_class(
        data=base.data,
        request_id=base.request_id,
    )
