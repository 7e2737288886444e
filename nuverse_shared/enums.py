"""
Enumerations used throughout the session server.
"""
from enum import Enum


class CardType(str, Enum):
    """Card variants. Each one owns its own set of optional attributes."""
    HERO = "Hero"
    ABILITY = "Ability"
    SUIT = "Suit"
    WEAPON = "Weapon"


class ActionType(str, Enum):
    """Action types recorded in the combat log."""
    CARD_CREATED = "Card Created"
    CARD_MOVED = "Card Moved"
    CARD_PLAYED = "Card Played"


class MessageType(str, Enum):
    """Types of messages between client and server."""
    # Client -> Server
    JOIN_GAME = "join-game"
    CREATE_CARD = "create-card"
    MOVE_CARD = "move-card"
    PLAY_CARD = "play-card-action"
    
    # Server -> Client
    GAME_STATE = "game-state"
    PLAYER_JOINED = "player-joined"
    PLAYER_LEFT = "player-left"
    CARD_CREATED = "card-created"
    CARD_MOVED = "card-moved"
    CARD_PLAYED = "card-played"
    
    # Errors
    ERROR = "error"
