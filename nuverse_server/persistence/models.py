"""
Data models for database operations.

These are simple dataclasses that map to database rows. The wide ``cards``
row is kept flat here; the typed view lives in ``nuverse_shared.cards``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from nuverse_shared.constants import ABILITY_FIELDS, ALL_VARIANT_FIELDS


# Variant columns stored as INTEGER 0/1 that read back as booleans
BOOLEAN_VARIANT_FIELDS = tuple(
    name for name, kind in ABILITY_FIELDS.items() if kind is bool
)


def _optional_bool(value: Any) -> bool | None:
    return None if value is None else bool(value)


@dataclass
class SessionRecord:
    """Database representation of a game session."""
    session_id: int
    session_name: str
    gm_user_id: int
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SessionRecord":
        """Create from database row."""
        return cls(
            session_id=row["session_id"],
            session_name=row["session_name"],
            gm_user_id=row["gm_user_id"],
            created_at=row["created_at"]
        )


@dataclass
class SessionPlayer:
    """A user who has joined a session."""
    user_id: int
    username: str
    is_gm: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "is_gm": self.is_gm,
        }


@dataclass
class CatalogEntry:
    """Summary of a card definition, as listed in the snapshot catalog."""
    card_id: int
    card_name: str
    card_type: str
    description: str | None
    power_level: int | None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "CatalogEntry":
        return cls(
            card_id=row["card_id"],
            card_name=row["card_name"],
            card_type=row["card_type"],
            description=row["description"],
            power_level=row["power_level"]
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "card_id": self.card_id,
            "card_name": self.card_name,
            "card_type": self.card_type,
            "description": self.description,
            "power_level": self.power_level,
        }


@dataclass
class PlayerCardRecord:
    """
    A card instance joined with its definition.

    ``is_active`` is the instance flag; the definition's own flag is
    ``card_is_active``.
    """
    player_card_id: int
    card_id: int
    owner_id: int
    owner_username: str
    session_id: int
    location: str
    slot_id: int | None
    is_active: bool
    card_name: str
    card_type: str
    description: str | None = None
    card_is_active: bool = False
    power_level: int | None = None
    attributes: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PlayerCardRecord":
        """Create from a player_cards JOIN cards JOIN users row."""
        attributes = {name: row[name] for name in ALL_VARIANT_FIELDS}
        for name in BOOLEAN_VARIANT_FIELDS:
            attributes[name] = _optional_bool(attributes[name])
        return cls(
            player_card_id=row["player_card_id"],
            card_id=row["card_id"],
            owner_id=row["owner_id"],
            owner_username=row["owner_username"],
            session_id=row["session_id"],
            location=row["location"],
            slot_id=row["slot_id"],
            is_active=bool(row["is_active"]),
            card_name=row["card_name"],
            card_type=row["card_type"],
            description=row["description"],
            card_is_active=bool(row["card_is_active"]),
            power_level=row["power_level"],
            attributes=attributes
        )

    def to_dict(self) -> dict[str, Any]:
        """Flat payload sent to clients."""
        payload = {
            "player_card_id": self.player_card_id,
            "card_id": self.card_id,
            "owner_id": self.owner_id,
            "owner_username": self.owner_username,
            "session_id": self.session_id,
            "location": self.location,
            "slot_id": self.slot_id,
            "is_active": self.is_active,
            "card_name": self.card_name,
            "card_type": self.card_type,
            "description": self.description,
            "card_is_active": self.card_is_active,
            "power_level": self.power_level,
        }
        payload.update(self.attributes)
        return payload


@dataclass
class CombatLogRecord:
    """Database representation of a combat log entry."""
    log_id: int
    session_id: int
    user_id: int
    card_id: int | None
    action_type: str
    action_description: str | None
    timestamp: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "CombatLogRecord":
        """Create from database row."""
        return cls(
            log_id=row["log_id"],
            session_id=row["session_id"],
            user_id=row["user_id"],
            card_id=row["card_id"],
            action_type=row["action_type"],
            action_description=row["action_description"],
            timestamp=row["action_timestamp"]
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "log_id": self.log_id,
            "user_id": self.user_id,
            "card_id": self.card_id,
            "action_type": self.action_type,
            "action_description": self.action_description,
            "timestamp": self.timestamp,
        }
