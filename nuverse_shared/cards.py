"""
Card definitions as a tagged union.

A card is one of HeroCard, AbilityCard, SuitCard or WeaponCard, selected by
its ``card_type``. On the wire and in the database every variant is a flat
dict of columns; ``card_from_dict`` validates such a dict into the matching
variant and ``to_columns`` flattens it back, filling the other variants'
columns with None.
"""

from dataclasses import dataclass, field, fields
from typing import Any

from nuverse_shared.constants import (
    ALL_VARIANT_FIELDS,
    COMMON_CARD_FIELDS,
    VARIANT_FIELDS,
)
from nuverse_shared.enums import CardType


class CardValidationError(ValueError):
    """Raised when a card payload does not describe a valid card."""


@dataclass
class CardDefinition:
    """Fields shared by every card type."""
    card_name: str
    description: str | None = None
    is_active: bool = False
    power_level: int | None = None

    card_type: CardType = field(init=False)

    def variant_values(self) -> dict[str, Any]:
        """Values of the type-specific attributes."""
        common = set(COMMON_CARD_FIELDS)
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in common
        }

    def to_columns(self) -> dict[str, Any]:
        """Flatten to the wide ``cards`` row (unused variant columns are None)."""
        columns = {
            "card_name": self.card_name,
            "card_type": self.card_type.value,
            "description": self.description,
            "is_active": self.is_active,
            "power_level": self.power_level,
        }
        columns.update({name: None for name in ALL_VARIANT_FIELDS})
        columns.update(self.variant_values())
        return columns


@dataclass
class HeroCard(CardDefinition):
    card_hero_type: str | None = None
    card_hero_class: str | None = None
    card_hero_role: str | None = None

    def __post_init__(self):
        self.card_type = CardType.HERO


@dataclass
class AbilityCard(CardDefinition):
    card_ability_class_melee: bool | None = None
    card_ability_class_longrange: bool | None = None
    card_ability_class_areaofeffect: bool | None = None
    card_ability_class_duration: int | None = None
    card_ability_is_burst: bool | None = None
    card_ability_burst_link_action: str | None = None
    card_ability_burst_effect: str | None = None

    def __post_init__(self):
        self.card_type = CardType.ABILITY


@dataclass
class SuitCard(CardDefinition):
    card_suit_might_modifier: int | None = None
    card_suit_agility_modifier: int | None = None
    card_suit_guts_modifier: int | None = None
    card_suit_intellect_modifier: int | None = None
    card_suit_rally_modifier: int | None = None

    def __post_init__(self):
        self.card_type = CardType.SUIT


@dataclass
class WeaponCard(CardDefinition):
    card_weapon_damage: int | None = None
    card_weapon_range: int | None = None
    card_weapon_effect_slot1: str | None = None
    card_weapon_effect_slot2: str | None = None
    card_weapon_effect_slot3: str | None = None

    def __post_init__(self):
        self.card_type = CardType.WEAPON


CARD_CLASSES: dict[CardType, type[CardDefinition]] = {
    CardType.HERO: HeroCard,
    CardType.ABILITY: AbilityCard,
    CardType.SUIT: SuitCard,
    CardType.WEAPON: WeaponCard,
}


def _check_type(name: str, value: Any, expected: type) -> Any:
    """Validate a single optional value against its declared type."""
    if value is None:
        return None
    # bool is a subclass of int; keep them apart
    if expected is int and (isinstance(value, bool) or not isinstance(value, int)):
        raise CardValidationError(f"{name} must be an integer")
    if expected is bool and not isinstance(value, bool):
        raise CardValidationError(f"{name} must be a boolean")
    if expected is str and not isinstance(value, str):
        raise CardValidationError(f"{name} must be a string")
    return value


def card_from_dict(data: Any) -> CardDefinition:
    """
    Validate a flat card payload into its variant.

    Rejects unknown card types, unknown fields, and attributes that belong
    to a different card type than the declared one.

    Raises:
        CardValidationError: if the payload is not a valid card
    """
    if not isinstance(data, dict):
        raise CardValidationError("card_data must be an object")

    card_name = data.get("card_name")
    if not isinstance(card_name, str) or not card_name.strip():
        raise CardValidationError("card_name is required")

    raw_type = data.get("card_type")
    try:
        card_type = CardType(raw_type)
    except ValueError:
        allowed = ", ".join(t.value for t in CardType)
        raise CardValidationError(
            f"Unknown card_type {raw_type!r} (expected one of: {allowed})"
        ) from None

    own_fields = VARIANT_FIELDS[card_type.value]

    for key, value in data.items():
        if key in COMMON_CARD_FIELDS or key in own_fields:
            continue
        if key in ALL_VARIANT_FIELDS:
            # Explicit nulls for other variants are tolerated
            if value is None:
                continue
            raise CardValidationError(
                f"{key} is not a {card_type.value} attribute"
            )
        raise CardValidationError(f"Unknown card field: {key}")

    is_active = data.get("is_active")
    if is_active is None:
        is_active = False

    kwargs = {
        "card_name": card_name,
        "description": _check_type("description", data.get("description"), str),
        "is_active": _check_type("is_active", is_active, bool),
        "power_level": _check_type("power_level", data.get("power_level"), int),
    }
    for name, expected in own_fields.items():
        kwargs[name] = _check_type(name, data.get(name), expected)

    return CARD_CLASSES[card_type](**kwargs)
