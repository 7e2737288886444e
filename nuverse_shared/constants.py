"""
Session server constants shared by client and server.
"""

# Zones
CREATED_CARD_ZONE = "CreatedCardStorage"
DISCARD_ZONE = "DiscardPile"

# Snapshot
CATALOG_LIMIT = 50  # Card definitions sent with every game-state

# Definition fields common to every card type
COMMON_CARD_FIELDS = (
    "card_name",
    "card_type",
    "description",
    "is_active",
    "power_level",
)

# Optional attributes per card type
# Format: card_type value -> {column_name: python type}
HERO_FIELDS = {
    "card_hero_type": str,
    "card_hero_class": str,
    "card_hero_role": str,
}

ABILITY_FIELDS = {
    "card_ability_class_melee": bool,
    "card_ability_class_longrange": bool,
    "card_ability_class_areaofeffect": bool,
    "card_ability_class_duration": int,
    "card_ability_is_burst": bool,
    "card_ability_burst_link_action": str,
    "card_ability_burst_effect": str,
}

SUIT_FIELDS = {
    "card_suit_might_modifier": int,
    "card_suit_agility_modifier": int,
    "card_suit_guts_modifier": int,
    "card_suit_intellect_modifier": int,
    "card_suit_rally_modifier": int,
}

WEAPON_FIELDS = {
    "card_weapon_damage": int,
    "card_weapon_range": int,
    "card_weapon_effect_slot1": str,
    "card_weapon_effect_slot2": str,
    "card_weapon_effect_slot3": str,
}

VARIANT_FIELDS = {
    "Hero": HERO_FIELDS,
    "Ability": ABILITY_FIELDS,
    "Suit": SUIT_FIELDS,
    "Weapon": WEAPON_FIELDS,
}

# Every variant column, in schema order
ALL_VARIANT_FIELDS = (
    tuple(HERO_FIELDS)
    + tuple(ABILITY_FIELDS)
    + tuple(SUIT_FIELDS)
    + tuple(WEAPON_FIELDS)
)
