"""
Tests for card validation and the wire protocol.

Run with: python3 tests/test_shared/test_cards.py
"""

import json
import sys
import unittest
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from nuverse_shared.cards import (
    AbilityCard,
    CardValidationError,
    HeroCard,
    SuitCard,
    WeaponCard,
    card_from_dict,
)
from nuverse_shared.constants import ALL_VARIANT_FIELDS
from nuverse_shared.enums import CardType, MessageType
from nuverse_shared.protocol import (
    CardMovedMessage,
    ErrorMessage,
    JoinGameRequest,
    MoveCardRequest,
    parse_message,
)


class TestCardFromDict(unittest.TestCase):
    """Validation of card payloads into the tagged union."""

    def test_hero_card(self):
        card = card_from_dict({
            "card_name": "Captain Nova",
            "card_type": "Hero",
            "description": "Leads from the front",
            "power_level": 7,
            "card_hero_class": "Paladin",
            "card_hero_role": "Tank",
        })
        self.assertIsInstance(card, HeroCard)
        self.assertEqual(card.card_type, CardType.HERO)
        self.assertEqual(card.card_hero_class, "Paladin")
        self.assertIsNone(card.card_hero_type)
        self.assertFalse(card.is_active)

    def test_each_type_maps_to_its_class(self):
        cases = {
            "Ability": AbilityCard,
            "Suit": SuitCard,
            "Weapon": WeaponCard,
        }
        for card_type, expected in cases.items():
            with self.subTest(card_type=card_type):
                card = card_from_dict({"card_name": "X", "card_type": card_type})
                self.assertIsInstance(card, expected)

    def test_to_columns_fills_other_variants_with_none(self):
        card = card_from_dict({
            "card_name": "Fire Bolt",
            "card_type": "Ability",
            "is_active": True,
            "card_ability_class_longrange": True,
            "card_ability_burst_effect": "Ignite",
        })
        columns = card.to_columns()

        self.assertEqual(columns["card_type"], "Ability")
        self.assertTrue(columns["is_active"])
        self.assertTrue(columns["card_ability_class_longrange"])
        self.assertEqual(columns["card_ability_burst_effect"], "Ignite")
        for name in ALL_VARIANT_FIELDS:
            if not name.startswith("card_ability_"):
                self.assertIsNone(columns[name], name)
        self.assertEqual(len(columns), 5 + len(ALL_VARIANT_FIELDS))

    def test_rejects_other_variant_field(self):
        with self.assertRaises(CardValidationError) as ctx:
            card_from_dict({
                "card_name": "Broadsword",
                "card_type": "Weapon",
                "card_hero_class": "Knight",
            })
        self.assertIn("card_hero_class", str(ctx.exception))

    def test_tolerates_explicit_null_for_other_variant(self):
        card = card_from_dict({
            "card_name": "Broadsword",
            "card_type": "Weapon",
            "card_weapon_damage": 4,
            "card_hero_class": None,
        })
        self.assertEqual(card.card_weapon_damage, 4)

    def test_rejects_unknown_type_and_field(self):
        with self.assertRaises(CardValidationError):
            card_from_dict({"card_name": "X", "card_type": "Spell"})
        with self.assertRaises(CardValidationError):
            card_from_dict({"card_name": "X", "card_type": "Hero", "mana": 3})

    def test_rejects_missing_name(self):
        with self.assertRaises(CardValidationError):
            card_from_dict({"card_type": "Hero"})
        with self.assertRaises(CardValidationError):
            card_from_dict({"card_name": "   ", "card_type": "Hero"})
        with self.assertRaises(CardValidationError):
            card_from_dict("not a dict")

    def test_rejects_wrong_value_types(self):
        with self.assertRaises(CardValidationError):
            card_from_dict({"card_name": "X", "card_type": "Suit", "card_suit_guts_modifier": "2"})
        with self.assertRaises(CardValidationError):
            card_from_dict({"card_name": "X", "card_type": "Hero", "power_level": True})
        with self.assertRaises(CardValidationError):
            card_from_dict({"card_name": "X", "card_type": "Ability", "card_ability_is_burst": 1})

    def test_validation_error_is_value_error(self):
        self.assertTrue(issubclass(CardValidationError, ValueError))


class TestProtocol(unittest.TestCase):
    """Message envelope parsing and construction."""

    def test_parse_join_request(self):
        raw = JoinGameRequest.create("arena1", "alice", request_id="r1").to_json()
        message = parse_message(raw)

        self.assertIsInstance(message, JoinGameRequest)
        self.assertEqual(message.type, MessageType.JOIN_GAME)
        self.assertEqual(message.data["session_name"], "arena1")
        self.assertEqual(message.request_id, "r1")

    def test_wire_names(self):
        raw = json.loads(MoveCardRequest.create(1, "alice", 5, "Hand", "battlefield", 3, True).to_json())
        self.assertEqual(raw["type"], "move-card")
        self.assertEqual(raw["data"]["to_slot_id"], 3)

        moved = CardMovedMessage.create({"player_card_id": 5}, "Hand").to_dict()
        self.assertEqual(moved["type"], "card-moved")
        self.assertEqual(moved["data"]["previous_location"], "Hand")

    def test_error_message(self):
        error = ErrorMessage.create("nope", "MOVE_CARD_FAILED").to_dict()
        self.assertEqual(error["type"], "error")
        self.assertEqual(error["data"], {"message": "nope", "code": "MOVE_CARD_FAILED"})

    def test_parse_rejects_bad_input(self):
        with self.assertRaises(json.JSONDecodeError):
            parse_message("{not json")
        with self.assertRaises(ValueError):
            parse_message(json.dumps({"type": "fly-away"}))
        with self.assertRaises(ValueError):
            parse_message(json.dumps(["join-game"]))
        with self.assertRaises(KeyError):
            parse_message(json.dumps({"data": {}}))


if __name__ == "__main__":
    unittest.main(verbosity=2)
