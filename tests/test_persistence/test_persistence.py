"""
Tests for the persistence layer.

Run with: python3 tests/test_persistence/test_persistence.py
"""

import sqlite3
import sys
import tempfile
import threading
import unittest
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from nuverse_server.persistence import (
    Database,
    GameRepository,
    PoolTimeoutError,
    init_database,
)
from nuverse_shared.cards import card_from_dict
from nuverse_shared.constants import CATALOG_LIMIT, CREATED_CARD_ZONE, DISCARD_ZONE
from nuverse_shared.enums import ActionType


class PersistenceTestCase(unittest.TestCase):
    """Base test case with database setup/teardown."""

    def setUp(self):
        """Create a temporary database for each test."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = Path(self.temp_dir.name) / "test.db"

        self.db = init_database(self.db_path, pool_size=4)
        self.repository = GameRepository(self.db)

    def tearDown(self):
        """Clean up the temporary database."""
        self.db.close()
        self.temp_dir.cleanup()

    def create_session(self, name: str = "arena1", gm: str = "alice"):
        """Create a user and a session they are GM of."""
        user_id = self.repository.get_or_create_user(gm)
        session, _ = self.repository.get_or_create_session(name, user_id)
        return user_id, session

    def create_card(self, user_id: int, session_id: int, name: str = "Fire Bolt", username: str = "alice") -> int:
        """Create an Ability card in a session and return its instance id."""
        card = card_from_dict({
            "card_name": name,
            "card_type": "Ability",
            "description": "A bolt of fire",
            "power_level": 3,
            "card_ability_class_longrange": True,
        })
        return self.repository.create_card(user_id, username, session_id, card)

    def count_users(self, username: str | None = None) -> int:
        """Count user rows, optionally only those with a given username."""
        with self.db.get_connection() as conn:
            if username is None:
                row = conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) AS n FROM users WHERE username = ?",
                    (username,)
                ).fetchone()
            return row["n"]

    def add_log_entry(self, session_id: int, user_id: int, card_id, action_type: str, description: str) -> None:
        """Insert a combat log row directly."""
        with self.db.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO combat_log (session_id, user_id, card_id, action_type, action_description)
                VALUES (?, ?, ?, ?, ?)
                """,
                (session_id, user_id, card_id, action_type, description)
            )


class TestDatabase(PersistenceTestCase):
    """Test database initialization and the connection pool."""

    def test_tables_created(self):
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            tables = {row["name"] for row in cursor.fetchall()}

        self.assertEqual(
            tables,
            {"users", "game_sessions", "player_sessions", "cards", "player_cards", "combat_log"}
        )

    def test_schema_is_idempotent(self):
        user_id = self.repository.get_or_create_user("alice")
        second = Database(self.db_path)
        try:
            self.assertEqual(GameRepository(second).get_user_id("alice"), user_id)
        finally:
            second.close()

    def test_rollback_on_error(self):
        with self.assertRaises(sqlite3.IntegrityError):
            with self.db.get_connection() as conn:
                conn.execute("INSERT INTO users (username) VALUES ('carol')")
                conn.execute("INSERT INTO users (username) VALUES ('carol')")

        self.assertIsNone(self.repository.get_user_id("carol"))

    def test_pool_is_bounded(self):
        db = Database(self.db_path, pool_size=1, pool_timeout=0.05)
        try:
            with db.get_connection():
                with self.assertRaises(PoolTimeoutError):
                    with db.get_connection():
                        pass
            # Released again after the outer block
            with db.get_connection() as conn:
                conn.execute("SELECT 1")
        finally:
            db.close()


class TestUsers(PersistenceTestCase):
    """Identity resolution."""

    def test_get_or_create_is_idempotent(self):
        first = self.repository.get_or_create_user("alice")
        second = self.repository.get_or_create_user("alice")

        self.assertEqual(first, second)
        self.assertEqual(self.count_users("alice"), 1)

    def test_usernames_are_case_sensitive(self):
        lower = self.repository.get_or_create_user("alice")
        upper = self.repository.get_or_create_user("Alice")
        self.assertNotEqual(lower, upper)

    def test_get_user_id_does_not_create(self):
        self.assertIsNone(self.repository.get_user_id("ghost"))
        self.assertEqual(self.count_users(), 0)

    def test_concurrent_first_reference_creates_one_user(self):
        results = []

        def resolve():
            results.append(self.repository.get_or_create_user("dora"))

        threads = [threading.Thread(target=resolve) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(set(results)), 1)
        self.assertEqual(self.count_users("dora"), 1)


class TestSessions(PersistenceTestCase):
    """Session resolution and join bookkeeping."""

    def test_session_keyed_by_name(self):
        alice = self.repository.get_or_create_user("alice")
        bob = self.repository.get_or_create_user("bob")

        first, created_first = self.repository.get_or_create_session("table-7", alice)
        second, created_second = self.repository.get_or_create_session("table-7", bob)

        self.assertTrue(created_first)
        self.assertFalse(created_second)
        self.assertEqual(first.session_id, second.session_id)
        # The first joiner stays GM
        self.assertEqual(second.gm_user_id, alice)

    def test_get_session(self):
        _, session = self.create_session()
        loaded = self.repository.get_session(session.session_id)
        self.assertEqual(loaded.session_name, "arena1")
        self.assertIsNone(self.repository.get_session(9999))

    def test_player_sessions(self):
        alice, session = self.create_session()
        bob = self.repository.get_or_create_user("bob")

        self.assertTrue(self.repository.ensure_player_session(alice, session.session_id))
        self.assertFalse(self.repository.ensure_player_session(alice, session.session_id))
        self.repository.ensure_player_session(bob, session.session_id)

        players = self.repository.get_session_players(session.session_id)
        self.assertEqual([p.username for p in players], ["alice", "bob"])
        self.assertTrue(players[0].is_gm)
        self.assertFalse(players[1].is_gm)


class TestCards(PersistenceTestCase):
    """Card creation, listing and relocation."""

    def test_create_card_writes_definition_instance_and_log(self):
        alice, session = self.create_session()
        player_card_id = self.create_card(alice, session.session_id)

        record = self.repository.get_player_card(player_card_id)
        self.assertEqual(record.card_name, "Fire Bolt")
        self.assertEqual(record.card_type, "Ability")
        self.assertEqual(record.owner_id, alice)
        self.assertEqual(record.owner_username, "alice")
        self.assertEqual(record.location, CREATED_CARD_ZONE)
        self.assertIsNone(record.slot_id)
        self.assertFalse(record.is_active)
        self.assertIs(record.attributes["card_ability_class_longrange"], True)
        self.assertIsNone(record.attributes["card_ability_class_melee"])
        self.assertIsNone(record.attributes["card_weapon_damage"])

        log = self.repository.get_combat_log(session.session_id)
        self.assertEqual(len(log), 1)
        self.assertEqual(log[0].action_type, ActionType.CARD_CREATED.value)
        self.assertEqual(log[0].card_id, record.card_id)
        self.assertEqual(log[0].action_description, 'alice created card "Fire Bolt"')

    def test_create_card_is_atomic(self):
        alice, _ = self.create_session()
        card = card_from_dict({"card_name": "Orphan", "card_type": "Hero"})

        # Unknown session violates the player_cards foreign key
        with self.assertRaises(sqlite3.IntegrityError):
            self.repository.create_card(alice, "alice", 9999, card)

        self.assertEqual(self.repository.get_card_catalog(), [])

    def test_catalog_is_limited_and_ordered(self):
        alice, session = self.create_session()
        for i in range(CATALOG_LIMIT + 5):
            self.create_card(alice, session.session_id, name=f"Card {i}")

        catalog = self.repository.get_card_catalog()
        self.assertEqual(len(catalog), CATALOG_LIMIT)
        ids = [entry.card_id for entry in catalog]
        self.assertEqual(ids, sorted(ids))
        self.assertEqual(catalog[0].card_name, "Card 0")

    def test_session_cards_scoped_to_session(self):
        alice, arena = self.create_session("arena1")
        _, other = self.create_session("arena2")
        self.create_card(alice, arena.session_id, name="Mine")
        self.create_card(alice, other.session_id, name="Elsewhere")

        cards = self.repository.get_session_cards(arena.session_id)
        self.assertEqual([c.card_name for c in cards], ["Mine"])

    def test_move_by_owner(self):
        alice, session = self.create_session()
        player_card_id = self.create_card(alice, session.session_id)

        updated = self.repository.move_player_card(
            player_card_id, alice, session.session_id,
            "battlefield", 3, True,
            ActionType.CARD_MOVED, "alice moved card to battlefield slot 3"
        )
        self.assertTrue(updated)

        record = self.repository.get_player_card(player_card_id)
        self.assertEqual(record.location, "battlefield")
        self.assertEqual(record.slot_id, 3)
        self.assertTrue(record.is_active)
        self.assertEqual(len(self.repository.get_combat_log(session.session_id)), 2)

    def test_move_rejected_for_wrong_owner_or_session(self):
        alice, session = self.create_session()
        _, other = self.create_session("arena2", gm="bob")
        bob = self.repository.get_user_id("bob")
        player_card_id = self.create_card(alice, session.session_id)

        cases = [
            (player_card_id, bob, session.session_id),
            (player_card_id, alice, other.session_id),
            (9999, alice, session.session_id),
        ]
        for card_id, user_id, session_id in cases:
            with self.subTest(card_id=card_id, user_id=user_id, session_id=session_id):
                self.assertFalse(self.repository.move_player_card(
                    card_id, user_id, session_id, "battlefield", 1, True,
                    ActionType.CARD_MOVED, "nope"
                ))

        record = self.repository.get_player_card(player_card_id)
        self.assertEqual(record.location, CREATED_CARD_ZONE)
        # Only the creation was logged
        self.assertEqual(len(self.repository.get_combat_log(session.session_id)), 1)

    def test_play_to_discard(self):
        alice, session = self.create_session()
        player_card_id = self.create_card(alice, session.session_id)
        self.repository.move_player_card(
            player_card_id, alice, session.session_id, "battlefield", 2, True,
            ActionType.CARD_MOVED, "moved"
        )
        self.repository.move_player_card(
            player_card_id, alice, session.session_id, DISCARD_ZONE, None, False,
            ActionType.CARD_PLAYED, "played"
        )

        record = self.repository.get_player_card(player_card_id)
        self.assertEqual(record.location, DISCARD_ZONE)
        self.assertIsNone(record.slot_id)
        self.assertFalse(record.is_active)


class TestCombatLog(PersistenceTestCase):
    """Combat log ordering."""

    def test_log_oldest_first(self):
        alice, session = self.create_session()
        for i in range(5):
            self.add_log_entry(session.session_id, alice, None, "Note", f"entry {i}")

        log = self.repository.get_combat_log(session.session_id)
        self.assertEqual([e.action_description for e in log], [f"entry {i}" for i in range(5)])
        self.assertEqual([e.log_id for e in log], sorted(e.log_id for e in log))
        self.assertIsNotNone(log[0].timestamp)

    def test_log_scoped_to_session(self):
        alice, arena = self.create_session("arena1")
        _, other = self.create_session("arena2")
        self.add_log_entry(other.session_id, alice, None, "Note", "elsewhere")
        self.assertEqual(self.repository.get_combat_log(arena.session_id), [])


def run_tests():
    """Run all persistence tests."""
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    test_classes = [
        TestDatabase,
        TestUsers,
        TestSessions,
        TestCards,
        TestCombatLog,
    ]

    for test_class in test_classes:
        suite.addTests(loader.loadTestsFromTestCase(test_class))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return result.wasSuccessful()


if __name__ == "__main__":
    success = run_tests()
    sys.exit(0 if success else 1)
