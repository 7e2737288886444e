"""
Repository layer for session persistence operations.

Handles all database reads and writes for users, sessions, cards,
card instances and the combat log. Every public method runs in its own
transaction; methods that write several rows write them atomically.
"""

import sqlite3

from nuverse_server.persistence.database import Database
from nuverse_server.persistence.models import (
    SessionRecord,
    SessionPlayer,
    CatalogEntry,
    PlayerCardRecord,
    CombatLogRecord,
)
from nuverse_shared.cards import CardDefinition
from nuverse_shared.constants import (
    ALL_VARIANT_FIELDS,
    CATALOG_LIMIT,
    CREATED_CARD_ZONE,
)
from nuverse_shared.enums import ActionType


CARD_COLUMNS = (
    "card_name",
    "card_type",
    "description",
    "is_active",
    "power_level",
) + ALL_VARIANT_FIELDS

PLAYER_CARD_SELECT = f"""
    SELECT pc.player_card_id, pc.card_id, pc.session_id, pc.location,
           pc.slot_id, pc.is_active,
           pc.user_id AS owner_id, u.username AS owner_username,
           c.card_name, c.card_type, c.description,
           c.is_active AS card_is_active, c.power_level,
           {", ".join("c." + name for name in ALL_VARIANT_FIELDS)}
    FROM player_cards pc
    JOIN cards c ON pc.card_id = c.card_id
    JOIN users u ON pc.user_id = u.user_id
"""


class GameRepository:
    """
    Repository for session persistence operations.

    Provides high-level methods for the join/create/move/play flows,
    abstracting away the database details.
    """

    def __init__(self, database: Database):
        self.db = database

    # =========================================================================
    # Users
    # =========================================================================

    def get_or_create_user(self, username: str) -> int:
        """
        Return the user_id for a username, creating the user if absent.

        Concurrent first references to the same new username converge on one
        row through the UNIQUE constraint.
        """
        with self.db.get_connection() as conn:
            conn.execute(
                "INSERT INTO users (username) VALUES (?) ON CONFLICT(username) DO NOTHING",
                (username,)
            )
            row = conn.execute(
                "SELECT user_id FROM users WHERE username = ?",
                (username,)
            ).fetchone()
            return row["user_id"]

    def get_user_id(self, username: str) -> int | None:
        """Look up a user_id without creating the user."""
        with self.db.get_connection() as conn:
            row = conn.execute(
                "SELECT user_id FROM users WHERE username = ?",
                (username,)
            ).fetchone()
            return row["user_id"] if row else None

    # =========================================================================
    # Sessions
    # =========================================================================

    def get_or_create_session(self, session_name: str, gm_user_id: int) -> tuple[SessionRecord, bool]:
        """
        Return the session with this name, creating it with ``gm_user_id``
        as game master if it does not exist.

        Returns:
            Tuple of (SessionRecord, created)
        """
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO game_sessions (session_name, gm_user_id)
                VALUES (?, ?)
                ON CONFLICT(session_name) DO NOTHING
                """,
                (session_name, gm_user_id)
            )
            created = cursor.rowcount > 0
            row = conn.execute(
                "SELECT * FROM game_sessions WHERE session_name = ?",
                (session_name,)
            ).fetchone()
            return SessionRecord.from_row(dict(row)), created

    def get_session(self, session_id: int) -> SessionRecord | None:
        """Get a session by ID."""
        with self.db.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM game_sessions WHERE session_id = ?",
                (session_id,)
            ).fetchone()

            if row:
                return SessionRecord.from_row(dict(row))
            return None

    def ensure_player_session(self, user_id: int, session_id: int) -> bool:
        """
        Record that a user joined a session.

        Returns:
            True if a new row was created, False if it already existed
        """
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO player_sessions (user_id, session_id)
                VALUES (?, ?)
                ON CONFLICT(user_id, session_id) DO NOTHING
                """,
                (user_id, session_id)
            )
            return cursor.rowcount > 0

    def get_session_players(self, session_id: int) -> list[SessionPlayer]:
        """Get every user who has joined a session, in join order."""
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT u.user_id, u.username, (gs.gm_user_id = u.user_id) AS is_gm
                FROM player_sessions ps
                JOIN users u ON ps.user_id = u.user_id
                JOIN game_sessions gs ON ps.session_id = gs.session_id
                WHERE ps.session_id = ?
                ORDER BY ps.joined_at ASC, u.user_id ASC
                """,
                (session_id,)
            )
            return [
                SessionPlayer(
                    user_id=row["user_id"],
                    username=row["username"],
                    is_gm=bool(row["is_gm"])
                )
                for row in cursor.fetchall()
            ]

    # =========================================================================
    # Cards
    # =========================================================================

    def get_card_catalog(self, limit: int = CATALOG_LIMIT) -> list[CatalogEntry]:
        """Get the first ``limit`` card definitions ordered by card_id."""
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT card_id, card_name, card_type, description, power_level
                FROM cards
                ORDER BY card_id ASC
                LIMIT ?
                """,
                (limit,)
            )
            return [CatalogEntry.from_row(dict(row)) for row in cursor.fetchall()]

    def create_card(
        self,
        user_id: int,
        username: str,
        session_id: int,
        card: CardDefinition
    ) -> int:
        """
        Insert a card definition, place one inactive copy of it in the
        session's created-card zone, and log the creation.

        All three rows commit together.

        Returns:
            The new player_card_id
        """
        columns = card.to_columns()
        values = [columns[name] for name in CARD_COLUMNS]

        with self.db.get_connection() as conn:
            cursor = conn.execute(
                f"""
                INSERT INTO cards ({", ".join(CARD_COLUMNS)})
                VALUES ({", ".join("?" for _ in CARD_COLUMNS)})
                """,
                values
            )
            card_id = cursor.lastrowid

            cursor = conn.execute(
                """
                INSERT INTO player_cards (user_id, card_id, session_id, location, slot_id, is_active)
                VALUES (?, ?, ?, ?, NULL, 0)
                """,
                (user_id, card_id, session_id, CREATED_CARD_ZONE)
            )
            player_card_id = cursor.lastrowid

            self._insert_log_entry(
                conn,
                session_id=session_id,
                user_id=user_id,
                card_id=card_id,
                action_type=ActionType.CARD_CREATED,
                description=f'{username} created card "{card.card_name}"'
            )

            return player_card_id

    def get_player_card(self, player_card_id: int) -> PlayerCardRecord | None:
        """Get a card instance joined with its definition."""
        with self.db.get_connection() as conn:
            row = conn.execute(
                PLAYER_CARD_SELECT + " WHERE pc.player_card_id = ?",
                (player_card_id,)
            ).fetchone()

            if row:
                return PlayerCardRecord.from_row(dict(row))
            return None

    def get_session_cards(self, session_id: int) -> list[PlayerCardRecord]:
        """Get every card instance in a session joined with its definition."""
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                PLAYER_CARD_SELECT + " WHERE pc.session_id = ? ORDER BY pc.player_card_id ASC",
                (session_id,)
            )
            return [PlayerCardRecord.from_row(dict(row)) for row in cursor.fetchall()]

    def move_player_card(
        self,
        player_card_id: int,
        user_id: int,
        session_id: int,
        location: str,
        slot_id: int | None,
        is_active: bool,
        action_type: ActionType,
        description: str
    ) -> bool:
        """
        Relocate a card instance owned by ``user_id`` in ``session_id`` and
        log the action.

        The owner and session are part of the update's WHERE clause; nothing
        is written (not even the log entry) when they do not match.

        Returns:
            True if the instance was updated, False if no row matched
        """
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE player_cards
                SET location = ?, slot_id = ?, is_active = ?
                WHERE player_card_id = ? AND user_id = ? AND session_id = ?
                """,
                (location, slot_id, int(is_active), player_card_id, user_id, session_id)
            )
            if cursor.rowcount == 0:
                return False

            row = conn.execute(
                "SELECT card_id FROM player_cards WHERE player_card_id = ?",
                (player_card_id,)
            ).fetchone()

            self._insert_log_entry(
                conn,
                session_id=session_id,
                user_id=user_id,
                card_id=row["card_id"],
                action_type=action_type,
                description=description
            )
            return True

    # =========================================================================
    # Combat Log
    # =========================================================================

    def get_combat_log(self, session_id: int) -> list[CombatLogRecord]:
        """Get a session's full combat log, oldest first."""
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT * FROM combat_log
                WHERE session_id = ?
                ORDER BY action_timestamp ASC, log_id ASC
                """,
                (session_id,)
            )
            return [CombatLogRecord.from_row(dict(row)) for row in cursor.fetchall()]

    def _insert_log_entry(
        self,
        conn: sqlite3.Connection,
        session_id: int,
        user_id: int,
        card_id: int | None,
        action_type: ActionType | str,
        description: str
    ) -> int:
        """Insert a log row on an open connection (no commit)."""
        if isinstance(action_type, ActionType):
            action_type = action_type.value
        cursor = conn.execute(
            """
            INSERT INTO combat_log (session_id, user_id, card_id, action_type, action_description)
            VALUES (?, ?, ?, ?, ?)
            """,
            (session_id, user_id, card_id, action_type, description)
        )
        return cursor.lastrowid
