"""
Database connection management and initialization.
"""

import logging
import queue
import sqlite3
import threading
from pathlib import Path
from contextlib import contextmanager
from typing import Generator

from nuverse_server.config import settings


logger = logging.getLogger(__name__)


class PoolTimeoutError(RuntimeError):
    """Raised when no pooled connection became free within the pool timeout."""


class Database:
    """
    SQLite database manager with a bounded connection pool.

    Connections are created lazily up to ``pool_size``; callers beyond that
    wait for one to be released (forever unless ``pool_timeout`` is set).
    Each ``get_connection()`` block is one transaction.
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        pool_size: int | None = None,
        pool_timeout: float | None = None
    ):
        self.db_path = str(db_path or settings.DATABASE_PATH)
        self.pool_size = pool_size or settings.DB_POOL_SIZE
        self.pool_timeout = pool_timeout if pool_timeout is not None else settings.DB_POOL_TIMEOUT

        self._idle: queue.LifoQueue[sqlite3.Connection] = queue.LifoQueue()
        self._slots = threading.BoundedSemaphore(self.pool_size)
        self._all: list[sqlite3.Connection] = []
        self._lock = threading.Lock()

        self._ensure_directory()
        self._ensure_schema()

    def _ensure_directory(self) -> None:
        """Create database directory if it doesn't exist."""
        db_file = Path(self.db_path)
        db_file.parent.mkdir(parents=True, exist_ok=True)

    def _ensure_schema(self) -> None:
        """Initialize database schema."""
        with self.get_connection() as conn:
            self._create_tables(conn)

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Acquire a pooled connection for one transaction.

        Commits when the block exits normally, rolls back on error, and
        always returns the connection to the pool.

        Usage:
            with db.get_connection() as conn:
                cursor = conn.execute("SELECT ...")
        """
        conn = self._acquire()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._release(conn)

    def _acquire(self) -> sqlite3.Connection:
        if not self._slots.acquire(timeout=self.pool_timeout):
            raise PoolTimeoutError(
                f"No database connection available after {self.pool_timeout}s"
            )
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass
        try:
            return self._create_connection()
        except Exception:
            self._slots.release()
            raise

    def _release(self, conn: sqlite3.Connection) -> None:
        self._idle.put(conn)
        self._slots.release()

    def _create_connection(self) -> sqlite3.Connection:
        """Create a new database connection with optimal settings."""
        conn = sqlite3.connect(
            self.db_path,
            check_same_thread=False,
            timeout=30.0
        )

        # Enable foreign keys
        conn.execute("PRAGMA foreign_keys = ON")

        # Use WAL mode for better concurrent access
        conn.execute("PRAGMA journal_mode = WAL")

        # Return rows as dictionaries
        conn.row_factory = sqlite3.Row

        with self._lock:
            self._all.append(conn)
        logger.debug(f"Opened database connection {len(self._all)}/{self.pool_size}")

        return conn

    def _create_tables(self, conn: sqlite3.Connection) -> None:
        """Create all database tables."""
        conn.executescript(SCHEMA_SQL)

    def close(self) -> None:
        """Close every connection the pool has opened."""
        with self._lock:
            for conn in self._all:
                conn.close()
            self._all.clear()
        while True:
            try:
                self._idle.get_nowait()
            except queue.Empty:
                break


SCHEMA_SQL = """
-- Users: a username doubles as identity
CREATE TABLE IF NOT EXISTS users (
    user_id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Game sessions: one per unique name, created by its first joiner (the GM)
CREATE TABLE IF NOT EXISTS game_sessions (
    session_id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_name TEXT NOT NULL UNIQUE,
    gm_user_id INTEGER NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (gm_user_id) REFERENCES users(user_id)
);

-- Player sessions: who has ever joined which session
CREATE TABLE IF NOT EXISTS player_sessions (
    user_id INTEGER NOT NULL,
    session_id INTEGER NOT NULL,
    joined_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,

    PRIMARY KEY (user_id, session_id),
    FOREIGN KEY (user_id) REFERENCES users(user_id),
    FOREIGN KEY (session_id) REFERENCES game_sessions(session_id)
);

-- Card definitions: one wide row, variant columns are NULL unless they
-- belong to card_type
CREATE TABLE IF NOT EXISTS cards (
    card_id INTEGER PRIMARY KEY AUTOINCREMENT,
    card_name TEXT NOT NULL,
    card_type TEXT NOT NULL,
    description TEXT,
    is_active INTEGER NOT NULL DEFAULT 0,
    power_level INTEGER,

    card_hero_type TEXT,
    card_hero_class TEXT,
    card_hero_role TEXT,

    card_ability_class_melee INTEGER,
    card_ability_class_longrange INTEGER,
    card_ability_class_areaofeffect INTEGER,
    card_ability_class_duration INTEGER,
    card_ability_is_burst INTEGER,
    card_ability_burst_link_action TEXT,
    card_ability_burst_effect TEXT,

    card_suit_might_modifier INTEGER,
    card_suit_agility_modifier INTEGER,
    card_suit_guts_modifier INTEGER,
    card_suit_intellect_modifier INTEGER,
    card_suit_rally_modifier INTEGER,

    card_weapon_damage INTEGER,
    card_weapon_range INTEGER,
    card_weapon_effect_slot1 TEXT,
    card_weapon_effect_slot2 TEXT,
    card_weapon_effect_slot3 TEXT,

    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Player cards: copies of a definition placed in a session
CREATE TABLE IF NOT EXISTS player_cards (
    player_card_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    card_id INTEGER NOT NULL,
    session_id INTEGER NOT NULL,
    location TEXT NOT NULL,
    slot_id INTEGER,
    is_active INTEGER NOT NULL DEFAULT 0,

    FOREIGN KEY (user_id) REFERENCES users(user_id),
    FOREIGN KEY (card_id) REFERENCES cards(card_id),
    FOREIGN KEY (session_id) REFERENCES game_sessions(session_id)
);

-- Combat log: append-only audit trail
CREATE TABLE IF NOT EXISTS combat_log (
    log_id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id INTEGER NOT NULL,
    user_id INTEGER NOT NULL,
    card_id INTEGER,
    action_type TEXT NOT NULL,
    action_description TEXT,
    action_timestamp TIMESTAMP DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),

    FOREIGN KEY (session_id) REFERENCES game_sessions(session_id),
    FOREIGN KEY (user_id) REFERENCES users(user_id),
    FOREIGN KEY (card_id) REFERENCES cards(card_id)
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_player_cards_session_id ON player_cards(session_id);
CREATE INDEX IF NOT EXISTS idx_player_sessions_session_id ON player_sessions(session_id);
CREATE INDEX IF NOT EXISTS idx_combat_log_session_id ON combat_log(session_id, action_timestamp);
"""


def init_database(
    db_path: str | Path | None = None,
    pool_size: int | None = None,
    pool_timeout: float | None = None
) -> Database:
    """Open the database and make sure its schema exists."""
    db = Database(db_path, pool_size=pool_size, pool_timeout=pool_timeout)
    logger.info(f"Database ready at {db.db_path} (pool size {db.pool_size})")
    return db
