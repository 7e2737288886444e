"""
Persistence layer for the NuVerse session server.

Provides SQLite-based storage for users, sessions, cards and the combat log.
"""

from nuverse_server.persistence.database import (
    Database,
    PoolTimeoutError,
    init_database
)
from nuverse_server.persistence.models import (
    SessionRecord,
    SessionPlayer,
    CatalogEntry,
    PlayerCardRecord,
    CombatLogRecord
)
from nuverse_server.persistence.repository import GameRepository


__all__ = [
    # Database
    "Database",
    "PoolTimeoutError",
    "init_database",
    
    # Models
    "SessionRecord",
    "SessionPlayer",
    "CatalogEntry",
    "PlayerCardRecord",
    "CombatLogRecord",
    
    # Repository
    "GameRepository"
]
