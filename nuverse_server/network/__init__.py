"""
Network layer for the NuVerse session server.

Provides WebSocket server, room management, the session flows and message handling.
"""

from nuverse_server.network.connection_manager import ConnectionManager, ClientConnection
from nuverse_server.network.game_service import GameService, JoinResult
from nuverse_server.network.message_handler import MessageHandler, HandleResult
from nuverse_server.network.server import NuVerseServer, run_server


__all__ = [
    "ConnectionManager",
    "ClientConnection",
    "GameService",
    "JoinResult",
    "MessageHandler",
    "HandleResult",
    "NuVerseServer",
    "run_server",
]
