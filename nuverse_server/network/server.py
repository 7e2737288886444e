"""
WebSocket server for NuVerse game sessions.

Main entry point that ties together connection management,
the game service, and message handling.
"""

import asyncio
import logging
import signal
import sys
from http import HTTPStatus
from typing import Any

import websockets
from websockets.asyncio.server import ServerConnection, serve
from websockets.http11 import Request, Response

from nuverse_server.network.connection_manager import ConnectionManager
from nuverse_server.network.game_service import GameService
from nuverse_server.network.message_handler import MessageHandler, HandleResult
from nuverse_server.persistence import Database, GameRepository, init_database
from nuverse_server.config import settings
from nuverse_shared.protocol import PlayerLeftMessage


logger = logging.getLogger(__name__)

HEALTH_CHECK_PATHS = ("/", "/health")
HEALTH_CHECK_BODY = "NuVerse Backend is running!\n"


def health_check(connection: ServerConnection, request: Request) -> Response | None:
    """Answer plain HTTP requests to the health paths; let upgrades through."""
    if request.headers.get("Upgrade", "").lower() == "websocket":
        return None
    if request.path in HEALTH_CHECK_PATHS:
        return connection.respond(HTTPStatus.OK, HEALTH_CHECK_BODY)
    return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")


class NuVerseServer:
    """
    WebSocket server for NuVerse game sessions.

    Handles client connections, routes messages, and fans results out
    to session rooms.
    """

    def __init__(
        self,
        database: Database,
        host: str | None = None,
        port: int | None = None,
        client_url: str | None = None
    ):
        self.host = host or settings.HOST
        self.port = port if port is not None else settings.PORT
        self.client_url = client_url or settings.CLIENT_URL

        self._database = database
        self._repository = GameRepository(database)

        # Initialize managers
        self._connections = ConnectionManager()
        self._games = GameService(self._repository)
        self._handler = MessageHandler(self._games, self._connections)

        # Server state
        self._server = None
        self._running = False
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Start the WebSocket server."""
        self._running = True
        self._shutdown_event.clear()

        self._server = await serve(
            self._handle_client,
            self.host,
            self.port,
            origins=[self.client_url, None],
            process_request=health_check,
            ping_interval=30,
            ping_timeout=10,
        )

        logger.info(f"NuVerse server listening on ws://{self.host}:{self.port}")

        # Wait for shutdown signal
        await self._shutdown_event.wait()

    async def stop(self) -> None:
        """Stop the server gracefully."""
        logger.info("Shutting down server...")
        self._running = False

        if self._server:
            self._server.close()
            await self._server.wait_closed()

        self._shutdown_event.set()
        logger.info("Server stopped")

    def request_shutdown(self) -> None:
        """Request server shutdown (can be called from signal handler)."""
        asyncio.create_task(self.stop())

    async def _handle_client(self, websocket: ServerConnection) -> None:
        """
        Handle a client connection.

        Messages from one connection are handled one at a time, in order.
        """
        await self._connections.connect(websocket)

        try:
            async for raw_message in websocket:
                if not self._running:
                    break

                if isinstance(raw_message, bytes):
                    raw_message = raw_message.decode("utf-8", errors="replace")

                await self._handle_message(websocket, raw_message)

        except websockets.ConnectionClosed:
            logger.debug(f"Connection closed: {websocket.id}")
        except Exception as e:
            logger.exception(f"Error handling client {websocket.id}: {e}")
        finally:
            await self._handle_disconnect(websocket)

    async def _handle_message(self, websocket: ServerConnection, raw_message: str) -> None:
        """Handle an incoming message and deliver its results."""
        logger.debug(f"Received from {websocket.id}: {raw_message[:200]}")

        result = await self._handler.handle_message(websocket, raw_message)
        await self._deliver(websocket, result)

    async def _deliver(self, websocket: ServerConnection, result: HandleResult) -> None:
        """Send the response to the requester, then broadcasts to the room."""
        if result.response:
            await self._connections.send_to_connection(websocket, result.response)

        if result.broadcasts and result.room_id is not None:
            exclude = websocket if result.exclude_sender else None
            for broadcast in result.broadcasts:
                count = await self._connections.broadcast_to_room(
                    result.room_id, broadcast, exclude=exclude
                )
                logger.debug(
                    f"Broadcast {broadcast.type.value} to {count} connection(s) in room {result.room_id}"
                )

    async def _handle_disconnect(self, websocket: ServerConnection) -> None:
        """Drop the connection from its room and tell the rest of the room."""
        connection = await self._connections.disconnect(websocket)

        if connection and connection.session_id is not None:
            await self._connections.broadcast_to_room(
                connection.session_id,
                PlayerLeftMessage.create(connection.user_id, connection.username),
            )

    def get_stats(self) -> dict[str, Any]:
        """Get server statistics."""
        return {
            "running": self._running,
            "connections": self._connections.get_stats(),
        }


async def run_server(
    host: str | None = None,
    port: int | None = None,
    db_path: str | None = None
) -> None:
    """
    Run the NuVerse server.

    Sets up signal handlers for graceful shutdown.
    """
    database = init_database(db_path)
    server = NuVerseServer(database, host, port)

    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, server.request_shutdown)

    try:
        await server.start()
    finally:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)
        database.close()


def main():
    """Entry point for running the server."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    print(f"Starting NuVerse server on ws://{settings.HOST}:{settings.PORT}")
    print("Press Ctrl+C to stop")

    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        print("\nServer stopped")
    except Exception as e:
        logger.critical(f"Server failed to start: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
