"""WebSocket transport implementation.

Accepts browser connections, assigns each an opaque connection id, parses
inbound JSON frames into typed client messages and writes outbound events
from a bounded per-connection queue.
"""

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncIterator
from typing import Any

import websockets
from pydantic import ValidationError
from websockets.asyncio.server import ServerConnection
from websockets.protocol import State

from src.relay.transport.base import Transport, TransportSession
from src.relay.transport.websocket_protocol import (
    CLIENT_MESSAGE_TYPES,
    ClientMessage,
    ServerMessage,
    SessionStartMessage,
    encode_server_message,
)

logger = logging.getLogger(__name__)


class WebSocketSession(TransportSession):
    """WebSocket-based transport session.

    Implements the TransportSession interface for WebSocket connections,
    handling JSON message serialization and the outbound event queue.
    """

    def __init__(
        self, websocket: ServerConnection, session_id: str, queue_size: int = 256
    ) -> None:
        """Initialize WebSocket session.

        Args:
            websocket: WebSocket connection
            session_id: Unique connection identifier
            queue_size: Maximum queued outbound events before dropping
        """
        self._websocket = websocket
        self._session_id = session_id
        self._connected = True

        self._outbound: asyncio.Queue[ServerMessage | None] = asyncio.Queue(maxsize=queue_size)

        logger.info(
            "WebSocket session initialized",
            extra={"session_id": session_id, "remote": websocket.remote_address},
        )

    @property
    def session_id(self) -> str:
        """Get unique connection identifier."""
        return self._session_id

    @property
    def is_connected(self) -> bool:
        """Check if the session connection is still active."""
        return self._connected and self._websocket.state == State.OPEN

    def send_event(self, message: ServerMessage) -> bool:
        """Queue an event for the sender loop. Never blocks."""
        if not self.is_connected:
            return False

        try:
            self._outbound.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(
                "Outbound queue full, dropping event",
                extra={"session_id": self._session_id, "type": message.type},
            )
            return False
        return True

    async def sender_loop(self) -> None:
        """Write queued events to the socket until closed or stopped."""
        try:
            while True:
                message = await self._outbound.get()
                if message is None:
                    break
                await self._websocket.send(encode_server_message(message))
        except websockets.exceptions.ConnectionClosed:
            self._connected = False
            logger.debug(
                "Sender loop stopped, connection closed",
                extra={"session_id": self._session_id},
            )
        except asyncio.CancelledError:
            # Clean shutdown
            pass

    async def receive_messages(self) -> AsyncIterator[ClientMessage]:
        """Receive validated messages from the client.

        Non-text frames, invalid JSON, unknown types and schema violations
        are logged and dropped; the client is not notified.

        Yields:
            ClientMessage: Parsed client message
        """
        try:
            async for raw_message in self._websocket:
                if not isinstance(raw_message, str):
                    logger.warning(
                        "Received non-text WebSocket message, skipping",
                        extra={"session_id": self._session_id},
                    )
                    continue

                message = self._parse(raw_message)
                if message is not None:
                    yield message

        except websockets.exceptions.ConnectionClosed:
            logger.info(
                "WebSocket connection closed by client",
                extra={"session_id": self._session_id},
            )
        finally:
            self._connected = False

    def _parse(self, raw_message: str) -> ClientMessage | None:
        try:
            data: Any = json.loads(raw_message)
        except json.JSONDecodeError as e:
            logger.warning(
                "Invalid JSON message",
                extra={"session_id": self._session_id, "error": str(e)},
            )
            return None

        if not isinstance(data, dict):
            logger.warning(
                "Message is not a JSON object",
                extra={"session_id": self._session_id},
            )
            return None

        message_type = data.get("type")
        model = CLIENT_MESSAGE_TYPES.get(message_type) if isinstance(message_type, str) else None
        if model is None:
            logger.warning(
                "Unknown message type",
                extra={"session_id": self._session_id, "type": message_type},
            )
            return None

        try:
            return model.model_validate(data)  # type: ignore[return-value]
        except ValidationError as e:
            logger.warning(
                "Invalid message payload",
                extra={
                    "session_id": self._session_id,
                    "type": message_type,
                    "error": str(e),
                },
            )
            return None

    async def send_session_start(self) -> None:
        """Tell the client its connection id."""
        try:
            await self._websocket.send(
                encode_server_message(SessionStartMessage(session_id=self._session_id))
            )
        except websockets.exceptions.ConnectionClosed:
            self._connected = False

    async def close(self) -> None:
        """Clean session shutdown.

        Stops the sender loop and closes the WebSocket connection.
        """
        if not self._connected and self._websocket.state != State.OPEN:
            return

        logger.info("Closing WebSocket session", extra={"session_id": self._session_id})
        self._connected = False

        # Wake the sender loop; a full queue means it is cancelled instead
        try:
            self._outbound.put_nowait(None)
        except asyncio.QueueFull:
            pass

        try:
            await self._websocket.close()
        except Exception as e:
            logger.warning(
                "Error during session close",
                extra={"session_id": self._session_id, "error": str(e)},
            )


class WebSocketTransport(Transport):
    """WebSocket transport server.

    Manages WebSocket server lifecycle and creates WebSocketSession instances
    for incoming client connections.
    """

    def __init__(
        self,
        host: str = "0.0.0.0",  # noqa: S104
        port: int = 8080,
        max_connections: int = 1000,
        queue_size: int = 256,
        max_message_bytes: int = 2**20,
    ) -> None:
        """Initialize WebSocket transport.

        Args:
            host: Bind host address
            port: Bind port
            max_connections: Maximum concurrent connections
            queue_size: Outbound event buffer per connection
            max_message_bytes: Maximum inbound frame size
        """
        self._host = host
        self._port = port
        self._max_connections = max_connections
        self._queue_size = queue_size
        self._max_message_bytes = max_message_bytes
        self._server: Any = None  # websockets.Server type
        self._running = False
        self._session_queue: asyncio.Queue[WebSocketSession] = asyncio.Queue()
        self._open_connections = 0

        logger.info(
            "WebSocket transport initialized",
            extra={"host": host, "port": port, "max_connections": max_connections},
        )

    @property
    def transport_type(self) -> str:
        """Transport type identifier."""
        return "websocket"

    @property
    def is_running(self) -> bool:
        """Check if the transport server is currently running."""
        return self._running

    @property
    def port(self) -> int:
        """Bound port (resolved after start when configured as 0)."""
        if self._server is not None:
            for sock in self._server.sockets:
                return int(sock.getsockname()[1])
        return self._port

    async def start(self) -> None:
        """Start the WebSocket server.

        Raises:
            RuntimeError: If the transport fails to start
            OSError: If port binding fails
        """
        if self._running:
            raise RuntimeError("WebSocket transport is already running")

        logger.info(
            "Starting WebSocket server", extra={"host": self._host, "port": self._port}
        )

        try:
            self._server = await websockets.serve(
                self._handle_connection,
                self._host,
                self._port,
                max_size=self._max_message_bytes,
            )
            self._running = True

            logger.info(
                "WebSocket server started",
                extra={"host": self._host, "port": self.port},
            )

        except OSError as e:
            logger.error(
                "Failed to bind WebSocket server",
                extra={"host": self._host, "port": self._port, "error": str(e)},
            )
            raise
        except Exception as e:
            logger.error(
                "Failed to start WebSocket server",
                extra={"error": str(e)},
            )
            raise RuntimeError(f"Failed to start WebSocket transport: {e}") from e

    async def stop(self) -> None:
        """Stop the WebSocket server, closing all active connections."""
        if not self._running:
            return

        logger.info("Stopping WebSocket server")

        self._running = False

        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

        logger.info("WebSocket server stopped")

    async def accept_session(self) -> TransportSession:
        """Block until a client connects and return its session.

        Raises:
            RuntimeError: If the transport is not running
        """
        if not self._running:
            raise RuntimeError("WebSocket transport is not running")

        return await self._session_queue.get()

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        """Handle incoming WebSocket connection.

        Args:
            websocket: WebSocket connection
        """
        if self._open_connections >= self._max_connections:
            logger.warning(
                "Connection limit reached, rejecting client",
                extra={"remote": websocket.remote_address, "limit": self._max_connections},
            )
            await websocket.close(code=1013, reason="server full")
            return

        session_id = f"ws-{uuid.uuid4().hex[:12]}"

        logger.info(
            "New WebSocket connection",
            extra={
                "session_id": session_id,
                "remote": websocket.remote_address,
            },
        )

        session = WebSocketSession(websocket, session_id, queue_size=self._queue_size)
        self._open_connections += 1

        try:
            await session.send_session_start()

            # Queue session for the server loop to accept
            await self._session_queue.put(session)

            # Keep connection alive until closed
            await websocket.wait_closed()
        finally:
            self._open_connections -= 1
            logger.info(
                "WebSocket connection closed",
                extra={"session_id": session_id},
            )
