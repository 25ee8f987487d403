"""Base transport abstraction for client connections.

Defines the interface that transport implementations must provide so the
relay core can address connections without knowing the wire mechanism.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from src.relay.transport.websocket_protocol import ClientMessage, ServerMessage


class TransportSession(ABC):
    """Base class for transport-specific sessions.

    One instance per open connection. Outbound delivery is fire-and-forget:
    ``send_event`` never blocks and never raises, it only reports whether
    the event was accepted for delivery.
    """

    @abstractmethod
    def send_event(self, message: ServerMessage) -> bool:
        """Queue an event for delivery to the client.

        Args:
            message: Server → client message

        Returns:
            True if queued, False if dropped (closed connection or full buffer)
        """
        pass

    @abstractmethod
    async def receive_messages(self) -> AsyncIterator[ClientMessage]:
        """Receive validated messages from the client.

        Malformed frames are dropped by the transport and never yielded.
        Iteration ends when the connection closes.

        Yields:
            ClientMessage: Parsed client message
        """
        # Using yield to make this an async generator
        if False:
            yield None  # type: ignore[misc]

    @abstractmethod
    async def sender_loop(self) -> None:
        """Drain queued outbound events to the client until closed."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Clean session shutdown."""
        pass

    @property
    @abstractmethod
    def session_id(self) -> str:
        """Unique connection identifier."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the session connection is still active."""
        pass


class Transport(ABC):
    """Base transport implementation.

    Manages the lifecycle of a specific transport type and creates sessions
    for incoming client connections.
    """

    @abstractmethod
    async def start(self) -> None:
        """Start the transport server.

        Raises:
            RuntimeError: If the transport fails to start
            OSError: If port binding fails (for network transports)
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the transport server, closing all active sessions."""
        pass

    @abstractmethod
    async def accept_session(self) -> TransportSession:
        """Block until a new client connects and return its session.

        Raises:
            RuntimeError: If the transport is not running
        """
        pass

    @property
    @abstractmethod
    def transport_type(self) -> str:
        """Transport type identifier (e.g., 'websocket')."""
        pass

    @property
    @abstractmethod
    def is_running(self) -> bool:
        """Check if the transport server is currently running."""
        pass
