"""Routes inbound connection events to the relay components.

One EventDispatcher owns the room registry, connection hub and the three
coordinator components. ``handle_session`` runs for the lifetime of a
connection: it registers the connection, dispatches each inbound message,
and on close (at any point) runs exactly the presence leave cleanup.
"""

import asyncio
import contextlib
import logging

from src.relay.chat import ChatRelay
from src.relay.config import ChatConfig
from src.relay.metrics import MetricsCollector
from src.relay.presence import PresenceCoordinator, Role
from src.relay.rooms import RoomRegistry
from src.relay.session import ConnectionSession
from src.relay.signaling import SignalingRouter
from src.relay.transport.hub import ConnectionHub
from src.relay.transport.websocket_protocol import (
    AnswerMessage,
    ChatMessage,
    ClientMessage,
    IceCandidateMessage,
    JoinMessage,
    OfferMessage,
)

logger = logging.getLogger(__name__)


class EventDispatcher:
    """Connection lifecycle glue over presence, signaling and chat."""

    def __init__(
        self,
        registry: RoomRegistry | None = None,
        metrics: MetricsCollector | None = None,
        chat_config: ChatConfig | None = None,
    ) -> None:
        self.metrics = metrics or MetricsCollector()
        self.registry = registry if registry is not None else RoomRegistry()
        self.hub = ConnectionHub(self.metrics)
        self.presence = PresenceCoordinator(self.registry, self.hub, self.metrics)
        self.router = SignalingRouter(self.hub)
        self.chat = ChatRelay(self.hub, chat_config)

    def connect(self, session: ConnectionSession) -> None:
        """Make a new connection addressable."""
        self.hub.register(session.transport)

    def disconnect(self, session: ConnectionSession) -> None:
        """Run leave cleanup and forget the connection."""
        self.presence.leave(session.session_id)
        self.hub.unregister(session.session_id)

    def dispatch(self, session: ConnectionSession, message: ClientMessage) -> None:
        """Apply one inbound message. Never raises for bad input."""
        session.metrics.record_message()

        if isinstance(message, JoinMessage):
            if self.presence.join(session.session_id, message.room, Role(message.role)):
                session.mark_joined()
        elif isinstance(message, OfferMessage | AnswerMessage | IceCandidateMessage):
            self.router.relay(session.session_id, message)
            session.metrics.signals_sent += 1
        elif isinstance(message, ChatMessage):
            if self.chat.send(message.room, message.text):
                session.metrics.chat_sent += 1
        else:
            logger.warning(
                "Unhandled message type",
                extra={"session_id": session.session_id, "type": type(message).__name__},
            )

    async def handle_session(self, session: ConnectionSession) -> None:
        """Serve one connection until it closes.

        Args:
            session: Connection session to serve
        """
        self.connect(session)
        sender_task = asyncio.create_task(session.transport.sender_loop())

        try:
            async for message in session.transport.receive_messages():
                self.dispatch(session, message)
        except ConnectionError as e:
            logger.info(
                "Connection lost",
                extra={"session_id": session.session_id, "error": str(e)},
            )
        finally:
            self.disconnect(session)
            await session.shutdown()

            sender_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sender_task

            logger.info("Session ended", extra=session.get_metrics_summary())
