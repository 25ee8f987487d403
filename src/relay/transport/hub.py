"""Connection addressing for the relay core.

Tracks open sessions by connection id and transport-level room membership,
and provides the send-to-one / broadcast primitives used by presence,
signaling and chat. All methods are synchronous; delivery goes through each
session's outbound queue.
"""

import logging

from src.relay.metrics import MetricsCollector
from src.relay.transport.base import TransportSession
from src.relay.transport.websocket_protocol import ServerMessage

logger = logging.getLogger(__name__)


class ConnectionHub:
    """Registry of open connections and the rooms they subscribe to.

    Room membership here is addressing only (who receives a room
    broadcast). Host/listener occupancy is owned by the RoomRegistry.
    """

    def __init__(self, metrics: MetricsCollector | None = None) -> None:
        self._sessions: dict[str, TransportSession] = {}
        self._rooms: dict[str, set[str]] = {}
        self._memberships: dict[str, set[str]] = {}
        self.metrics = metrics or MetricsCollector()

    @property
    def connection_count(self) -> int:
        return len(self._sessions)

    def register(self, session: TransportSession) -> None:
        self._sessions[session.session_id] = session
        self._memberships.setdefault(session.session_id, set())
        self.metrics.record_connection_open()

    def unregister(self, connection_id: str) -> None:
        """Forget a connection and drop it from every room it subscribed to."""
        if self._sessions.pop(connection_id, None) is None:
            return
        for room in self._memberships.pop(connection_id, set()):
            self._discard_member(room, connection_id)
        self.metrics.record_connection_close()

    def is_open(self, connection_id: str) -> bool:
        session = self._sessions.get(connection_id)
        return session is not None and session.is_connected

    def join_room(self, connection_id: str, room: str) -> None:
        if connection_id not in self._sessions:
            return
        self._rooms.setdefault(room, set()).add(connection_id)
        self._memberships[connection_id].add(room)

    def leave_room(self, connection_id: str, room: str) -> None:
        memberships = self._memberships.get(connection_id)
        if memberships is not None:
            memberships.discard(room)
        self._discard_member(room, connection_id)

    def members(self, room: str) -> set[str]:
        return set(self._rooms.get(room, ()))

    def send_to(self, connection_id: str, message: ServerMessage) -> bool:
        """Deliver to one connection. Unknown or closed ids are dropped."""
        session = self._sessions.get(connection_id)
        if session is None or not session.is_connected:
            logger.debug(
                "Dropping event for unknown connection",
                extra={"target": connection_id, "type": message.type},
            )
            return False
        delivered = session.send_event(message)
        if not delivered:
            self.metrics.record_outbound_dropped()
        return delivered

    def broadcast(
        self, room: str, message: ServerMessage, exclude: str | None = None
    ) -> int:
        """Deliver to every connection subscribed to ``room``.

        Args:
            room: Room name
            message: Event to deliver
            exclude: Optional connection id to skip (typically the sender)

        Returns:
            Number of connections the event was queued for
        """
        delivered = 0
        for connection_id in sorted(self._rooms.get(room, ())):
            if connection_id == exclude:
                continue
            if self.send_to(connection_id, message):
                delivered += 1
        return delivered

    def _discard_member(self, room: str, connection_id: str) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._rooms[room]
