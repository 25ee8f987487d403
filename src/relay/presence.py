"""Room presence: joins, leaves and occupancy statistics.

PresenceCoordinator is the only component that mutates room state. Its
operations are synchronous and run on the event loop thread, so each join
or leave (state change plus the notifications it queues) completes before
the next event is handled. That keeps RoomStats broadcasts for a room in
the same order as the joins/leaves that produced them.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from src.relay.metrics import MetricsCollector
from src.relay.rooms import RoomRegistry, RoomStats
from src.relay.transport.hub import ConnectionHub
from src.relay.transport.websocket_protocol import (
    PeerJoinedMessage,
    PeerLeftMessage,
    RoomStatsMessage,
)

logger = logging.getLogger(__name__)


class Role(Enum):
    """Participant role within a room."""

    HOST = "host"
    LISTENER = "listener"


@dataclass(frozen=True)
class SessionRecord:
    """Room and role recorded for a joined connection."""

    room: str
    role: Role


class PresenceCoordinator:
    """Applies joins/leaves to the RoomRegistry and notifies the room.

    Keeps its own session table (connection id → room/role) so the
    transport objects carry no application state.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        hub: ConnectionHub,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """Initialize presence coordinator.

        Args:
            registry: Room registry to mutate
            hub: Connection addressing for notifications
            metrics: Optional metrics collector (defaults to the hub's)
        """
        self.registry = registry
        self.hub = hub
        self.metrics = metrics or hub.metrics
        self._sessions: dict[str, SessionRecord] = {}

    def session(self, connection_id: str) -> SessionRecord | None:
        """Recorded room/role for a connection, if it has joined."""
        return self._sessions.get(connection_id)

    def join(self, connection_id: str, room: str, role: Role) -> bool:
        """Add a connection to a room as host or listener.

        The last host to join wins; a previously registered host is replaced
        without notification. Joining again with the same room and role
        re-applies the join. A join naming a different room or role than the
        one already recorded is ignored.

        Returns:
            True if the join was applied
        """
        existing = self._sessions.get(connection_id)
        if existing is not None and existing != SessionRecord(room, role):
            logger.warning(
                "Ignoring join for already joined connection",
                extra={
                    "session_id": connection_id,
                    "room": room,
                    "role": role.value,
                    "joined_room": existing.room,
                    "joined_role": existing.role.value,
                },
            )
            return False

        state = self.registry.get_or_create(room)
        if role is Role.HOST:
            if state.host_id is not None and state.host_id != connection_id:
                logger.info(
                    "Host replaced",
                    extra={"room": room, "previous": state.host_id, "session_id": connection_id},
                )
            state.host_id = connection_id
        else:
            state.listener_ids.add(connection_id)

        self._sessions[connection_id] = SessionRecord(room, role)
        self.hub.join_room(connection_id, room)
        self.metrics.record_join(role.value)
        self.metrics.set_rooms_active(len(self.registry))

        logger.info(
            "Participant joined",
            extra={"session_id": connection_id, "room": room, "role": role.value},
        )

        self.hub.broadcast(
            room,
            PeerJoinedMessage(id=connection_id, role=role.value),
            exclude=connection_id,
        )
        self._broadcast_stats(room)
        return True

    def leave(self, connection_id: str) -> None:
        """Remove a connection from its room. No-op if it never joined.

        A host leaving clears the host slot only if it still holds it, so a
        displaced host cannot evict its replacement.
        """
        record = self._sessions.pop(connection_id, None)
        if record is None:
            return

        room = record.room
        state = self.registry.get(room)
        if state is not None:
            if record.role is Role.HOST and state.host_id == connection_id:
                state.host_id = None
            elif record.role is Role.LISTENER:
                state.listener_ids.discard(connection_id)

            if state.is_empty:
                self.registry.remove(room)
                logger.info("Room removed", extra={"room": room})

        self.hub.leave_room(connection_id, room)
        self.metrics.record_leave()
        self.metrics.set_rooms_active(len(self.registry))

        logger.info(
            "Participant left",
            extra={"session_id": connection_id, "room": room, "role": record.role.value},
        )

        self.hub.broadcast(room, PeerLeftMessage(id=connection_id))
        self._broadcast_stats(room)

    def stats(self, room: str) -> RoomStats | None:
        """Current occupancy of a room, or None if it does not exist."""
        state = self.registry.get(room)
        if state is None:
            return None
        return RoomStats.from_state(state)

    def _broadcast_stats(self, room: str) -> None:
        stats = self.stats(room)
        if stats is None:
            return
        self.hub.broadcast(room, RoomStatsMessage.from_stats(stats))
