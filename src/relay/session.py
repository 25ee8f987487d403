"""Per-connection lifecycle management.

Tracks the state of a single client connection and its activity counters
independently of the underlying transport mechanism.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from src.relay.transport.base import TransportSession

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection state machine states.

    State Transitions:
    - CONNECTED → JOINED (on first successful join)
    - CONNECTED → DISCONNECTED (closed before joining)
    - JOINED → DISCONNECTED (closed after joining)

    There is no transition out of JOINED other than disconnect: a
    connection cannot move to another room or change role.
    """

    CONNECTED = "connected"
    JOINED = "joined"
    DISCONNECTED = "disconnected"


# Valid state transitions
VALID_TRANSITIONS: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.CONNECTED: {ConnectionState.JOINED, ConnectionState.DISCONNECTED},
    ConnectionState.JOINED: {ConnectionState.DISCONNECTED},
    ConnectionState.DISCONNECTED: set(),  # Terminal state
}


@dataclass
class SessionMetrics:
    """Connection activity metrics."""

    messages_received: int = 0
    joins: int = 0
    signals_sent: int = 0
    chat_sent: int = 0

    session_start_ts: float = field(default_factory=time.monotonic)
    joined_ts: float | None = None
    session_end_ts: float | None = None

    def record_message(self) -> None:
        self.messages_received += 1

    def record_join(self) -> None:
        self.joins += 1
        if self.joined_ts is None:
            self.joined_ts = time.monotonic()

    def finalize(self) -> None:
        """Mark session as complete and record end time."""
        self.session_end_ts = time.monotonic()

    @property
    def duration_s(self) -> float:
        return (self.session_end_ts or time.monotonic()) - self.session_start_ts


class ConnectionSession:
    """Lifecycle wrapper around one transport session."""

    def __init__(self, transport_session: TransportSession) -> None:
        """Initialize connection session.

        Args:
            transport_session: Underlying transport session
        """
        self.transport = transport_session
        self.state = ConnectionState.CONNECTED
        self.metrics = SessionMetrics()

    @property
    def session_id(self) -> str:
        """Get connection id from transport."""
        return self.transport.session_id

    @property
    def is_active(self) -> bool:
        """Check if session is connected and not terminated."""
        return self.transport.is_connected and self.state != ConnectionState.DISCONNECTED

    def transition_state(self, new_state: ConnectionState) -> None:
        """Transition session to a new state with validation.

        Args:
            new_state: Target state

        Raises:
            ValueError: If transition is invalid
        """
        if new_state not in VALID_TRANSITIONS.get(self.state, set()):
            raise ValueError(f"Invalid state transition: {self.state.value} → {new_state.value}")

        old_state = self.state
        self.state = new_state

        logger.debug(
            "Connection state transition",
            extra={
                "session_id": self.session_id,
                "from_state": old_state.value,
                "to_state": new_state.value,
            },
        )

    def mark_joined(self) -> None:
        """Record a successful join. Repeat joins keep the JOINED state."""
        self.metrics.record_join()
        if self.state == ConnectionState.CONNECTED:
            self.transition_state(ConnectionState.JOINED)

    async def shutdown(self) -> None:
        """Close the transport and finalize metrics. Idempotent."""
        if self.state == ConnectionState.DISCONNECTED:
            return

        self.transition_state(ConnectionState.DISCONNECTED)
        await self.transport.close()
        self.metrics.finalize()

    def get_metrics_summary(self) -> dict[str, str | float | int | None]:
        """Get session metrics summary for logging."""
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "messages_received": self.metrics.messages_received,
            "joins": self.metrics.joins,
            "signals_sent": self.metrics.signals_sent,
            "chat_sent": self.metrics.chat_sent,
            "session_duration_s": self.metrics.duration_s,
        }
