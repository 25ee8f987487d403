"""In-memory room registry.

Maps room names to their occupancy (one optional host, a set of listeners).
State lives for the lifetime of the process only; nothing is persisted.
"""

from dataclasses import dataclass, field


@dataclass
class RoomState:
    """Occupancy of a single room."""

    name: str
    host_id: str | None = None
    listener_ids: set[str] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        """True when the room has neither a host nor listeners."""
        return self.host_id is None and not self.listener_ids


@dataclass(frozen=True)
class RoomStats:
    """Derived occupancy snapshot broadcast after every membership change."""

    room: str
    host_connected: bool
    listeners: int

    @property
    def total(self) -> int:
        """Host (if present) plus listeners."""
        return (1 if self.host_connected else 0) + self.listeners

    @classmethod
    def from_state(cls, state: RoomState) -> "RoomStats":
        """Compute stats from current room state."""
        return cls(
            room=state.name,
            host_connected=state.host_id is not None,
            listeners=len(state.listener_ids),
        )


class RoomRegistry:
    """Room name → RoomState mapping.

    All operations are total: lookups of unknown rooms return None and
    removing an absent room is a no-op. Callers own the instance; there is
    no process-wide registry.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, RoomState] = {}

    def get_or_create(self, room: str) -> RoomState:
        state = self._rooms.get(room)
        if state is None:
            state = RoomState(name=room)
            self._rooms[room] = state
        return state

    def get(self, room: str) -> RoomState | None:
        return self._rooms.get(room)

    def remove(self, room: str) -> None:
        self._rooms.pop(room, None)

    def room_names(self) -> list[str]:
        return list(self._rooms)

    def __contains__(self, room: object) -> bool:
        return room in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
