"""Unit tests for the room registry and room statistics."""

from src.relay.rooms import RoomRegistry, RoomState, RoomStats


class TestRoomRegistry:
    """Test registry create/lookup/remove semantics."""

    def test_get_or_create_new_room(self) -> None:
        registry = RoomRegistry()

        state = registry.get_or_create("r1")

        assert state.name == "r1"
        assert state.host_id is None
        assert state.listener_ids == set()
        assert "r1" in registry
        assert len(registry) == 1

    def test_get_or_create_returns_existing(self) -> None:
        registry = RoomRegistry()
        first = registry.get_or_create("r1")
        first.listener_ids.add("ws-a")

        second = registry.get_or_create("r1")

        assert second is first
        assert second.listener_ids == {"ws-a"}

    def test_get_does_not_create(self) -> None:
        registry = RoomRegistry()

        assert registry.get("missing") is None
        assert "missing" not in registry
        assert len(registry) == 0

    def test_remove_is_idempotent(self) -> None:
        registry = RoomRegistry()
        registry.get_or_create("r1")

        registry.remove("r1")
        registry.remove("r1")
        registry.remove("never-existed")

        assert registry.get("r1") is None
        assert registry.room_names() == []

    def test_instances_are_independent(self) -> None:
        """Two registries never share rooms."""
        a = RoomRegistry()
        b = RoomRegistry()
        a.get_or_create("shared-name")

        assert b.get("shared-name") is None


class TestRoomStats:
    """Test derived occupancy statistics."""

    def test_empty_room_stats(self) -> None:
        stats = RoomStats.from_state(RoomState(name="r1"))

        assert stats.host_connected is False
        assert stats.listeners == 0
        assert stats.total == 0

    def test_host_and_listeners(self) -> None:
        state = RoomState(name="r1", host_id="ws-h", listener_ids={"ws-a", "ws-b"})

        stats = RoomStats.from_state(state)

        assert stats.room == "r1"
        assert stats.host_connected is True
        assert stats.listeners == 2
        assert stats.total == 3

    def test_listeners_only(self) -> None:
        state = RoomState(name="r1", listener_ids={"ws-a"})

        stats = RoomStats.from_state(state)

        assert stats.host_connected is False
        assert stats.total == 1

    def test_is_empty(self) -> None:
        assert RoomState(name="r1").is_empty
        assert not RoomState(name="r1", host_id="ws-h").is_empty
        assert not RoomState(name="r1", listener_ids={"ws-a"}).is_empty
