"""Tests for the session registry."""
import pytest

from app.chat.registry import RoomFullError, SessionRegistry


class StubConnection:
    def __init__(self, connection_id: str) -> None:
        self.connection_id = connection_id


def admit(registry: SessionRegistry, connection_id: str):
    return registry.admit(StubConnection(connection_id))


class TestAdmission:
    """Tests for admit() and capacity enforcement."""

    def test_names_follow_admission_order(self):
        registry = SessionRegistry(max_users=3)
        names = [admit(registry, f"c{i}").displayName for i in range(1, 4)]
        assert names == ["Friend 1", "Friend 2", "Friend 3"]

    def test_member_carries_connection_id(self):
        registry = SessionRegistry(max_users=3)
        member = admit(registry, "abc")
        assert member.connectionId == "abc"
        assert registry.find("abc") == member

    def test_full_room_rejects_without_mutation(self):
        registry = SessionRegistry(max_users=2)
        admit(registry, "c1")
        admit(registry, "c2")

        for attempt in range(5):
            with pytest.raises(RoomFullError) as exc_info:
                admit(registry, f"extra-{attempt}")
            assert exc_info.value.max_users == 2

        assert registry.size() == 2
        assert registry.find("extra-0") is None
        assert registry.list_display_names() == ["Friend 1", "Friend 2"]

    def test_room_full_message(self):
        registry = SessionRegistry(max_users=3)
        for i in range(3):
            admit(registry, f"c{i}")
        with pytest.raises(RoomFullError, match=r"Chat room is full \(3/3 users\)"):
            admit(registry, "c4")

    def test_freed_number_is_reused(self):
        """After Friend 2 leaves, the next member becomes Friend 2."""
        registry = SessionRegistry(max_users=3)
        admit(registry, "c1")
        admit(registry, "c2")
        admit(registry, "c3")

        registry.remove("c2")
        member = admit(registry, "c4")

        assert member.displayName == "Friend 2"
        assert registry.list_display_names() == ["Friend 1", "Friend 3", "Friend 2"]

    def test_names_unique_among_current_members(self):
        registry = SessionRegistry(max_users=3)
        admit(registry, "c1")
        admit(registry, "c2")
        admit(registry, "c3")
        registry.remove("c1")
        admit(registry, "c4")
        registry.remove("c3")
        admit(registry, "c5")

        names = registry.list_display_names()
        assert len(names) == len(set(names)) == 3


class TestRemoval:
    """Tests for remove() and lookups."""

    def test_remove_returns_member(self):
        registry = SessionRegistry(max_users=3)
        member = admit(registry, "c1")
        assert registry.remove("c1") == member
        assert registry.size() == 0
        assert registry.connection("c1") is None

    def test_remove_is_idempotent(self):
        registry = SessionRegistry(max_users=3)
        admit(registry, "c1")
        assert registry.remove("c1") is not None
        assert registry.remove("c1") is None
        assert registry.remove("never-admitted") is None

    def test_connections_in_admission_order(self):
        registry = SessionRegistry(max_users=3)
        admit(registry, "a")
        admit(registry, "b")
        admit(registry, "c")
        registry.remove("b")
        assert [c.connection_id for c in registry.connections()] == ["a", "c"]
