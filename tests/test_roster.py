"""Tests for the peer roster and the message log."""

from unittest.mock import MagicMock

from lanchat.mesh.history import ChatEntry, MessageLog
from lanchat.mesh.protocol import ChatMessage
from lanchat.mesh.roster import Roster

# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------


class TestRoster:
    def test_starts_empty(self):
        roster = Roster("10.0.0.1")
        assert len(roster) == 0
        assert roster.snapshot() == frozenset()

    def test_add_new_peer(self):
        roster = Roster("10.0.0.1")
        assert roster.add("10.0.0.2") is True
        assert "10.0.0.2" in roster
        assert len(roster) == 1

    def test_add_is_idempotent(self):
        roster = Roster("10.0.0.1")
        roster.add("10.0.0.2")
        assert roster.add("10.0.0.2") is False
        assert len(roster) == 1

    def test_never_contains_self(self):
        roster = Roster("10.0.0.1")
        assert roster.add("10.0.0.1") is False
        assert "10.0.0.1" not in roster

    def test_rejects_empty_identity(self):
        roster = Roster("10.0.0.1")
        assert roster.add("") is False
        assert len(roster) == 0

    def test_snapshot_is_detached(self):
        roster = Roster("me")
        roster.add("a")
        snap = roster.snapshot()
        roster.add("b")
        assert snap == frozenset({"a"})
        assert roster.snapshot() == frozenset({"a", "b"})

    def test_iteration_allows_adding(self):
        roster = Roster("me")
        roster.add("a")
        roster.add("b")
        for peer in roster:
            roster.add(peer + "-x")
        assert len(roster) == 4

    def test_no_remove_operation(self):
        assert not hasattr(Roster("me"), "remove")

    def test_listener_called_once_per_new_peer(self):
        roster = Roster("me")
        listener = MagicMock()
        roster.on_added(listener)
        roster.add("a")
        roster.add("a")
        roster.add("me")
        listener.assert_called_once_with("a")

    def test_listener_error_does_not_block_insert(self):
        roster = Roster("me")
        roster.on_added(MagicMock(side_effect=RuntimeError("boom")))
        assert roster.add("a") is True
        assert "a" in roster


# ---------------------------------------------------------------------------
# MessageLog
# ---------------------------------------------------------------------------


def _chat(content: str, **kwargs) -> ChatMessage:
    kwargs.setdefault("room", "public")
    return ChatMessage(sender="10.0.0.9", content=content, **kwargs)


class TestMessageLog:
    def test_append_preserves_order(self):
        log = MessageLog()
        log.append(_chat("one"))
        log.append(_chat("two"))
        log.append(_chat("three"))
        assert [e.content for e in log.snapshot()] == ["one", "two", "three"]

    def test_append_returns_entry_with_flag(self):
        log = MessageLog()
        entry = log.append(_chat("psst", room=None, receiver="me"), is_private=True)
        assert isinstance(entry, ChatEntry)
        assert entry.is_private is True
        assert log.snapshot() == (entry,)

    def test_snapshot_is_immutable_copy(self):
        log = MessageLog()
        log.append(_chat("one"))
        snap = log.snapshot()
        log.append(_chat("two"))
        assert len(snap) == 1
        assert len(log) == 2

    def test_listener_receives_entries(self):
        log = MessageLog()
        seen: list[ChatEntry] = []
        log.on_append(seen.append)
        log.append(_chat("hi"))
        assert [e.content for e in seen] == ["hi"]

    def test_listener_error_is_isolated(self):
        log = MessageLog()
        log.on_append(MagicMock(side_effect=ValueError("bad")))
        log.append(_chat("hi"))
        assert len(log) == 1


class TestChatEntry:
    def test_render_public(self):
        entry = ChatEntry(message=_chat("hello"))
        assert entry.render() == "10.0.0.9: hello"

    def test_render_private(self):
        entry = ChatEntry(message=_chat("hello", room=None, receiver="x"), is_private=True)
        assert entry.render() == "10.0.0.9: hello (Private)"
