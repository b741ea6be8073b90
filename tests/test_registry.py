"""Tests for the session registry."""

import pytest

from connect_arena.errors import NotFound, SessionNotActive
from connect_arena.models import Participant, Session, SessionStatus, create_ai_participant
from connect_arena.registry import SessionRegistry


def _session(session_id: str = "s1", vs_ai: bool = False) -> Session:
    first = Participant(id="p1", handle="alice", connection_id="c1")
    second = create_ai_participant(session_id) if vs_ai else Participant(id="p2", handle="bob", connection_id="c2")
    return Session(id=session_id, first=first, second=second, turn=first.id)


def test_add_indexes_participants_and_connections() -> None:
    """Test a new session is reachable through every index."""
    registry = SessionRegistry()
    session = registry.add(_session())

    assert registry.get("s1") is session
    assert registry.find_by_participant("p1") is session
    assert registry.find_by_participant("p2") is session
    assert registry.find_by_connection("c2") is session
    assert registry.active_sessions() == [session]


def test_ai_participant_not_indexed() -> None:
    """Test the bot side is never indexed."""
    registry = SessionRegistry()
    session = registry.add(_session(vs_ai=True))

    assert registry.find_by_participant(session.second.id) is None
    assert set(registry.participant_to_session) == {"p1"}


def test_require_active_unknown() -> None:
    """Test unknown ids are reported as not found."""
    with pytest.raises(NotFound):
        SessionRegistry().require_active("missing")


def test_finish_drops_indexes_and_keeps_history() -> None:
    """Test a finished session leaves every index but stays visible read-only."""
    registry = SessionRegistry()
    session = registry.add(_session())
    session.status = SessionStatus.COMPLETED
    registry.finish(session)

    assert registry.get("s1") is None
    assert registry.find_by_participant("p1") is None
    assert registry.find_by_connection("c1") is None
    assert registry.lookup("s1") is session
    with pytest.raises(SessionNotActive):
        registry.require_active("s1")


def test_finished_history_is_bounded() -> None:
    """Test the oldest finished sessions are forgotten first."""
    registry = SessionRegistry(finished_history=2)
    for i in range(3):
        session = registry.add(_session(f"s{i}"))
        session.status = SessionStatus.ABANDONED
        registry.finish(session)

    assert list(registry.finished) == ["s1", "s2"]
    with pytest.raises(NotFound):
        registry.require_active("s0")


def test_bind_and_unbind_connection() -> None:
    """Test rebinding moves the connection index to the new id."""
    registry = SessionRegistry()
    session = registry.add(_session())

    registry.unbind_connection("c1")
    session.first.connection_id = None
    assert registry.find_by_connection("c1") is None

    registry.bind_connection(session, session.first, "c9")
    assert session.first.connection_id == "c9"
    assert registry.find_by_connection("c9") is session
