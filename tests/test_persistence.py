"""Tests for finished-game persistence."""

import json

import pytest

from connect_arena.errors import Unreachable
from connect_arena.models import Participant, Session, SessionStatus, create_ai_participant
from connect_arena.persistence import GameStore, ensure_persist_dir


@pytest.fixture
def finished_session():
    """A completed session against the AI."""
    session = Session(
        id="game123",
        first=Participant(id="p1", handle="alice", connection_id="c1"),
        second=create_ai_participant("game123"),
        turn="p1",
    )
    session.status = SessionStatus.COMPLETED
    session.outcome = "p1"
    session.end_reason = "win"
    return session


def test_ensure_persist_dir(tmp_path) -> None:
    """Test that persistence directory is created, repeatedly."""
    target = tmp_path / "nested" / "dir"
    ensure_persist_dir(target)
    ensure_persist_dir(target)
    assert target.is_dir()


def test_persist_appends_record(tmp_path, finished_session) -> None:
    """Test a finished session becomes one JSON line."""
    store = GameStore(tmp_path)

    assert store.persist(finished_session) is True

    lines = store.games_file.read_text().strip().splitlines()
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["id"] == "game123"
    assert record["player1_id"] == "p1"
    assert record["player2_id"] is None
    assert record["vs_ai"] is True
    assert record["status"] == "completed"
    assert "persisted_at" in record
    assert "c1" not in lines[0]


def test_persist_only_once(tmp_path, finished_session) -> None:
    """Test the same session is never written twice."""
    store = GameStore(tmp_path)
    store.persist(finished_session)

    assert store.persist(finished_session) is False
    assert len(store.load_games()) == 1


def test_persist_disabled(tmp_path, finished_session) -> None:
    """Test a disabled store writes nothing."""
    store = GameStore(tmp_path, enabled=False)

    assert store.persist(finished_session) is False
    assert not store.games_file.exists()


def test_persist_failure_is_swallowed(tmp_path, finished_session) -> None:
    """Test an unwritable location is reported, not raised."""
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    store = GameStore(blocker / "sub")

    assert store.persist(finished_session) is False


def test_load_games_skips_corrupt_lines(tmp_path, finished_session) -> None:
    """Test a damaged line does not hide the valid records."""
    store = GameStore(tmp_path)
    store.persist(finished_session)
    with open(store.games_file, 'a') as f:
        f.write("{not json\n")

    records = store.load_games()
    assert len(records) == 1
    assert records[0]["id"] == "game123"
    assert records[0]["outcome"] == "p1"


def test_load_games_missing_file(tmp_path) -> None:
    """Test an empty store reads back no records."""
    assert GameStore(tmp_path).load_games() == []


def test_players_round_trip(tmp_path) -> None:
    """Test counters survive a save and load, without the AI."""
    store = GameStore(tmp_path)
    players = {
        "p1": Participant(id="p1", handle="alice", games_won=3, games_lost=1),
        "bot_x": create_ai_participant("x"),
    }

    assert store.save_players(players) is True
    loaded = store.load_players()

    assert set(loaded) == {"p1"}
    assert loaded["p1"].handle == "alice"
    assert loaded["p1"].games_won == 3
    assert loaded["p1"].connected is False


def test_load_players_corrupt_file(tmp_path) -> None:
    """Test a broken players file loads as empty."""
    store = GameStore(tmp_path)
    store.players_file.write_text("[1, 2")
    assert store.load_players() == {}


def test_unwritable_location_raises_unreachable(tmp_path) -> None:
    """Test the low-level writer reports an unreachable store and saves degrade to False."""
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    store = GameStore(blocker / "sub")

    with pytest.raises(Unreachable):
        store._write(store.players_file, "{}", mode="w")
    assert store.save_players({}) is False
