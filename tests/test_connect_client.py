#!/usr/bin/env python3
"""
Tests for the standalone Connect Four client demo.

Since this is a demo/example file that integrates with the server,
we test the message handling rather than full integration.
"""

import importlib.util
import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from connect_arena import board as engine

demos_path = Path(__file__).parent.parent / 'demos'
client_path = demos_path / 'connect_client.py'

spec = importlib.util.spec_from_file_location("connect_client", client_path)
connect_client_module = importlib.util.module_from_spec(spec)
sys.modules['connect_client'] = connect_client_module
spec.loader.exec_module(connect_client_module)

ConnectFourClient = connect_client_module.ConnectFourClient
load_session_file = connect_client_module.load_session_file


def _snapshot(board, turn, moves=0, status="in_progress"):
    return {"id": "g1", "board": board, "turn": turn, "moves": moves, "status": status}


@pytest.fixture
def client(tmp_path):
    client = ConnectFourClient("http://localhost:9002", "alice", search_depth=3,
                               session_file=str(tmp_path / "session.json"))
    client.send_message = AsyncMock()
    return client


def test_client_initialization(client):
    """Test the HTTP URL is converted to WebSocket."""
    assert client.server_url == "ws://localhost:9002"
    assert client.player_id is None
    assert client.game_id is None


@pytest.mark.asyncio
async def test_session_started_on_our_turn_sends_move(client):
    """Test the client moves immediately when it starts."""
    msg = {
        "type": "session_started",
        "game": _snapshot(engine.create_empty_board(), "me"),
        "your_id": "me",
        "opponent_id": "them",
        "vs_ai": True,
    }

    assert await client.handle_message(msg) is False

    sent = client.send_message.call_args[0][0]
    assert sent["type"] == "make_move"
    assert sent["game_id"] == "g1"
    assert sent["column"] in range(engine.COLUMNS)
    assert json.loads(Path(client.session_file).read_text())["game_id"] == "g1"


@pytest.mark.asyncio
async def test_waits_on_opponent_turn(client):
    """Test no move is sent while the opponent is to play."""
    msg = {
        "type": "session_started",
        "game": _snapshot(engine.create_empty_board(), "them"),
        "your_id": "me",
        "opponent_id": "them",
    }

    await client.handle_message(msg)
    client.send_message.assert_not_called()


@pytest.mark.asyncio
async def test_quick_client_blocks(client):
    """Test the heuristic client blocks an open three."""
    client.quick = True
    client.player_id, client.opponent_id = "me", "them"
    board = engine.create_empty_board()
    for column in (0, 1, 2):
        engine.apply_move(board, column, "them")

    await client.handle_message({"type": "move_applied", "game": _snapshot(board, "me", moves=3)})

    assert client.send_message.call_args[0][0]["column"] == 3


@pytest.mark.asyncio
async def test_session_ended_clears_saved_game(client):
    """Test the saved game reference is removed once the game ends."""
    client.game_id = "g1"
    client.save_session()

    done = await client.handle_message({"type": "session_ended", "winner": None, "reason": "draw"})

    assert done is True
    assert not Path(client.session_file).exists()


def test_load_session_file(tmp_path):
    """Test saved game references are validated."""
    good = tmp_path / "good.json"
    good.write_text(json.dumps({"game_id": "g1", "username": "alice"}))
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"game_id": "g1"}))

    assert load_session_file(str(good)) == {"game_id": "g1", "username": "alice"}
    assert load_session_file(str(bad)) is None
    assert load_session_file(str(tmp_path / "missing.json")) is None
