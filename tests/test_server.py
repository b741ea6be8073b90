"""Tests for FastAPI server module."""

import pytest
from fastapi.testclient import TestClient

from connect_arena.server import app, controller, player_service


@pytest.fixture
def client():
    """Test client against a clean controller."""
    with TestClient(app) as test_client:
        yield test_client
    controller.queue.entries.clear()


def _join(ws, username: str) -> None:
    ws.send_json({"type": "join_queue", "username": username})


class TestHttpEndpoints:
    """Test cases for HTTP endpoints."""

    def test_root(self, client) -> None:
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200
        assert "Connect Four Arena API" in response.json()["message"]

    def test_health(self, client) -> None:
        """Test health check."""
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "OK"
        assert "timestamp" in data
        assert data["connections"] == 0

    def test_game_not_found(self, client) -> None:
        """Test accessing a non-existent game."""
        response = client.get("/api/game/nonexistent")
        assert response.status_code == 404

    def test_leaderboard(self, client) -> None:
        """Test leaderboard lists participants with results."""
        player = player_service.create_or_get("leaderboard-tester", "c-test")
        player.games_won = 50
        response = client.get("/api/leaderboard?limit=5")
        assert response.status_code == 200
        entries = response.json()
        assert len(entries) <= 5
        assert entries[0]["username"] == "leaderboard-tester"

    def test_analytics(self, client) -> None:
        """Test analytics summary shape."""
        response = client.get("/api/analytics")
        assert response.status_code == 200
        assert set(response.json()) == {
            "total_games", "completed_games", "average_game_duration", "events_today", "most_active_hour"
        }


class TestWebSocket:
    """Test cases for the /ws intent loop."""

    def test_ping(self, client) -> None:
        """Test heartbeat."""
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_unknown_message_type(self, client) -> None:
        """Test unknown intents are answered with an error."""
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "resign"})
            message = ws.receive_json()
            assert message["type"] == "error"

    def test_invalid_json(self, client) -> None:
        """Test non-JSON frames are answered with an error."""
        with client.websocket_connect("/ws") as ws:
            ws.send_text("not json")
            assert ws.receive_json()["type"] == "error"

    def test_join_requires_username(self, client) -> None:
        """Test join without a handle is rejected."""
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "join_queue"})
            assert ws.receive_json()["type"] == "error"

    def test_pairing_and_moves(self, client) -> None:
        """Test two connections are paired and play alternately."""
        with client.websocket_connect("/ws") as ws1, client.websocket_connect("/ws") as ws2:
            _join(ws1, "ws-alice")
            assert ws1.receive_json()["type"] == "queued"
            _join(ws2, "ws-bob")

            started1 = ws1.receive_json()
            started2 = ws2.receive_json()
            assert started1["type"] == "session_started"
            assert started2["type"] == "session_started"
            game_id = started1["game"]["id"]
            assert started1["game"]["turn"] == started1["your_id"]

            ws2.send_json({"type": "make_move", "game_id": game_id, "column": 3})
            rejected = ws2.receive_json()
            assert rejected["type"] == "move_rejected"
            assert rejected["reason"] == "out_of_turn"

            ws1.send_json({"type": "make_move", "game_id": game_id, "column": 3})
            applied = ws1.receive_json()
            assert applied["type"] == "move_applied"
            assert applied["move"]["row"] == 0
            assert ws2.receive_json()["type"] == "move_applied"

            ws2.send_json({"type": "make_move", "game_id": game_id, "column": 9})
            assert ws2.receive_json()["reason"] == "illegal_move"

            snapshot = client.get(f"/api/game/{game_id}").json()
            assert snapshot["moves"] == 1
            assert snapshot["status"] == "in_progress"

    def test_rejoin_unknown_game(self, client) -> None:
        """Test rejoining a game that does not exist."""
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "rejoin_game", "game_id": "missing", "username": "nobody"})
            message = ws.receive_json()
            assert message["type"] == "rejoin_rejected"
            assert message["reason"] == "not_found"
