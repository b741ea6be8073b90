"""FastAPI server for Connect Four arena application."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from connect_arena.analytics import AnalyticsService
from connect_arena.config import load_settings
from connect_arena.connection_manager import ConnectionManager
from connect_arena.errors import GameError, NotFound
from connect_arena.lifecycle import SessionLifecycleController
from connect_arena.persistence import GameStore
from connect_arena.players import PlayerService

# Configure logging
logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)

app = FastAPI(title="Connect Four Arena API", version="1.0.0")
settings = load_settings()
connection_manager = ConnectionManager()
game_store = GameStore(settings.persist_dir, enabled=settings.persist_enabled)
player_service = PlayerService(game_store)
analytics_service = AnalyticsService()
controller = SessionLifecycleController(
    notifier=connection_manager,
    players=player_service,
    store=game_store,
    analytics=analytics_service,
    settings=settings,
)


@app.on_event("startup")
def on_startup() -> None:
    """Handle application startup event."""
    logger.debug("Starting Connect Four Arena server")

    print("\n" + "=" * 50)
    print("Connect Four Arena Server Started")
    print(f"Matchmaking timeout: {settings.matchmaking_timeout}s (then AI opponent)")
    print(f"Reconnect grace period: {settings.reconnect_timeout}s")
    print(f"AI search depth: {settings.ai_search_depth}")
    print(f"Known players: {len(player_service.players)}")
    print("=" * 50)


@app.on_event("shutdown")
def on_shutdown() -> None:
    """Stop pending timers and flush player counters."""
    logger.debug("Shutting down Connect Four Arena server")
    controller.shutdown()


class ParticipantResponse(BaseModel):
    """
    Public fields of a participant.

    :param id: Participant identifier
    :type id: str
    :param handle: Display handle
    :type handle: str
    :param is_ai: Whether the AI plays this side
    :type is_ai: bool
    :param connected: Whether the participant currently has a connection
    :type connected: bool
    """

    id: str
    handle: str
    is_ai: bool
    connected: bool


class GameResponse(BaseModel):
    """
    Response model for a session snapshot.

    :param id: Session identifier
    :type id: str
    :param board: Column-major 7x6 grid of participant ids or null
    :type board: List[List[Optional[str]]]
    :param turn: Participant id that moves next
    :type turn: str
    :param status: One of in_progress, completed, abandoned
    :type status: str
    :param outcome: Winner id, "draw", or null while in progress
    :type outcome: Optional[str]
    :param moves: Number of moves played
    :type moves: int
    """

    id: str
    player1: ParticipantResponse
    player2: ParticipantResponse
    turn: str
    board: List[List[Optional[str]]]
    status: str
    outcome: Optional[str] = None
    moves: int
    created_at: float
    ended_at: Optional[float] = None


class LeaderboardEntry(BaseModel):
    """
    One leaderboard row.

    :param win_ratio: Percentage of games won, rounded to 2 decimals
    :type win_ratio: float
    """

    player_id: str
    username: str
    games_won: int
    games_lost: int
    total_games: int
    win_ratio: float


class HealthResponse(BaseModel):
    """
    Response model for the health check.

    :param status: Always "OK" while the process serves requests
    :type status: str
    :param timestamp: ISO timestamp of the response
    :type timestamp: str
    """

    status: str
    timestamp: str
    active_games: int
    queued_players: int
    connections: int


class AnalyticsResponse(BaseModel):
    """Response model for the in-memory analytics summary."""

    total_games: int
    completed_games: int
    average_game_duration: float
    events_today: int
    most_active_hour: int


@app.get("/")
def root() -> Dict[str, str]:
    """
    Root endpoint providing API information.

    :return: API welcome message
    :rtype: Dict[str, str]
    """
    return {"message": "Connect Four Arena API - Use /docs for API documentation"}


@app.get("/api/health", response_model=HealthResponse)
def health() -> HealthResponse:
    """
    Report that the server is up.

    :return: Status with active game and queue counts
    :rtype: HealthResponse
    """
    return HealthResponse(
        status="OK",
        timestamp=datetime.now().isoformat(),
        active_games=len(controller.registry.sessions),
        queued_players=controller.queue.get_queue_size(),
        connections=connection_manager.count()
    )


@app.get("/api/leaderboard", response_model=List[LeaderboardEntry])
def get_leaderboard(limit: int = 10) -> List[LeaderboardEntry]:
    """
    Get players ranked by wins.

    :param limit: Maximum number of entries
    :type limit: int
    :return: Leaderboard entries
    :rtype: List[LeaderboardEntry]
    """
    return [LeaderboardEntry(**entry) for entry in player_service.leaderboard(limit=max(1, limit))]


@app.get("/api/game/{game_id}", response_model=GameResponse)
def get_game(game_id: str) -> GameResponse:
    """
    Get the public snapshot of a game.

    :param game_id: The game identifier
    :type game_id: str
    :return: Snapshot of an active or recently finished game
    :rtype: GameResponse
    :raises HTTPException: If game_id is not found
    """
    try:
        snapshot = controller.get_snapshot(game_id)
    except NotFound:
        raise HTTPException(status_code=404, detail=f"Game {game_id} not found")
    return GameResponse(**snapshot)


@app.get("/api/analytics", response_model=AnalyticsResponse)
def get_analytics() -> AnalyticsResponse:
    """
    Summarize lifecycle events seen by this process.

    :return: Analytics summary
    :rtype: AnalyticsResponse
    """
    return AnalyticsResponse(**analytics_service.get_game_analytics())


def _parse_column(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return None


async def _send_error(connection_id: str, message: str, error_type: str = "error", reason: str = "bad_request") -> None:
    await connection_manager.send_message(connection_id, {
        "type": error_type,
        "reason": reason,
        "message": message
    })


async def _reject(connection_id: str, error_type: str, error: GameError) -> None:
    await connection_manager.send_message(connection_id, {"type": error_type, **error.to_message()})


async def handle_intent(connection_id: str, data: Dict[str, Any]) -> None:
    """
    Dispatch one client message to the lifecycle controller.

    :param connection_id: Connection the message arrived on
    :type connection_id: str
    :param data: Decoded JSON message
    :type data: Dict[str, Any]
    """
    message_type = data.get("type")

    if message_type == "join_queue":
        username = str(data.get("username") or "").strip()
        if not username:
            await _send_error(connection_id, "Username is required")
            return

        logger.debug(f"[WS:{connection_id}] {username} joining matchmaking queue")
        try:
            await controller.join_queue(username, connection_id)
        except GameError as e:
            await _reject(connection_id, "error", e)

    elif message_type == "make_move":
        game_id = data.get("game_id")
        column = _parse_column(data.get("column"))
        if not game_id or column is None:
            await _send_error(connection_id, "Game ID and column are required", error_type="move_rejected")
            return

        logger.debug(f"[WS:{connection_id}] Move in game {game_id}: column {column}")
        try:
            await controller.submit_move(game_id, connection_id, column)
        except GameError as e:
            logger.debug(f"[WS:{connection_id}] Move rejected: {e.reason}")
            await _reject(connection_id, "move_rejected", e)

    elif message_type == "rejoin_game":
        game_id = data.get("game_id")
        username = str(data.get("username") or "").strip()
        if not game_id or not username:
            await _send_error(connection_id, "Game ID and username are required", error_type="rejoin_rejected")
            return

        try:
            await controller.rejoin(game_id, username, connection_id)
        except GameError as e:
            await _reject(connection_id, "rejoin_rejected", e)

    elif message_type == "ping":
        # Heartbeat
        await connection_manager.send_message(connection_id, {"type": "pong"})

    else:
        await _send_error(connection_id, f"Unknown message type: {message_type}")


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """
    WebSocket endpoint for real-time Connect Four game communication.

    Handles matchmaking, moves, rejoining and disconnect notifications.

    :param websocket: WebSocket connection
    :type websocket: WebSocket
    """
    connection_id = await connection_manager.connect(websocket)

    try:
        while True:
            try:
                data = await websocket.receive_json()
            except (RuntimeError, WebSocketDisconnect):
                # WebSocket disconnected while receiving
                raise WebSocketDisconnect()
            except ValueError:
                await _send_error(connection_id, "Messages must be JSON objects")
                continue

            if not isinstance(data, dict):
                await _send_error(connection_id, "Messages must be JSON objects")
                continue

            await handle_intent(connection_id, data)

    except WebSocketDisconnect:
        logger.debug(f"[WS:{connection_id}] WebSocket disconnected")
        connection_manager.disconnect(connection_id)
        session = await controller.on_connection_lost(connection_id)
        if session is not None:
            logger.debug(f"[Session:{session.id}] Waiting for reconnection")
