"""Settings read from environment variables."""

import os
from dataclasses import dataclass
from pathlib import Path

from connect_arena.ai import DEFAULT_DEPTH, clamp_depth


@dataclass(frozen=True)
class Settings:
    """
    Runtime configuration.

    :param matchmaking_timeout: Seconds a queued participant waits before an AI opponent is spawned
    :type matchmaking_timeout: float
    :param reconnect_timeout: Seconds a disconnected participant has to rejoin
    :type reconnect_timeout: float
    :param ai_search_depth: Minimax depth for the AI opponent
    :type ai_search_depth: int
    :param ai_move_delay: Cosmetic delay before the AI moves
    :type ai_move_delay: float
    :param persist_dir: Directory of the storage sink
    :type persist_dir: Path
    :param persist_enabled: Whether the storage sink writes at all
    :type persist_enabled: bool
    """

    matchmaking_timeout: float = 10.0
    reconnect_timeout: float = 30.0
    ai_search_depth: int = DEFAULT_DEPTH
    ai_move_delay: float = 0.5
    persist_dir: Path = Path("/tmp/connect_arena")
    persist_enabled: bool = True


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return float(value)


def load_settings() -> Settings:
    """
    Build settings from the environment.

    :return: Settings with defaults for every unset variable
    :rtype: Settings
    :raises ValueError: If a numeric variable cannot be parsed
    """
    return Settings(
        matchmaking_timeout=_env_float("MATCHMAKING_TIMEOUT", 10.0),
        reconnect_timeout=_env_float("RECONNECT_TIMEOUT", 30.0),
        ai_search_depth=clamp_depth(int(os.environ.get("AI_SEARCH_DEPTH", DEFAULT_DEPTH))),
        ai_move_delay=_env_float("AI_MOVE_DELAY", 0.5),
        persist_dir=Path(os.environ.get("PERSIST_DIR", "/tmp/connect_arena")),
        persist_enabled=os.environ.get("PERSIST_ENABLED", "1").lower() not in ("0", "false", "no"),
    )
