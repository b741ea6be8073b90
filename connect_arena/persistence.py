"""Append-only storage for finalized sessions and participant counters."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Set

from connect_arena.errors import Unreachable
from connect_arena.models import Participant, Session

logger = logging.getLogger(__name__)

PERSIST_DIR = Path("/tmp/connect_arena")
GAMES_FILE_NAME = "games.jsonl"
PLAYERS_FILE_NAME = "players.json"


def ensure_persist_dir(persist_dir: Path = PERSIST_DIR) -> None:
    """
    Ensure the persistence directory exists.

    :param persist_dir: Directory to create
    :type persist_dir: Path
    :raises OSError: If directory creation fails
    """
    persist_dir.mkdir(parents=True, exist_ok=True)


class GameStore:
    """
    Storage sink for finished sessions.

    Every session is written at most once. Failures are logged and swallowed
    so gameplay never depends on the disk being writable.

    :param persist_dir: Directory holding the JSONL and players files
    :type persist_dir: Path
    :param enabled: When False every write is a logged no-op
    :type enabled: bool
    """

    def __init__(self, persist_dir: Path = PERSIST_DIR, enabled: bool = True) -> None:
        self.persist_dir = Path(persist_dir)
        self.enabled = enabled
        self.persisted_ids: Set[str] = set()

    @property
    def games_file(self) -> Path:
        return self.persist_dir / GAMES_FILE_NAME

    @property
    def players_file(self) -> Path:
        return self.persist_dir / PLAYERS_FILE_NAME

    def _write(self, path: Path, text: str, mode: str) -> None:
        try:
            ensure_persist_dir(self.persist_dir)
            with open(path, mode) as f:
                f.write(text)
        except OSError as e:
            raise Unreachable(f"{path} is not writable: {e}") from e

    def persist(self, session: Session) -> bool:
        """
        Append a finalized session record.

        :param session: Session in a terminal state
        :type session: Session
        :return: True if written, False if skipped or the write failed
        :rtype: bool
        """
        if session.id in self.persisted_ids:
            logger.debug(f"[Store] Game {session.id} already persisted, skipping")
            return False
        if not self.enabled:
            logger.warning(f"[Store] Storage disabled. Skipping persistence for game {session.id}")
            return False

        record = session.to_record()
        record["persisted_at"] = datetime.now().isoformat()

        try:
            self._write(self.games_file, json.dumps(record) + "\n", mode="a")
        except (Unreachable, TypeError, ValueError) as e:
            logger.warning(f"[Store] Failed to persist game {session.id}: {e}")
            return False

        self.persisted_ids.add(session.id)
        logger.info(f"[Store] Game {session.id} persisted with {len(session.moves)} moves")
        return True

    def load_games(self) -> list:
        """
        Read back every persisted session record.

        :return: Records in write order; unreadable lines are skipped
        :rtype: list
        """
        if not self.games_file.exists():
            return []

        records = []
        try:
            with open(self.games_file, 'r') as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        records.append(json.loads(line))
                    except json.JSONDecodeError:
                        logger.warning(f"[Store] Skipping corrupt line in {self.games_file}")
        except OSError as e:
            logger.warning(f"[Store] Failed to read {self.games_file}: {e}")
        return records

    def save_players(self, players: Dict[str, Participant]) -> bool:
        """
        Save participant counters to disk.

        :param players: Mapping of participant id to participant
        :type players: Dict[str, Participant]
        :return: True if written
        :rtype: bool
        """
        if not self.enabled:
            return False

        player_data = {
            player_id: {
                "handle": player.handle,
                "games_won": player.games_won,
                "games_lost": player.games_lost,
                "updated_at": datetime.now().isoformat()
            }
            for player_id, player in players.items()
            if not player.is_ai
        }

        try:
            self._write(self.players_file, json.dumps(player_data, indent=2), mode="w")
        except Unreachable as e:
            logger.warning(f"[Store] Failed to save players: {e}")
            return False
        return True

    def load_players(self) -> Dict[str, Participant]:
        """
        Load participant counters from disk.

        :return: Mapping of participant id to a disconnected participant
        :rtype: Dict[str, Participant]
        """
        if not self.enabled or not self.players_file.exists():
            return {}

        try:
            with open(self.players_file, 'r') as f:
                player_data = json.load(f)

            players = {}
            for player_id, data in player_data.items():
                players[player_id] = Participant(
                    id=player_id,
                    handle=data["handle"],
                    connection_id=None,
                    games_won=int(data.get("games_won", 0)),
                    games_lost=int(data.get("games_lost", 0)),
                    connected=False,
                )
            return players
        except (OSError, json.JSONDecodeError, KeyError, ValueError, AttributeError) as e:
            logger.warning(f"[Store] Failed to load players: {e}")
            return {}

