"""Participant directory keyed by display handle, with win/loss counters."""

import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from connect_arena.models import Participant
from connect_arena.persistence import GameStore

logger = logging.getLogger(__name__)


class PlayerService:
    """
    Maps display handles to stable participant ids.

    Handles are best-effort names, not verified identities: the same handle
    always resolves to the same participant.

    :param store: Optional storage sink used to load and save counters
    :type store: Optional[GameStore]
    """

    def __init__(self, store: Optional[GameStore] = None) -> None:
        self.store = store
        self.players: Dict[str, Participant] = store.load_players() if store else {}
        self.handle_index: Dict[str, str] = {player.handle: player.id for player in self.players.values()}

    def create_or_get(self, handle: str, connection_id: str) -> Participant:
        """
        Resolve a handle to its participant, creating one on first sight.

        :param handle: Display handle
        :type handle: str
        :param connection_id: Connection the request came from
        :type connection_id: str
        :return: Directory record for the participant
        :rtype: Participant
        """
        player_id = self.handle_index.get(handle)
        if player_id is not None:
            player = self.players[player_id]
            player.connection_id = connection_id
            player.connected = True
            player.last_seen = time.time()
            return player

        player = Participant(id=str(uuid.uuid4()), handle=handle, connection_id=connection_id)
        self.players[player.id] = player
        self.handle_index[handle] = player.id
        logger.info(f"[Players] Created player {handle} ({player.id})")
        return player

    def get(self, player_id: str) -> Optional[Participant]:
        return self.players.get(player_id)

    def record_result(self, player_id: str, won: bool) -> None:
        """
        Increment a participant's win or loss counter.

        :param player_id: Participant identifier
        :type player_id: str
        :param won: True for a win, False for a loss
        :type won: bool
        """
        player = self.players.get(player_id)
        if player is None or player.is_ai:
            return

        if won:
            player.games_won += 1
        else:
            player.games_lost += 1
        logger.info(f"[Players] Updated stats for {player_id}: {'win' if won else 'loss'}")

        if self.store:
            self.store.save_players(self.players)

    def leaderboard(self, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Rank participants by wins, then win ratio.

        :param limit: Maximum number of entries
        :type limit: int
        :return: Leaderboard entries
        :rtype: List[Dict[str, Any]]
        """
        ranked = [p for p in self.players.values() if not p.is_ai and (p.games_won + p.games_lost) > 0]
        ranked.sort(key=lambda p: (p.games_won, p.games_won / (p.games_won + p.games_lost)), reverse=True)

        entries = []
        for player in ranked[:limit]:
            total = player.games_won + player.games_lost
            entries.append({
                "player_id": player.id,
                "username": player.handle,
                "games_won": player.games_won,
                "games_lost": player.games_lost,
                "total_games": total,
                "win_ratio": round(player.games_won / total * 100, 2),
            })
        return entries
