"""Session, participant and move records."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from connect_arena.board import Board, create_empty_board

AI_HANDLE = "AI Bot"
DRAW = "draw"


class SessionStatus(str, Enum):
    """Lifecycle states of a session; ``WAITING`` only exists inside the queue."""

    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


@dataclass
class Participant:
    """
    One side of a session.

    :param id: Stable participant identifier
    :type id: str
    :param handle: Display name, not a verified identity
    :type handle: str
    :param connection_id: Current connection, None while disconnected or for the AI
    :type connection_id: Optional[str]
    :param is_ai: Whether the bot plays this side
    :type is_ai: bool
    """

    id: str
    handle: str
    connection_id: Optional[str] = None
    games_won: int = 0
    games_lost: int = 0
    is_ai: bool = False
    connected: bool = True
    last_seen: float = field(default_factory=time.time)

    def public(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "handle": self.handle,
            "is_ai": self.is_ai,
            "connected": self.connected,
        }


def create_ai_participant(session_id: str) -> Participant:
    """
    Synthesize the bot side of a session.

    :param session_id: Session the bot plays in
    :type session_id: str
    :return: AI participant with no connection
    :rtype: Participant
    """
    return Participant(id=f"bot_{session_id}", handle=AI_HANDLE, connection_id=None, is_ai=True)


@dataclass(frozen=True)
class Move:
    """
    One recorded drop.

    :param number: 1-based ordinal within the session
    :type number: int
    :param participant_id: Participant who dropped the disc
    :type participant_id: str
    :param column: Column played
    :type column: int
    :param row: Row the disc landed on
    :type row: int
    :param timestamp: Unix time of the move
    :type timestamp: float
    """

    number: int
    participant_id: str
    column: int
    row: int
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "participant_id": self.participant_id,
            "column": self.column,
            "row": self.row,
            "timestamp": self.timestamp,
        }


@dataclass
class Session:
    """
    One game between two participants.

    The session owns its own copies of both participants; persisted player
    records are updated separately.
    """

    id: str
    first: Participant
    second: Participant
    turn: str
    board: Board = field(default_factory=create_empty_board)
    status: SessionStatus = SessionStatus.IN_PROGRESS
    outcome: Optional[str] = None
    end_reason: Optional[str] = None
    moves: List[Move] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)
    ended_at: Optional[float] = None

    @property
    def participants(self) -> List[Participant]:
        return [self.first, self.second]

    @property
    def vs_ai(self) -> bool:
        return self.first.is_ai or self.second.is_ai

    def participant(self, participant_id: str) -> Optional[Participant]:
        """
        Look up one of the two participants by id.

        :param participant_id: Participant identifier
        :type participant_id: str
        :return: Matching participant, or None
        :rtype: Optional[Participant]
        """
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None

    def opponent_of(self, participant_id: str) -> Participant:
        """
        Return the other participant.

        :param participant_id: One of the two participant ids
        :type participant_id: str
        :return: The participant that is not ``participant_id``
        :rtype: Participant
        """
        return self.second if self.first.id == participant_id else self.first

    def current(self) -> Participant:
        """Participant whose turn it is."""
        return self.first if self.turn == self.first.id else self.second

    def by_connection(self, connection_id: str) -> Optional[Participant]:
        for participant in self.participants:
            if participant.connection_id is not None and participant.connection_id == connection_id:
                return participant
        return None

    def by_handle(self, handle: str) -> Optional[Participant]:
        for participant in self.participants:
            if not participant.is_ai and participant.handle == handle:
                return participant
        return None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.IN_PROGRESS

    def snapshot(self) -> Dict[str, Any]:
        """
        Public view of the session for the presentation layer.

        Connection ids and the move history are never included.

        :return: JSON-serializable snapshot
        :rtype: Dict[str, Any]
        """
        return {
            "id": self.id,
            "player1": self.first.public(),
            "player2": self.second.public(),
            "turn": self.turn,
            "board": [column[:] for column in self.board],
            "status": self.status.value,
            "outcome": self.outcome,
            "moves": len(self.moves),
            "created_at": self.created_at,
            "ended_at": self.ended_at,
        }

    def to_record(self) -> Dict[str, Any]:
        """
        Finalized record handed to the storage sink.

        :return: JSON-serializable record including the full move list
        :rtype: Dict[str, Any]
        """
        return {
            "id": self.id,
            "player1_id": None if self.first.is_ai else self.first.id,
            "player2_id": None if self.second.is_ai else self.second.id,
            "player1_handle": self.first.handle,
            "player2_handle": self.second.handle,
            "vs_ai": self.vs_ai,
            "status": self.status.value,
            "outcome": self.outcome,
            "end_reason": self.end_reason,
            "board": [column[:] for column in self.board],
            "moves": [move.to_dict() for move in self.moves],
            "created_at": self.created_at,
            "ended_at": self.ended_at,
        }
