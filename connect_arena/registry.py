"""Session registry: active sessions plus participant and connection indexes."""

import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from connect_arena.errors import NotFound, SessionNotActive
from connect_arena.models import Participant, Session

logger = logging.getLogger(__name__)

# Finished sessions kept so late intents get an accurate rejection
FINISHED_HISTORY = 1000


class SessionRegistry:
    """
    Owns every active session and the two lookup indexes.

    Maps session id to session, participant id to session id and connection
    id to session id. Finished sessions are dropped from all three maps and
    kept in a bounded history only so late requests can be rejected with
    ``SessionNotActive`` instead of ``NotFound``.
    """

    def __init__(self, finished_history: int = FINISHED_HISTORY) -> None:
        self.sessions: Dict[str, Session] = {}
        self.participant_to_session: Dict[str, str] = {}
        self.connection_to_session: Dict[str, str] = {}
        self.finished: "OrderedDict[str, Session]" = OrderedDict()
        self.finished_history = finished_history

    def add(self, session: Session) -> Session:
        """
        Register a freshly created session and index its participants.

        :param session: Session to register
        :type session: Session
        :return: The registered session
        :rtype: Session
        """
        logger.debug(f"[Session:{session.id}] Registering {session.first.id} vs {session.second.id}")
        self.sessions[session.id] = session
        for participant in session.participants:
            if participant.is_ai:
                continue
            self.participant_to_session[participant.id] = session.id
            if participant.connection_id:
                self.connection_to_session[participant.connection_id] = session.id
        return session

    def get(self, session_id: str) -> Optional[Session]:
        """
        Get an active session by id.

        :param session_id: Session identifier
        :type session_id: str
        :return: Session if active
        :rtype: Optional[Session]
        """
        return self.sessions.get(session_id)

    def require_active(self, session_id: str) -> Session:
        """
        Get an active session or raise the matching rejection.

        :param session_id: Session identifier
        :type session_id: str
        :return: Active session
        :rtype: Session
        :raises SessionNotActive: If the session already ended
        :raises NotFound: If the session never existed or has been forgotten
        """
        session = self.sessions.get(session_id)
        if session is not None and session.is_active:
            return session
        if session is not None or session_id in self.finished:
            raise SessionNotActive(f"Game {session_id} is no longer in progress")
        raise NotFound(f"Game {session_id} not found")

    def lookup(self, session_id: str) -> Optional[Session]:
        """Active or recently finished session, for read-only views."""
        return self.sessions.get(session_id) or self.finished.get(session_id)

    def find_by_connection(self, connection_id: str) -> Optional[Session]:
        session_id = self.connection_to_session.get(connection_id)
        return self.sessions.get(session_id) if session_id else None

    def find_by_participant(self, participant_id: str) -> Optional[Session]:
        session_id = self.participant_to_session.get(participant_id)
        return self.sessions.get(session_id) if session_id else None

    def bind_connection(self, session: Session, participant: Participant, connection_id: str) -> None:
        """
        Point a participant at a new connection and re-index it.

        :param session: Session the participant belongs to
        :type session: Session
        :param participant: Participant reconnecting
        :type participant: Participant
        :param connection_id: New connection identifier
        :type connection_id: str
        """
        if participant.connection_id:
            self.connection_to_session.pop(participant.connection_id, None)
        participant.connection_id = connection_id
        self.connection_to_session[connection_id] = session.id
        self.participant_to_session[participant.id] = session.id
        logger.debug(f"[Session:{session.id}] Connection {connection_id} bound to {participant.id}")

    def unbind_connection(self, connection_id: str) -> None:
        """
        Forget a closed connection.

        :param connection_id: Connection identifier
        :type connection_id: str
        """
        session_id = self.connection_to_session.pop(connection_id, None)
        if session_id:
            logger.debug(f"[Session:{session_id}] Removed connection {connection_id} mapping")

    def finish(self, session: Session) -> None:
        """
        Remove a terminal session from every index.

        :param session: Session that reached completed or abandoned
        :type session: Session
        """
        logger.debug(f"[Session:{session.id}] Removing session")
        self.sessions.pop(session.id, None)
        for participant in session.participants:
            if self.participant_to_session.get(participant.id) == session.id:
                del self.participant_to_session[participant.id]
            if participant.connection_id and self.connection_to_session.get(participant.connection_id) == session.id:
                del self.connection_to_session[participant.connection_id]

        self.finished[session.id] = session
        while len(self.finished) > self.finished_history:
            self.finished.popitem(last=False)

    def active_sessions(self) -> List[Session]:
        return list(self.sessions.values())
