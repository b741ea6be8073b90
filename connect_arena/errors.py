"""Rejection reasons surfaced to callers as reason codes."""


class GameError(Exception):
    """
    Base class for rejected intents.

    :param message: Human-readable explanation
    :type message: str
    """

    reason = "error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.reason)
        self.message = message or self.reason

    def to_message(self) -> dict:
        return {"reason": self.reason, "message": self.message}


class NotFound(GameError):
    """Session or queue entry does not exist."""

    reason = "not_found"


class IllegalMove(GameError):
    """Column is out of range or already full."""

    reason = "illegal_move"


class OutOfTurn(GameError):
    """The connection does not belong to the participant whose turn it is."""

    reason = "out_of_turn"


class SessionNotActive(GameError):
    """The session has already completed or been abandoned."""

    reason = "session_not_active"


class AlreadyQueued(GameError):
    """The participant already has an unresolved queue entry."""

    reason = "already_queued"


class AlreadyInSession(GameError):
    """The participant is already playing an active session."""

    reason = "already_in_session"


class Unreachable(GameError):
    """A storage or analytics collaborator could not be reached."""

    reason = "unreachable"
