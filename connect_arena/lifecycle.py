"""Session lifecycle controller: queue to session, moves, disconnects and abandonment."""

import asyncio
import dataclasses
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Set, Tuple

from connect_arena import board as engine
from connect_arena.ai import ConnectFourBot
from connect_arena.analytics import (
    GAME_END,
    GAME_START,
    MOVE_MADE,
    PLAYER_DISCONNECT,
    PLAYER_RECONNECT,
    AnalyticsService,
    LifecycleEvent,
)
from connect_arena.config import Settings
from connect_arena.errors import AlreadyInSession, AlreadyQueued, IllegalMove, NotFound, OutOfTurn
from connect_arena.models import (
    DRAW,
    Move,
    Participant,
    Session,
    SessionStatus,
    create_ai_participant,
)
from connect_arena.persistence import GameStore
from connect_arena.players import PlayerService
from connect_arena.queue import MatchmakingQueue, QueueEntry
from connect_arena.registry import SessionRegistry
from connect_arena.renderer import BoardRenderer

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send_message(self, connection_id: str, message: Dict[str, Any]) -> bool:
        ...


class TimerScheduler:
    """
    Runs deferred callbacks on the event loop.

    Callbacks are intents: each one re-validates state when it fires, so
    nothing here needs to be cancelled for correctness. ``shutdown`` only
    exists to stop pending timers when the process exits.
    """

    def __init__(self) -> None:
        self.tasks: Set[asyncio.Task] = set()

    def schedule(self, delay: float, callback: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        """
        Run ``callback`` after ``delay`` seconds.

        :param delay: Delay in seconds
        :type delay: float
        :param callback: Coroutine function to await when the delay elapses
        :type callback: Callable[[], Awaitable[Any]]
        :return: Task wrapping the timer
        :rtype: asyncio.Task
        """
        async def fire() -> None:
            await asyncio.sleep(delay)
            try:
                await callback()
            except Exception:
                logger.exception("[Timer] Deferred callback failed")

        task = asyncio.get_running_loop().create_task(fire())
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    def shutdown(self) -> None:
        for task in list(self.tasks):
            task.cancel()
        self.tasks.clear()


@dataclass
class MoveOutcome:
    """
    Result of an applied move.

    :param session: Session after the move
    :type session: Session
    :param move: Recorded move
    :type move: Move
    :param ended: Whether the move finished the session
    :type ended: bool
    :param ai_turn: Whether the AI now has to move
    :type ai_turn: bool
    """

    session: Session
    move: Move
    ended: bool = False
    ai_turn: bool = False


class SessionLifecycleController:
    """
    Orchestrates every session transition.

    Each handler finishes all of its state changes before its first
    ``await``; notifications and sink calls happen afterwards, so a handler
    re-entered from another connection or timer always sees consistent state.

    :param notifier: Delivers messages to connections
    :type notifier: Notifier
    :param players: Participant directory
    :type players: PlayerService
    :param store: Storage sink for finished sessions
    :type store: GameStore
    :param analytics: Analytics sink
    :type analytics: AnalyticsService
    :param settings: Timeouts and AI configuration
    :type settings: Settings
    """

    def __init__(
        self,
        notifier: Notifier,
        players: PlayerService,
        store: GameStore,
        analytics: AnalyticsService,
        settings: Settings,
        scheduler: Optional[TimerScheduler] = None,
        registry: Optional[SessionRegistry] = None,
        queue: Optional[MatchmakingQueue] = None,
    ) -> None:
        self.notifier = notifier
        self.players = players
        self.store = store
        self.analytics = analytics
        self.settings = settings
        self.scheduler = scheduler or TimerScheduler()
        self.registry = registry or SessionRegistry()
        self.queue = queue or MatchmakingQueue()
        # (session_id, participant_id) -> number of disconnects so far
        self.disconnect_epochs: Dict[Tuple[str, str], int] = {}

    # ---- matchmaking ----

    async def join_queue(self, handle: str, connection_id: str) -> Optional[Session]:
        """
        Pair the caller with a waiting participant, or queue them.

        :param handle: Display handle
        :type handle: str
        :param connection_id: Caller's connection
        :type connection_id: str
        :return: New session if paired immediately, None if queued
        :rtype: Optional[Session]
        :raises AlreadyInSession: If the handle or the connection is already playing
        :raises AlreadyQueued: If the handle or the connection is already waiting
        """
        if self.registry.find_by_connection(connection_id) is not None:
            raise AlreadyInSession("This connection is already playing a game")
        if self.queue.find_connection(connection_id) is not None:
            raise AlreadyQueued("This connection is already waiting for an opponent")

        player = self.players.create_or_get(handle, connection_id)
        if self.registry.find_by_participant(player.id) is not None:
            raise AlreadyInSession(f"{handle} is already playing a game")

        entry = QueueEntry(participant_id=player.id, handle=handle, connection_id=connection_id)
        result = self.queue.join(entry)
        if result.paired:
            session = self._create_session(result.paired_with, result.entry)
            await self._announce_start(session)
            return session

        timeout = self.settings.matchmaking_timeout
        self.scheduler.schedule(timeout, lambda: self.on_queue_timeout(player.id, entry.enqueued_at))
        await self.notifier.send_message(connection_id, {
            "type": "queued",
            "message": "Waiting for an opponent...",
            "timeout_seconds": timeout
        })
        return None

    async def on_queue_timeout(self, participant_id: str, enqueued_at: Optional[float] = None) -> Optional[Session]:
        """
        Start an AI session if the participant is still waiting.

        :param participant_id: Participant whose countdown fired
        :type participant_id: str
        :param enqueued_at: Enqueue time of the entry the countdown was armed for
        :type enqueued_at: Optional[float]
        :return: New AI session, or None if the entry was already resolved
        :rtype: Optional[Session]
        """
        entry = self.queue.on_timeout_expire(participant_id, enqueued_at)
        if entry is None:
            return None

        logger.info(f"[Queue] No opponent for {entry.handle} ({participant_id}), starting AI game")
        session = self._create_session(entry, None)
        await self._announce_start(session)
        return session

    def _embedded_participant(self, entry: QueueEntry) -> Participant:
        record = self.players.get(entry.participant_id)
        if record is None:
            return Participant(id=entry.participant_id, handle=entry.handle, connection_id=entry.connection_id)
        return dataclasses.replace(record, connection_id=entry.connection_id, connected=True, last_seen=time.time())

    def _create_session(self, first: QueueEntry, second: Optional[QueueEntry]) -> Session:
        session_id = str(uuid.uuid4())
        first_participant = self._embedded_participant(first)
        if second is None:
            second_participant = create_ai_participant(session_id)
        else:
            second_participant = self._embedded_participant(second)

        session = Session(
            id=session_id,
            first=first_participant,
            second=second_participant,
            turn=first_participant.id,
        )
        self.registry.add(session)
        logger.info(f"[Session:{session_id}] Created: {first_participant.handle} vs {second_participant.handle}")
        return session

    async def _announce_start(self, session: Session) -> None:
        snapshot = session.snapshot()
        for participant in session.participants:
            if participant.is_ai or not participant.connection_id:
                continue
            opponent = session.opponent_of(participant.id)
            await self.notifier.send_message(participant.connection_id, {
                "type": "session_started",
                "game": snapshot,
                "your_id": participant.id,
                "opponent_id": opponent.id,
                "vs_ai": session.vs_ai
            })

        await self.analytics.publish(LifecycleEvent(
            type=GAME_START,
            session_id=session.id,
            data={
                "player1": session.first.handle,
                "player2": session.second.handle,
                "vs_ai": session.vs_ai
            }
        ))

    # ---- moves ----

    async def submit_move(self, session_id: str, connection_id: str, column: int) -> MoveOutcome:
        """
        Apply a move sent from a connection.

        :param session_id: Target session
        :type session_id: str
        :param connection_id: Connection the move came from
        :type connection_id: str
        :param column: Column to drop into
        :type column: int
        :return: Applied move and resulting state
        :rtype: MoveOutcome
        :raises NotFound: If the session does not exist
        :raises SessionNotActive: If the session already ended
        :raises OutOfTurn: If the connection is not the participant to move
        :raises IllegalMove: If the column is out of range or full
        """
        session = self.registry.require_active(session_id)
        participant = session.by_connection(connection_id)
        if participant is None:
            raise OutOfTurn("This connection is not playing in this game")
        if participant.id != session.turn:
            raise OutOfTurn("Not your turn")
        return await self._apply_move(session, participant, column)

    async def play_ai_turn(self, session_id: str, expected_moves: int) -> Optional[MoveOutcome]:
        """
        Let the AI move, if it is still its turn.

        :param session_id: Target session
        :type session_id: str
        :param expected_moves: Move count when the AI turn was scheduled
        :type expected_moves: int
        :return: Applied move, or None if the turn is no longer the AI's
        :rtype: Optional[MoveOutcome]
        """
        session = self.registry.get(session_id)
        if session is None or not session.is_active:
            logger.debug(f"[Session:{session_id}] AI turn skipped, session no longer active")
            return None

        bot_player = session.current()
        if not bot_player.is_ai or len(session.moves) != expected_moves:
            logger.debug(f"[Session:{session_id}] AI turn skipped, state changed since scheduling")
            return None

        opponent = session.opponent_of(bot_player.id)
        bot = ConnectFourBot(bot_player.id, opponent.id, self.settings.ai_search_depth)
        choice = bot.choose_move(session.board)
        logger.debug(f"[Session:{session_id}] AI plays column {choice.column} ({choice.reasoning})")
        return await self._apply_move(session, bot_player, choice.column)

    async def _apply_move(self, session: Session, participant: Participant, column: int) -> MoveOutcome:
        row = engine.apply_move(session.board, column, participant.id)
        if row is None:
            raise IllegalMove(f"Column {column} is not playable")

        now = time.time()
        move = Move(
            number=len(session.moves) + 1,
            participant_id=participant.id,
            column=column,
            row=row,
            timestamp=now,
        )
        session.moves.append(move)
        participant.last_seen = now

        winner = engine.detect_winner(session.board)
        ended = winner is not None or engine.is_full(session.board)
        if ended:
            self._finish(
                session,
                SessionStatus.COMPLETED,
                outcome=winner or DRAW,
                reason="win" if winner else "draw",
            )
        else:
            session.turn = session.opponent_of(participant.id).id
        ai_turn = not ended and session.current().is_ai

        logger.debug(f"[Session:{session.id}] Move {move.number}: {participant.id} -> column {column}, row {row}")
        if logger.isEnabledFor(logging.DEBUG):
            symbols = {session.first.id: "X", session.second.id: "O"}
            logger.debug("\n" + BoardRenderer.render(session.board, symbols))
        await self._broadcast(session, {
            "type": "move_applied",
            "game": session.snapshot(),
            "move": move.to_dict(),
            "next_turn": None if ended else session.turn,
            "ai_move": participant.is_ai
        })
        await self.analytics.publish(LifecycleEvent(
            type=MOVE_MADE,
            session_id=session.id,
            participant_id=participant.id,
            data={"column": column, "row": row, "number": move.number}
        ))

        if ended:
            await self._announce_end(session)
        elif ai_turn:
            expected = len(session.moves)
            self.scheduler.schedule(self.settings.ai_move_delay, lambda: self.play_ai_turn(session.id, expected))

        return MoveOutcome(session=session, move=move, ended=ended, ai_turn=ai_turn)

    # ---- disconnect / reconnect / abandonment ----

    async def on_connection_lost(self, connection_id: str) -> Optional[Session]:
        """
        Handle a closed connection.

        Drops a pending queue entry, or marks the participant disconnected
        and arms the abandonment countdown. Board and turn are untouched.

        :param connection_id: Closed connection
        :type connection_id: str
        :return: Affected in-progress session, or None
        :rtype: Optional[Session]
        """
        self.queue.remove_connection(connection_id)

        session = self.registry.find_by_connection(connection_id)
        if session is None or not session.is_active:
            self.registry.unbind_connection(connection_id)
            return None

        participant = session.by_connection(connection_id)
        if participant is None:
            self.registry.unbind_connection(connection_id)
            return None

        participant.connected = False
        participant.last_seen = time.time()
        self.registry.unbind_connection(connection_id)
        participant.connection_id = None

        record = self.players.get(participant.id)
        if record is not None:
            record.connected = False

        key = (session.id, participant.id)
        epoch = self.disconnect_epochs.get(key, 0) + 1
        self.disconnect_epochs[key] = epoch
        timeout = self.settings.reconnect_timeout
        self.scheduler.schedule(timeout, lambda: self.on_abandon_timeout(session.id, participant.id, epoch))
        logger.info(f"[Session:{session.id}] {participant.handle} disconnected, {timeout}s to rejoin")

        opponent = session.opponent_of(participant.id)
        if opponent.connection_id:
            await self.notifier.send_message(opponent.connection_id, {
                "type": "opponent_disconnected",
                "participant_id": participant.id,
                "handle": participant.handle,
                "timeout_seconds": timeout
            })
        await self.analytics.publish(LifecycleEvent(
            type=PLAYER_DISCONNECT,
            session_id=session.id,
            participant_id=participant.id,
            data={"handle": participant.handle}
        ))
        return session

    async def rejoin(self, session_id: str, handle: str, connection_id: str) -> Session:
        """
        Reattach a participant to an in-progress session from a new connection.

        Pending abandonment timers are left alone; they see ``connected`` and no-op.

        :param session_id: Session to rejoin
        :type session_id: str
        :param handle: Display handle of the participant
        :type handle: str
        :param connection_id: New connection
        :type connection_id: str
        :return: The rejoined session
        :rtype: Session
        :raises NotFound: If the session or the handle in it does not exist
        :raises AlreadyInSession: If the connection already plays another side or session
        :raises AlreadyQueued: If the connection is waiting in the queue
        :raises SessionNotActive: If the session already ended
        """
        session = self.registry.require_active(session_id)
        participant = session.by_handle(handle)
        if participant is None:
            raise NotFound(f"{handle} is not a player in game {session_id}")
        # One connection plays one side of one session
        bound = self.registry.find_by_connection(connection_id)
        if bound is not None and (bound is not session or session.by_connection(connection_id) is not participant):
            raise AlreadyInSession("This connection is already playing a game")
        if self.queue.find_connection(connection_id) is not None:
            raise AlreadyQueued("This connection is already waiting for an opponent")

        self.registry.bind_connection(session, participant, connection_id)
        participant.connected = True
        participant.last_seen = time.time()

        record = self.players.get(participant.id)
        if record is not None:
            record.connection_id = connection_id
            record.connected = True

        opponent = session.opponent_of(participant.id)
        logger.info(f"[Session:{session_id}] {handle} rejoined")

        await self.notifier.send_message(connection_id, {
            "type": "session_rejoined",
            "game": session.snapshot(),
            "your_id": participant.id,
            "opponent_id": opponent.id
        })
        if opponent.connection_id:
            await self.notifier.send_message(opponent.connection_id, {
                "type": "opponent_reconnected",
                "participant_id": participant.id,
                "handle": participant.handle
            })
        await self.analytics.publish(LifecycleEvent(
            type=PLAYER_RECONNECT,
            session_id=session.id,
            participant_id=participant.id,
            data={"handle": handle}
        ))
        return session

    async def on_abandon_timeout(self, session_id: str, participant_id: str, epoch: Optional[int] = None) -> bool:
        """
        Abandon a session whose participant never came back.

        No-op unless the session is still in progress and the participant is
        still disconnected (from the same disconnect that armed this timer,
        when ``epoch`` is given).

        :param session_id: Session the timer belongs to
        :type session_id: str
        :param participant_id: Participant that disconnected
        :type participant_id: str
        :param epoch: Disconnect counter captured when the timer was armed
        :type epoch: Optional[int]
        :return: True if the session was abandoned
        :rtype: bool
        """
        session = self.registry.get(session_id)
        if session is None or not session.is_active:
            return False

        participant = session.participant(participant_id)
        if participant is None or participant.connected:
            logger.debug(f"[Session:{session_id}] Abandonment check for {participant_id} ignored")
            return False
        if epoch is not None and self.disconnect_epochs.get((session_id, participant_id)) != epoch:
            logger.debug(f"[Session:{session_id}] Stale abandonment timer for {participant_id} ignored")
            return False

        winner = session.opponent_of(participant_id)
        self._finish(session, SessionStatus.ABANDONED, outcome=winner.id, reason="abandoned")
        logger.info(f"[Session:{session_id}] Abandoned by {participant.handle}, {winner.handle} wins")
        await self._announce_end(session)
        return True

    # ---- termination ----

    def _finish(self, session: Session, status: SessionStatus, outcome: str, reason: str) -> None:
        session.status = status
        session.outcome = outcome
        session.end_reason = reason
        session.ended_at = time.time()

        if outcome != DRAW:
            winner = session.participant(outcome)
            loser = session.opponent_of(outcome)
            # Abandonment won by the AI leaves both counters alone
            if not (status == SessionStatus.ABANDONED and winner is not None and winner.is_ai):
                self._record_result(winner, True)
                self._record_result(loser, False)

        self.registry.finish(session)
        for participant in session.participants:
            self.disconnect_epochs.pop((session.id, participant.id), None)

    def _record_result(self, participant: Optional[Participant], won: bool) -> None:
        if participant is None or participant.is_ai:
            return
        if won:
            participant.games_won += 1
        else:
            participant.games_lost += 1
        self.players.record_result(participant.id, won)

    async def _announce_end(self, session: Session) -> None:
        self.store.persist(session)

        await self.analytics.publish(LifecycleEvent(
            type=GAME_END,
            session_id=session.id,
            data={
                "outcome": session.outcome,
                "reason": session.end_reason,
                "total_moves": len(session.moves),
                "duration": (session.ended_at or time.time()) - session.created_at
            }
        ))
        await self._broadcast(session, {
            "type": "session_ended",
            "game": session.snapshot(),
            "outcome": session.outcome,
            "winner": None if session.outcome == DRAW else session.outcome,
            "reason": session.end_reason
        })
        logger.info(f"[Session:{session.id}] Ended ({session.end_reason}), outcome: {session.outcome}")

    async def _broadcast(self, session: Session, message: Dict[str, Any]) -> None:
        for participant in session.participants:
            if participant.connection_id:
                await self.notifier.send_message(participant.connection_id, message)

    # ---- read-only views ----

    def get_snapshot(self, session_id: str) -> Dict[str, Any]:
        """
        Public snapshot of an active or recently finished session.

        :param session_id: Session identifier
        :type session_id: str
        :return: Snapshot dictionary
        :rtype: Dict[str, Any]
        :raises NotFound: If the session is unknown
        """
        session = self.registry.lookup(session_id)
        if session is None:
            raise NotFound(f"Game {session_id} not found")
        return session.snapshot()

    def shutdown(self) -> None:
        self.scheduler.shutdown()
        self.store.save_players(self.players.players)
