"""Opponent AI: immediate win/block checks followed by alpha-beta minimax."""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from connect_arena import board as engine
from connect_arena.board import Board
from connect_arena.errors import IllegalMove

logger = logging.getLogger(__name__)

MIN_DEPTH = 3
MAX_DEPTH = 7
DEFAULT_DEPTH = 5

# Center first, then outward
CENTER_PREFERENCE = [3, 2, 4, 1, 5, 0, 6]


@dataclass
class BotMove:
    """
    Column chosen by the bot together with why it was chosen.

    :param column: Column to play
    :type column: int
    :param score: Search score of the column (inf-based for tactical shortcuts)
    :type score: float
    :param reasoning: Short human-readable explanation
    :type reasoning: str
    """

    column: int
    score: float
    reasoning: str


def clamp_depth(depth: int) -> int:
    """
    Keep a requested search depth within the supported range.

    :param depth: Requested depth
    :type depth: int
    :return: Depth clamped to [3, 7]
    :rtype: int
    """
    return max(MIN_DEPTH, min(MAX_DEPTH, depth))


class ConnectFourBot:
    """
    Stateless move picker for one side of a session.

    Every call works on clones of the board it is given, so the caller's
    board is never touched and nothing carries over between calls.

    :param self_id: Participant id the bot plays as
    :type self_id: str
    :param opponent_id: Participant id of the opponent
    :type opponent_id: str
    :param search_depth: Minimax depth in plies (clamped to 3..7)
    :type search_depth: int
    """

    def __init__(self, self_id: str, opponent_id: str, search_depth: int = DEFAULT_DEPTH) -> None:
        self.self_id = self_id
        self.opponent_id = opponent_id
        self.search_depth = clamp_depth(search_depth)
        self.nodes_searched = 0

    def choose_move(self, board: Board) -> BotMove:
        """
        Pick a column: win now, else block, else search.

        :param board: Current board (not modified)
        :type board: Board
        :return: Chosen move
        :rtype: BotMove
        :raises IllegalMove: If the board has no playable column
        """
        columns = engine.legal_columns(board)
        if not columns:
            raise IllegalMove("No playable column left on the board")

        winning = self.find_immediate_win(board, self.self_id)
        if winning is not None:
            return BotMove(column=winning, score=math.inf, reasoning="winning move")

        blocking = self.find_immediate_win(board, self.opponent_id)
        if blocking is not None:
            return BotMove(column=blocking, score=engine.WIN_SCORE, reasoning="blocking move")

        self.nodes_searched = 0
        best_column: Optional[int] = None
        best_score = -math.inf
        alpha = -math.inf

        for column in columns:
            child = engine.clone(board)
            engine.apply_move(child, column, self.self_id)
            score = self._minimax(child, self.search_depth - 1, False, alpha, math.inf)
            if score > best_score:
                best_score = score
                best_column = column
            alpha = max(alpha, best_score)

        logger.debug(
            f"[Bot:{self.self_id}] depth={self.search_depth} nodes={self.nodes_searched} "
            f"best_column={best_column} score={best_score}"
        )

        if best_column is None:
            return BotMove(column=self._center_column(columns), score=best_score, reasoning="center preference")
        return BotMove(column=best_column, score=best_score, reasoning="strategic move")

    def quick_move(self, board: Board) -> BotMove:
        """
        Pick a column without searching: win, block, then center preference.

        :param board: Current board (not modified)
        :type board: Board
        :return: Chosen move
        :rtype: BotMove
        :raises IllegalMove: If the board has no playable column
        """
        columns = engine.legal_columns(board)
        if not columns:
            raise IllegalMove("No playable column left on the board")

        winning = self.find_immediate_win(board, self.self_id)
        if winning is not None:
            return BotMove(column=winning, score=math.inf, reasoning="winning move")

        blocking = self.find_immediate_win(board, self.opponent_id)
        if blocking is not None:
            return BotMove(column=blocking, score=engine.WIN_SCORE, reasoning="blocking move")

        return BotMove(column=self._center_column(columns), score=0, reasoning="center preference")

    def find_immediate_win(self, board: Board, participant_id: str) -> Optional[int]:
        """
        Find a column that wins on the spot for a participant.

        :param board: Current board (not modified)
        :type board: Board
        :param participant_id: Participant to test drops for
        :type participant_id: str
        :return: First winning column, or None
        :rtype: Optional[int]
        """
        for column in engine.legal_columns(board):
            child = engine.clone(board)
            engine.apply_move(child, column, participant_id)
            if engine.detect_winner(child) == participant_id:
                return column
        return None

    def _minimax(self, board: Board, depth: int, maximizing: bool, alpha: float, beta: float) -> float:
        self.nodes_searched += 1

        winner = engine.detect_winner(board)
        if winner == self.self_id:
            return engine.WIN_SCORE + depth
        if winner == self.opponent_id:
            return -engine.WIN_SCORE - depth
        if depth == 0 or engine.is_full(board):
            return engine.evaluate(board, self.self_id, self.opponent_id)

        if maximizing:
            value = -math.inf
            for column in engine.legal_columns(board):
                child = engine.clone(board)
                engine.apply_move(child, column, self.self_id)
                value = max(value, self._minimax(child, depth - 1, False, alpha, beta))
                alpha = max(alpha, value)
                if alpha >= beta:
                    break
            return value

        value = math.inf
        for column in engine.legal_columns(board):
            child = engine.clone(board)
            engine.apply_move(child, column, self.opponent_id)
            value = min(value, self._minimax(child, depth - 1, True, alpha, beta))
            beta = min(beta, value)
            if alpha >= beta:
                break
        return value

    @staticmethod
    def _center_column(columns: list) -> int:
        for column in CENTER_PREFERENCE:
            if column in columns:
                return column
        return columns[0]
