"""Connect Four board engine: legality, gravity, win/draw detection and evaluation."""

from typing import List, Optional, Tuple

COLUMNS = 7
ROWS = 6
CONNECT = 4

# (delta_column, delta_row) for horizontal, vertical, rising and falling runs
DIRECTIONS: Tuple[Tuple[int, int], ...] = ((1, 0), (0, 1), (1, 1), (1, -1))

WIN_SCORE = 1000
WINDOW_SCORES = {4: 1000, 3: 50, 2: 10, 1: 1}

Board = List[List[Optional[str]]]


def create_empty_board() -> Board:
    """
    Create a board with every cell empty.

    The board is column-major: ``board[column][row]`` with row 0 at the bottom.

    :return: Empty 7x6 board
    :rtype: Board
    """
    return [[None] * ROWS for _ in range(COLUMNS)]


def clone(board: Board) -> Board:
    """
    Copy a board so search branches never share cells.

    :param board: Board to copy
    :type board: Board
    :return: Independent copy of the board
    :rtype: Board
    """
    return [column[:] for column in board]


def is_legal(board: Board, column: int) -> bool:
    """
    Check whether a disc can be dropped into a column.

    :param board: Current board
    :type board: Board
    :param column: Target column index
    :type column: int
    :return: True if the column is in range and its top cell is empty
    :rtype: bool
    """
    if not isinstance(column, int) or isinstance(column, bool):
        return False
    if column < 0 or column >= COLUMNS:
        return False
    return board[column][ROWS - 1] is None


def legal_columns(board: Board) -> List[int]:
    """
    List every playable column in ascending order.

    :param board: Current board
    :type board: Board
    :return: Playable column indexes
    :rtype: List[int]
    """
    return [column for column in range(COLUMNS) if is_legal(board, column)]


def apply_move(board: Board, column: int, participant_id: str) -> Optional[int]:
    """
    Drop a disc into the lowest empty row of a column, mutating the board.

    :param board: Board to mutate
    :type board: Board
    :param column: Target column index
    :type column: int
    :param participant_id: Owner of the dropped disc
    :type participant_id: str
    :return: Row the disc landed on, or None if the column is not playable
    :rtype: Optional[int]
    """
    if not is_legal(board, column):
        return None

    cells = board[column]
    for row in range(ROWS):
        if cells[row] is None:
            cells[row] = participant_id
            return row
    return None


def _windows() -> List[List[Tuple[int, int]]]:
    windows = []
    for delta_column, delta_row in DIRECTIONS:
        for column in range(COLUMNS):
            for row in range(ROWS):
                end_column = column + (CONNECT - 1) * delta_column
                end_row = row + (CONNECT - 1) * delta_row
                if not (0 <= end_column < COLUMNS and 0 <= end_row < ROWS):
                    continue
                windows.append([
                    (column + i * delta_column, row + i * delta_row) for i in range(CONNECT)
                ])
    return windows


# Precomputed once; every length-4 line on a 7x6 board (69 windows)
WINDOWS = _windows()


def detect_winner(board: Board) -> Optional[str]:
    """
    Find a complete run of four discs.

    Windows are scanned horizontal, vertical, rising diagonal, then falling
    diagonal so the result is deterministic.

    :param board: Board to inspect
    :type board: Board
    :return: Id of the participant owning a run of four, None otherwise
    :rtype: Optional[str]
    """
    for window in WINDOWS:
        first_column, first_row = window[0]
        owner = board[first_column][first_row]
        if owner is None:
            continue
        if all(board[column][row] == owner for column, row in window[1:]):
            return owner
    return None


def is_full(board: Board) -> bool:
    """
    Check whether no column can accept another disc.

    :param board: Board to inspect
    :type board: Board
    :return: True if every column's top cell is occupied
    :rtype: bool
    """
    return all(board[column][ROWS - 1] is not None for column in range(COLUMNS))


def gravity_holds(board: Board) -> bool:
    """
    Check that no occupied cell floats above an empty one.

    :param board: Board to inspect
    :type board: Board
    :return: True if every column is filled contiguously from row 0
    :rtype: bool
    """
    for cells in board:
        seen_empty = False
        for cell in cells:
            if cell is None:
                seen_empty = True
            elif seen_empty:
                return False
    return True


def _score_window(board: Board, window: List[Tuple[int, int]], for_id: str, against_id: str) -> int:
    own = 0
    theirs = 0
    for column, row in window:
        cell = board[column][row]
        if cell == for_id:
            own += 1
        elif cell == against_id:
            theirs += 1

    if own and theirs:
        return 0
    if own:
        return WINDOW_SCORES[own]
    if theirs:
        return -WINDOW_SCORES[theirs]
    return 0


def evaluate(board: Board, for_id: str, against_id: str) -> int:
    """
    Score a position from one participant's point of view.

    A finished game saturates to +/-1000 (0 for a full board with no winner).
    Otherwise every length-4 window contributes 1000/50/10/1 for 4/3/2/1 of
    ``for_id``'s discs with the rest empty, mirrored negatively for
    ``against_id``, and 0 for mixed windows.

    :param board: Board to evaluate
    :type board: Board
    :param for_id: Participant the score favours
    :type for_id: str
    :param against_id: Opposing participant
    :type against_id: str
    :return: Heuristic score
    :rtype: int
    """
    winner = detect_winner(board)
    if winner == for_id:
        return WIN_SCORE
    if winner == against_id:
        return -WIN_SCORE
    if is_full(board):
        return 0

    return sum(_score_window(board, window, for_id, against_id) for window in WINDOWS)
