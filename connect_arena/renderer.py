"""Connect Four board TUI rendering module."""

from typing import Dict, List, Optional

from connect_arena.board import COLUMNS, ROWS

EMPTY = '.'


class BoardRenderer:
    """
    Renders a column-major Connect Four board as text.

    Rows are printed top to bottom with column numbers underneath. Each
    participant id is drawn with the symbol given in ``symbols``.
    """

    @staticmethod
    def render(board: List[List[Optional[str]]], symbols: Dict[str, str]) -> str:
        """
        Render the board with borders and column labels.

        :param board: Column-major board (``board[column][row]``)
        :type board: List[List[Optional[str]]]
        :param symbols: Mapping of participant id to a one-character symbol
        :type symbols: Dict[str, str]
        :return: Formatted board string
        :rtype: str
        """
        lines = []
        for row in range(ROWS - 1, -1, -1):
            cells = []
            for column in range(COLUMNS):
                owner = board[column][row]
                cells.append(f" {symbols.get(owner, '?') if owner else EMPTY} ")
            lines.append(f"|{'|'.join(cells)}|")

        separator = "+" + "---+" * COLUMNS
        lines.append(separator)
        lines.append(" " + " ".join(f" {column} " for column in range(COLUMNS)))
        return "\n".join(lines)

