from __future__ import annotations

from typing import List, Optional, Tuple

from .board import EMPTY, GRID_SIZE, PLAYERS, Board, Coord, Player

Line = Tuple[Coord, Coord, Coord]


def _all_lines() -> List[Line]:
    lines: List[Line] = []
    for i in range(GRID_SIZE):
        lines.append(tuple((i, c) for c in range(GRID_SIZE)))  # type: ignore[arg-type]
        lines.append(tuple((r, i) for r in range(GRID_SIZE)))  # type: ignore[arg-type]
    lines.append(((0, 0), (1, 1), (2, 2)))
    lines.append(((0, 2), (1, 1), (2, 0)))
    return lines


LINES: Tuple[Line, ...] = tuple(_all_lines())


def winning_line(board: Board, player: Player) -> Optional[Line]:
    """Returns the first complete line held by `player`, scanning the whole board."""
    for line in LINES:
        if all(board.at(r, c) == player for (r, c) in line):
            return line
    return None


def check_win(board: Board, player: Player) -> bool:
    return winning_line(board, player) is not None


def check_draw(board: Board) -> bool:
    """All cells occupied. Callers check for a win first."""
    return all(board.at(r, c) != EMPTY for (r, c) in board.coords())


def any_winner(board: Board) -> Optional[Player]:
    for player in PLAYERS:
        if check_win(board, player):
            return player
    return None
