from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Tuple

Player = str  # 'X' or 'O'
Cell = str  # '' when empty, otherwise a Player
Coord = Tuple[int, int]

GRID_SIZE = 3
PLAYERS: Tuple[Player, Player] = ('X', 'O')
EMPTY: Cell = ''


def other_player(player: Player) -> Player:
    """Returns the opposing symbol."""
    return 'O' if player == 'X' else 'X'


def is_player(value: object) -> bool:
    return isinstance(value, str) and value in PLAYERS


def in_bounds(row: int, col: int) -> bool:
    return 0 <= row < GRID_SIZE and 0 <= col < GRID_SIZE


@dataclass(frozen=True)
class Mark:
    """A placed symbol. `sequence` orders a player's own marks."""
    player: Player
    row: int
    col: int
    sequence: int

    @property
    def coord(self) -> Coord:
        return (self.row, self.col)


@dataclass
class Board:
    """Represents the 3x3 grid of cells."""
    grid: List[Cell] = field(default_factory=lambda: [EMPTY] * (GRID_SIZE * GRID_SIZE))

    def index(self, r: int, c: int) -> int:
        """Calculates the 1D index for a given row and column."""
        return r * GRID_SIZE + c

    def at(self, r: int, c: int) -> Cell:
        return self.grid[self.index(r, c)]

    def set(self, r: int, c: int, value: Cell) -> None:
        self.grid[self.index(r, c)] = value

    def clear(self) -> None:
        self.grid = [EMPTY] * (GRID_SIZE * GRID_SIZE)

    def coords(self) -> Iterable[Coord]:
        """Iterates over all coordinates on the board."""
        for r in range(GRID_SIZE):
            for c in range(GRID_SIZE):
                yield (r, c)

    def occupied(self) -> Set[Coord]:
        return {(r, c) for (r, c) in self.coords() if self.at(r, c) != EMPTY}

    def rows(self) -> List[List[Cell]]:
        return [[self.at(r, c) for c in range(GRID_SIZE)] for r in range(GRID_SIZE)]

    def copy(self) -> 'Board':
        return Board(grid=list(self.grid))

    def pretty(self, fading: Optional[Set[Coord]] = None) -> str:
        """Generates a human-readable string representation of the board.

        Fading marks are shown in lower case.
        """
        lines: List[str] = []
        fset = fading or set()
        for r in range(GRID_SIZE):
            row: List[str] = []
            for c in range(GRID_SIZE):
                cell = self.at(r, c)
                if cell == EMPTY:
                    row.append('.')
                elif (r, c) in fset:
                    row.append(cell.lower())
                else:
                    row.append(cell)
            lines.append(' '.join(row))
        return '\n'.join(lines)
