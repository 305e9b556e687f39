from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

from .board import Board, Coord, Mark, Player


class Phase(Enum):
    IN_PROGRESS = 'in_progress'
    WON = 'won'
    DRAW = 'draw'


@dataclass
class PlayerHistory:
    """Live marks of one player, oldest first, plus the fading entry (by sequence)."""
    player: Player
    marks: List[Mark] = field(default_factory=list)
    fading: Optional[int] = None
    next_sequence: int = 1

    def __len__(self) -> int:
        return len(self.marks)

    def oldest(self) -> Optional[Mark]:
        return self.marks[0] if self.marks else None

    def newest(self) -> Optional[Mark]:
        return self.marks[-1] if self.marks else None

    def fading_mark(self) -> Optional[Mark]:
        for mark in self.marks:
            if mark.sequence == self.fading:
                return mark
        return None

    def coords(self) -> List[Coord]:
        return [m.coord for m in self.marks]

    def copy(self) -> 'PlayerHistory':
        return PlayerHistory(self.player, list(self.marks), self.fading, self.next_sequence)


@dataclass
class GameState:
    """The dynamic state of one round: board, both histories, turn and phase."""
    board: Board
    x_history: PlayerHistory
    o_history: PlayerHistory
    current_player: Player = 'X'
    phase: Phase = Phase.IN_PROGRESS
    winner: Optional[Player] = None
    starting_player: Player = 'X'

    @classmethod
    def fresh(cls, starting_player: Player = 'X') -> 'GameState':
        return cls(
            board=Board(),
            x_history=PlayerHistory('X'),
            o_history=PlayerHistory('O'),
            current_player=starting_player,
            starting_player=starting_player,
        )

    def history_for(self, player: Player) -> PlayerHistory:
        return self.x_history if player == 'X' else self.o_history

    def histories(self) -> Dict[Player, PlayerHistory]:
        return {'X': self.x_history, 'O': self.o_history}

    def is_over(self) -> bool:
        return self.phase is not Phase.IN_PROGRESS

    def fading_coords(self) -> Set[Coord]:
        out: Set[Coord] = set()
        for hist in (self.x_history, self.o_history):
            mark = hist.fading_mark()
            if mark is not None:
                out.add(mark.coord)
        return out

    def result_text(self) -> Optional[str]:
        """Round-over banner text, or None while the round is running."""
        if self.phase is Phase.WON:
            return f"{self.winner} Wins!"
        if self.phase is Phase.DRAW:
            return "It's a Draw!"
        return None

    def status_text(self) -> str:
        """Turn indicator text."""
        if self.phase is Phase.WON:
            return f"{self.winner} Wins!"
        if self.phase is Phase.DRAW:
            return "Draw!"
        return f"Player {self.current_player}'s Turn"

    def copy(self) -> 'GameState':
        return GameState(
            board=self.board.copy(),
            x_history=self.x_history.copy(),
            o_history=self.o_history.copy(),
            current_player=self.current_player,
            phase=self.phase,
            winner=self.winner,
            starting_player=self.starting_player,
        )
