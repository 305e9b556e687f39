from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .board import Player

MoveId = Tuple[Player, int, int]  # (player, row, col)
ResetId = Tuple[str, Player, Optional[int]]  # (initiator, starting player, round)


@dataclass
class DedupLedger:
    """Most recent identity per message category; one value each, never a growing set."""
    last_sent_move: Optional[MoveId] = None
    last_applied_move: Dict[Player, MoveId] = field(default_factory=dict)
    last_game_over: Optional[str] = None
    last_reset: Optional[ResetId] = None
    # Most recent placement on this board by either player.
    last_placed: Optional[MoveId] = None

    def clear(self) -> None:
        self.last_sent_move = None
        self.last_applied_move = {}
        self.last_game_over = None
        self.last_reset = None
        self.last_placed = None

    def is_self_echo(self, move_id: MoveId, local_role: Optional[Player]) -> bool:
        return move_id == self.last_sent_move and move_id[0] == local_role

    def record_applied(self, move_id: MoveId) -> None:
        self.last_applied_move[move_id[0]] = move_id
        self.last_placed = move_id

    def is_repeat(self, move_id: MoveId) -> bool:
        return self.last_applied_move.get(move_id[0]) == move_id
