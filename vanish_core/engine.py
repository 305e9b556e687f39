from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .board import EMPTY, Coord, Mark, Player, in_bounds, is_player, other_player
from .errors import PlacementError
from .rules import check_draw, check_win
from .state import GameState, Phase, PlayerHistory

DEFAULT_HISTORY_LIMIT = 3


@dataclass(frozen=True)
class PlacementOutcome:
    """What a single placement changed, so renderers need not diff the board."""
    cell: Coord
    mark: Mark
    removed: Optional[Mark]
    faded: Optional[Mark]
    phase: Phase
    winner: Optional[Player]
    current_player: Player


class BoardEngine:
    """Pure game-state machine for vanishing tic-tac-toe.

    The engine never checks whose turn it is; callers decide that so remote moves
    for the non-local player can be applied. `history_limit=None` plays classic
    rules with no mark expiry.
    """

    def __init__(self, history_limit: Optional[int] = DEFAULT_HISTORY_LIMIT, starting_player: Player = 'X'):
        if history_limit is not None and history_limit < 1:
            raise ValueError('history_limit must be positive or None')
        self.history_limit = history_limit
        self.state = GameState.fresh(starting_player)

    @classmethod
    def from_state(cls, state: GameState, history_limit: Optional[int] = DEFAULT_HISTORY_LIMIT) -> 'BoardEngine':
        """Builds an engine around an existing state after checking its invariants."""
        engine = cls(history_limit=history_limit, starting_player=state.starting_player)
        validate_state(state, history_limit)
        engine.state = state.copy()
        return engine

    @property
    def current_player(self) -> Player:
        return self.state.current_player

    @property
    def phase(self) -> Phase:
        return self.state.phase

    def can_place(self, row: int, col: int) -> bool:
        return (
            self.state.phase is Phase.IN_PROGRESS
            and in_bounds(row, col)
            and self.state.board.at(row, col) == EMPTY
        )

    def place_mark(self, player: Player, row: int, col: int) -> PlacementOutcome:
        if not is_player(player):
            raise PlacementError('bad_player', f'unknown player {player!r}')
        if self.state.phase is not Phase.IN_PROGRESS:
            raise PlacementError('round_over', 'the round is already over')
        if not in_bounds(row, col):
            raise PlacementError('out_of_bounds', f'cell ({row}, {col}) is off the board')
        board = self.state.board
        if board.at(row, col) != EMPTY:
            raise PlacementError('occupied', f'cell ({row}, {col}) is occupied')

        hist = self.state.history_for(player)
        mark = Mark(player, row, col, hist.next_sequence)
        hist.next_sequence += 1
        board.set(row, col, player)
        hist.marks.append(mark)

        removed: Optional[Mark] = None
        if self.history_limit is not None and len(hist.marks) > self.history_limit:
            removed = hist.marks.pop(0)
            board.set(removed.row, removed.col, EMPTY)
            if hist.fading == removed.sequence:
                hist.fading = None

        faded: Optional[Mark] = None
        if (
            self.history_limit is not None
            and hist.fading is None
            and len(hist.marks) >= self.history_limit
        ):
            faded = hist.marks[0]
            hist.fading = faded.sequence

        if check_win(board, player):
            self.state.phase = Phase.WON
            self.state.winner = player
        elif check_draw(board):
            self.state.phase = Phase.DRAW
        else:
            self.state.current_player = other_player(player)

        return PlacementOutcome(
            cell=(row, col),
            mark=mark,
            removed=removed,
            faded=faded,
            phase=self.state.phase,
            winner=self.state.winner,
            current_player=self.state.current_player,
        )

    def set_current_player(self, player: Player) -> bool:
        """Adopts a declared turn. Returns True if the turn actually changed."""
        if not is_player(player) or self.state.phase is not Phase.IN_PROGRESS:
            return False
        changed = self.state.current_player != player
        self.state.current_player = player
        return changed

    def reset(self, starting_player: Player) -> None:
        if not is_player(starting_player):
            raise ValueError(f'unknown player {starting_player!r}')
        self.state = GameState.fresh(starting_player)


def validate_state(state: GameState, history_limit: Optional[int] = DEFAULT_HISTORY_LIMIT) -> None:
    """Raises ValueError unless board and histories agree cell for cell."""
    if not is_player(state.current_player) or not is_player(state.starting_player):
        raise ValueError('current and starting player must be X or O')
    seen = set()
    for player, hist in state.histories().items():
        if hist.player != player:
            raise ValueError(f'history for {player} is labelled {hist.player}')
        if history_limit is not None and len(hist.marks) > history_limit:
            raise ValueError(f'{player} holds more than {history_limit} marks')
        last_seq = 0
        for mark in hist.marks:
            if mark.player != player or not in_bounds(mark.row, mark.col):
                raise ValueError(f'bad mark {mark}')
            if mark.sequence <= last_seq or mark.sequence >= hist.next_sequence:
                raise ValueError(f'mark sequences out of order for {player}')
            last_seq = mark.sequence
            if mark.coord in seen or state.board.at(mark.row, mark.col) != player:
                raise ValueError(f'cell {mark.coord} does not match history of {player}')
            seen.add(mark.coord)
        if hist.fading is not None and hist.fading_mark() is None:
            raise ValueError(f'fading entry of {player} is not a live mark')
    if seen != state.board.occupied():
        raise ValueError('board has occupied cells missing from the histories')
    if (state.phase is Phase.WON) != (state.winner is not None):
        raise ValueError('winner must be set exactly when the phase is won')
    if state.phase is Phase.WON and not check_win(state.board, state.winner):  # type: ignore[arg-type]
        raise ValueError('won phase without a winning line')
