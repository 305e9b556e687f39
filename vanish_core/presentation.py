from __future__ import annotations

import sys
from typing import TextIO

from .board import Player
from .engine import PlacementOutcome
from .state import GameState


class Presentation:
    """Callbacks the sync layer fires after each state transition. All no-ops."""

    def on_state_changed(self, state: GameState) -> None:
        pass

    def on_mark_placed(self, outcome: PlacementOutcome) -> None:
        pass

    def on_turn_changed(self, player: Player) -> None:
        pass

    def on_round_over(self, text: str) -> None:
        pass

    def on_peer_presence_changed(self, present: bool) -> None:
        pass

    def on_presence_timeout(self) -> None:
        pass

    def on_action_rejected(self, reason: str) -> None:
        pass


class TextPresentation(Presentation):
    """Writes the board and status lines to a text stream."""

    def __init__(self, out: TextIO = sys.stdout, label: str = ''):
        self.out = out
        self.prefix = f'[{label}] ' if label else ''

    def _line(self, text: str) -> None:
        self.out.write(f'{self.prefix}{text}\n')

    def on_state_changed(self, state: GameState) -> None:
        self.out.write(state.board.pretty(state.fading_coords()) + '\n')
        self._line(state.status_text())

    def on_mark_placed(self, outcome: PlacementOutcome) -> None:
        if outcome.removed is not None:
            self._line(f'{outcome.removed.player} at {outcome.removed.coord} vanished')

    def on_round_over(self, text: str) -> None:
        self._line(text)

    def on_peer_presence_changed(self, present: bool) -> None:
        self._line('Opponent connected' if present else 'Waiting for opponent...')

    def on_presence_timeout(self) -> None:
        self._line('No opponent yet. You can proceed anyway.')

    def on_action_rejected(self, reason: str) -> None:
        self._line(f'Not allowed: {reason}')
