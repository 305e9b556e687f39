"""Wire messages exchanged on a room channel.

Each message kind is a frozen dataclass; `decode_message` checks a raw JSON
object field by field and returns the matching kind, `encode_message` produces
the JSON-compatible dict. The optional `round` counter lets a receiver drop
messages that belong to a round it has already reset away from.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from .board import GRID_SIZE, Player, is_player
from .errors import MalformedMessage

PLAYER_JOINED = 'playerJoined'
MOVE = 'move'
GAME_OVER = 'gameOver'
RESET = 'reset'


@dataclass(frozen=True)
class PlayerJoined:
    round: Optional[int] = None


@dataclass(frozen=True)
class Move:
    row: int
    col: int
    player: Player
    next_player: Player
    round: Optional[int] = None

    def identity(self):
        return (self.player, self.row, self.col)


@dataclass(frozen=True)
class GameOver:
    message_text: str
    game_over_id: str
    round: Optional[int] = None


@dataclass(frozen=True)
class Reset:
    reset_initiator: str
    starting_player: Player
    round: Optional[int] = None


Message = Union[PlayerJoined, Move, GameOver, Reset]


def _require(obj: Dict[str, Any], key: str, check: Callable[[Any], bool], what: str) -> Any:
    if key not in obj:
        raise MalformedMessage(f'missing field {key!r}')
    value = obj[key]
    if not check(value):
        raise MalformedMessage(f'field {key!r} must be {what}, got {value!r}')
    return value


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _is_cell_index(v: Any) -> bool:
    return _is_int(v) and 0 <= v < GRID_SIZE


def _is_text(v: Any) -> bool:
    return isinstance(v, str)


def _is_token(v: Any) -> bool:
    return isinstance(v, str) and v != ''


def _round_of(obj: Dict[str, Any]) -> Optional[int]:
    value = obj.get('round')
    if value is None:
        return None
    if not _is_int(value) or value < 1:
        raise MalformedMessage(f'field \'round\' must be a positive int, got {value!r}')
    return value


def _decode_player_joined(obj: Dict[str, Any]) -> PlayerJoined:
    return PlayerJoined(round=_round_of(obj))


def _decode_move(obj: Dict[str, Any]) -> Move:
    return Move(
        row=_require(obj, 'row', _is_cell_index, 'an int in [0, 3)'),
        col=_require(obj, 'col', _is_cell_index, 'an int in [0, 3)'),
        player=_require(obj, 'player', is_player, '"X" or "O"'),
        next_player=_require(obj, 'nextPlayer', is_player, '"X" or "O"'),
        round=_round_of(obj),
    )


def _decode_game_over(obj: Dict[str, Any]) -> GameOver:
    return GameOver(
        message_text=_require(obj, 'messageText', _is_text, 'a string'),
        game_over_id=_require(obj, 'gameOverId', _is_token, 'a non-empty string'),
        round=_round_of(obj),
    )


def _decode_reset(obj: Dict[str, Any]) -> Reset:
    return Reset(
        reset_initiator=_require(obj, 'resetInitiator', _is_token, 'a non-empty string'),
        starting_player=_require(obj, 'startingPlayer', is_player, '"X" or "O"'),
        round=_round_of(obj),
    )


_DECODERS: Dict[str, Callable[[Dict[str, Any]], Message]] = {
    PLAYER_JOINED: _decode_player_joined,
    MOVE: _decode_move,
    GAME_OVER: _decode_game_over,
    RESET: _decode_reset,
}


def decode_message(obj: Any) -> Message:
    """Validates a raw payload and returns the typed message. Raises MalformedMessage."""
    if not isinstance(obj, dict):
        raise MalformedMessage(f'payload must be an object, got {type(obj).__name__}')
    kind = obj.get('type')
    decoder = _DECODERS.get(kind) if isinstance(kind, str) else None
    if decoder is None:
        raise MalformedMessage(f'unknown message type {kind!r}')
    return decoder(obj)


def encode_message(msg: Message) -> Dict[str, Any]:
    if isinstance(msg, PlayerJoined):
        out: Dict[str, Any] = {'type': PLAYER_JOINED}
    elif isinstance(msg, Move):
        out = {'type': MOVE, 'row': msg.row, 'col': msg.col, 'player': msg.player, 'nextPlayer': msg.next_player}
    elif isinstance(msg, GameOver):
        out = {'type': GAME_OVER, 'messageText': msg.message_text, 'gameOverId': msg.game_over_id}
    elif isinstance(msg, Reset):
        out = {'type': RESET, 'resetInitiator': msg.reset_initiator, 'startingPlayer': msg.starting_player}
    else:
        raise TypeError(f'not a wire message: {msg!r}')
    if msg.round is not None:
        out['round'] = msg.round
    return out
