"""Keeps two copies of the game consistent over a pub/sub channel.

Local actions are published and then applied at once. Inbound messages are
validated, checked against the dedup ledger and applied at most once, so the
channel may duplicate deliveries and echo an endpoint's own publications.
Precedence between a reset and an in-flight move is decided by the `round`
counter every message carries: anything from an earlier round is dropped.
Each side only ever resets into rounds of its own parity, so two resets sent
at the same time carry different rounds and the higher one wins everywhere.
"""
from __future__ import annotations

import logging
import uuid
from collections import Counter
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .board import Player, in_bounds, other_player
from .config import Settings
from .engine import BoardEngine, PlacementOutcome
from .errors import MalformedMessage, PlacementError
from .ledger import DedupLedger
from .messages import GameOver, Message, Move, PlayerJoined, Reset, decode_message, encode_message
from .presentation import Presentation
from .session import TIMED_OUT, SessionCoordinator
from .state import GameState
from .transport import Transport

logger = logging.getLogger(__name__)

LOCAL_ENDPOINT_ID = 'local'


class LinkState(Enum):
    LOBBY = 'lobby'
    AWAITING_PEER = 'awaiting_peer'
    PLAYING = 'playing'
    ROUND_OVER = 'round_over'


class SyncProtocol:
    """One endpoint of a game. Without a transport it runs a local hot-seat game."""

    def __init__(
        self,
        transport: Optional[Transport] = None,
        presentation: Optional[Presentation] = None,
        settings: Optional[Settings] = None,
        engine: Optional[BoardEngine] = None,
        session: Optional[SessionCoordinator] = None,
        token_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        self.settings = settings or Settings()
        self.transport = transport
        self.presentation = presentation or Presentation()
        self.engine = engine or BoardEngine(history_limit=self.settings.history_limit)
        endpoint_id = transport.local_endpoint_identity() if transport is not None else LOCAL_ENDPOINT_ID
        self.session = session or SessionCoordinator(
            local_endpoint_id=endpoint_id,
            room_id_length=self.settings.room_id_length,
            presence_timeout=self.settings.presence_timeout,
        )
        self.ledger = DedupLedger()
        self.round = 1
        self.drops: Counter = Counter()
        self._token_factory = token_factory
        self._round_announced = False
        self._timeout_reported = False
        self.link = LinkState.LOBBY if transport is not None else LinkState.PLAYING
        self.engine.reset(self.session.starting_player)
        self._handlers: Dict[type, Callable[[Any], None]] = {
            PlayerJoined: self._on_player_joined,
            Move: self._on_move,
            GameOver: self._on_game_over,
            Reset: self._on_reset,
        }
        if transport is not None:
            transport.on_message(self.handle_message)

    # ---------- accessors ----------

    @property
    def state(self) -> GameState:
        return self.engine.state

    @property
    def local_role(self) -> Optional[Player]:
        return self.session.local_role

    @property
    def endpoint_id(self) -> str:
        return self.session.session.local_endpoint_id

    def is_local(self) -> bool:
        return self.transport is None

    # ---------- outbound ----------

    def _publish(self, msg: Message) -> None:
        assert self.transport is not None and self.session.room_id is not None
        self.transport.publish(self.session.room_id, encode_message(msg))

    def _reject(self, reason: str) -> bool:
        logger.debug('%s rejected local action: %s', self.endpoint_id, reason)
        self.presentation.on_action_rejected(reason)
        return False

    def request_create_room(self) -> Optional[str]:
        if self.transport is None:
            self._reject('no_transport')
            return None
        if self.session.room_id is not None:
            self._reject('already_in_room')
            return None
        room_id = self.session.create_room()
        self.transport.subscribe(room_id)
        self.link = LinkState.AWAITING_PEER
        self._timeout_reported = False
        logger.info('%s created room %s', self.endpoint_id, room_id)
        self.presentation.on_peer_presence_changed(False)
        self.presentation.on_state_changed(self.state)
        return room_id

    def request_join_room(self, room_id: str) -> bool:
        if self.transport is None:
            return self._reject('no_transport')
        if self.session.room_id is not None:
            return self._reject('already_in_room')
        try:
            self.session.join_room(room_id)
        except ValueError as e:
            return self._reject(str(e))
        self.transport.subscribe(room_id)
        # No round tag: the creator uses that to recognise a first arrival.
        self._publish(PlayerJoined())
        self.link = LinkState.PLAYING
        logger.info('%s joined room %s', self.endpoint_id, room_id)
        self.presentation.on_peer_presence_changed(True)
        self.presentation.on_state_changed(self.state)
        return True

    def request_proceed_anyway(self) -> bool:
        if self.link is not LinkState.AWAITING_PEER:
            return self._reject('not_waiting')
        self.link = LinkState.PLAYING
        self.presentation.on_state_changed(self.state)
        return True

    def check_presence(self, now: Optional[float] = None) -> str:
        """Polls the advisory wait window; reports a timeout to Presentation once."""
        status = self.session.presence_status(now)
        if status == TIMED_OUT and self.link is LinkState.AWAITING_PEER and not self._timeout_reported:
            self._timeout_reported = True
            self.presentation.on_presence_timeout()
        return status

    def request_place_mark(self, row: int, col: int) -> bool:
        if self.is_local():
            if self.link is LinkState.ROUND_OVER:
                return self._reject('round_over')
            player = self.engine.current_player
        else:
            if self.link is LinkState.LOBBY:
                return self._reject('no_room')
            if self.link is LinkState.AWAITING_PEER:
                return self._reject('awaiting_peer')
            if self.link is LinkState.ROUND_OVER:
                return self._reject('round_over')
            player = self.local_role  # type: ignore[assignment]
            if self.engine.current_player != player:
                return self._reject('not_your_turn')
        if not self.engine.can_place(row, col):
            return self._reject(self._placement_problem(row, col))

        if not self.is_local():
            move = Move(row, col, player, other_player(player), round=self.round)
            self.ledger.last_sent_move = move.identity()
            self._publish(move)
        outcome = self.engine.place_mark(player, row, col)
        self.ledger.record_applied((player, row, col))
        self._after_placement(outcome)

        if self.state.is_over():
            text = self.state.result_text() or ''
            if not self.is_local():
                token = self._token_factory()
                self.ledger.last_game_over = token
                self._publish(GameOver(text, token, round=self.round))
            self._end_round(text)
        return True

    def _placement_problem(self, row: int, col: int) -> str:
        if self.state.is_over():
            return 'round_over'
        if not in_bounds(row, col):
            return 'out_of_bounds'
        return 'occupied'

    def request_reset(self) -> bool:
        if not self.is_local() and self.session.room_id is None:
            return self._reject('no_room')
        starting = self.session.start_new_round()
        self.round = self._next_round()
        self.ledger.clear()
        if not self.is_local():
            self._publish(Reset(self.endpoint_id, starting, round=self.round))
        self._start_round(starting)
        if self.is_local():
            self.link = LinkState.PLAYING
        elif self.session.is_creator():
            if self.session.on_local_reset():
                self.presentation.on_peer_presence_changed(False)
            self._timeout_reported = False
            self.link = LinkState.AWAITING_PEER
        else:
            self.link = LinkState.PLAYING
        logger.info('%s reset to round %d, %s starts', self.endpoint_id, self.round, starting)
        self.presentation.on_state_changed(self.state)
        return True

    # ---------- inbound ----------

    def handle_message(self, payload: Any) -> None:
        """Transport callback. Never raises; anything unusable is logged and dropped."""
        try:
            msg = decode_message(payload)
        except MalformedMessage as e:
            self._drop('malformed', '%s', e)
            return
        self._handlers[type(msg)](msg)

    def _drop(self, reason: str, fmt: str = '', *args: Any) -> None:
        self.drops[reason] += 1
        logger.debug('%s dropped message (%s) ' + fmt, self.endpoint_id, reason, *args)

    def _is_stale(self, msg_round: Optional[int]) -> bool:
        return msg_round is not None and msg_round < self.round

    def _next_round(self) -> int:
        """Creator rounds are odd and joiner rounds even, so two resets never tie."""
        nxt = self.round + 1
        if self.is_local():
            return nxt
        parity = 1 if self.session.is_creator() else 0
        if nxt % 2 != parity:
            nxt += 1
        return nxt

    def _on_player_joined(self, msg: PlayerJoined) -> None:
        if not self.session.is_creator():
            return
        if self._is_stale(msg.round):
            self._drop('stale', 'playerJoined round %s < %s', msg.round, self.round)
            return
        first_arrival = self.session.on_peer_announced()
        if first_arrival:
            logger.info('%s: opponent joined room %s', self.endpoint_id, self.session.room_id)
            self.presentation.on_peer_presence_changed(True)
        if self.link is LinkState.AWAITING_PEER or self.link is LinkState.LOBBY:
            self.link = LinkState.PLAYING
        if first_arrival and msg.round is None and self._diverged_from_fresh():
            self._resync_joiner()
        self.presentation.on_state_changed(self.state)

    def _diverged_from_fresh(self) -> bool:
        return self.round > 1 or bool(self.state.board.occupied())

    def _resync_joiner(self) -> None:
        # A joiner arriving late starts from a fresh round 1; restart both sides.
        self.round = self._next_round()
        starting = self.session.starting_player
        self.ledger.clear()
        self._publish(Reset(self.endpoint_id, starting, round=self.round))
        self._start_round(starting)
        self.link = LinkState.PLAYING
        logger.info('%s resynced late joiner at round %d', self.endpoint_id, self.round)

    def _on_move(self, msg: Move) -> None:
        if self._is_stale(msg.round):
            self._drop('stale', 'move round %s < %s', msg.round, self.round)
            return
        move_id = msg.identity()
        if self.ledger.is_self_echo(move_id, self.local_role):
            self._drop('self_echo', '%s', move_id)
            self._adopt_turn_after(move_id, msg.next_player)
            return
        if msg.player == self.local_role:
            self._drop('foreign_local_role', '%s', move_id)
            return
        if self.ledger.is_repeat(move_id) and self._is_newest(move_id):
            self._drop('duplicate', '%s', move_id)
            self._adopt_turn_after(move_id, msg.next_player)
            return
        try:
            outcome = self.engine.place_mark(msg.player, msg.row, msg.col)
        except PlacementError as e:
            self._drop(e.reason, '%s: %s', move_id, e)
            return
        self.ledger.record_applied(move_id)
        self._after_placement(outcome, declared_next=msg.next_player)
        if self.state.is_over():
            self._end_round(self.state.result_text() or '')

    def _is_newest(self, move_id) -> bool:
        newest = self.state.history_for(move_id[0]).newest()
        return newest is not None and newest.coord == (move_id[1], move_id[2])

    def _on_game_over(self, msg: GameOver) -> None:
        if self._is_stale(msg.round):
            self._drop('stale', 'gameOver round %s < %s', msg.round, self.round)
            return
        if msg.game_over_id == self.ledger.last_game_over:
            self._drop('duplicate', 'gameOver %s', msg.game_over_id)
            return
        self.ledger.last_game_over = msg.game_over_id
        self._end_round(msg.message_text)

    def _on_reset(self, msg: Reset) -> None:
        if msg.reset_initiator == self.endpoint_id:
            self._drop('self_echo', 'reset')
            return
        if self._is_stale(msg.round):
            self._drop('stale', 'reset round %s < %s', msg.round, self.round)
            return
        reset_id = (msg.reset_initiator, msg.starting_player, msg.round)
        if reset_id == self.ledger.last_reset:
            self._drop('duplicate', 'reset %s', reset_id)
            return
        self.session.adopt_starting_player(msg.starting_player)
        self.round = msg.round if msg.round is not None else self.round + 1
        self.ledger.clear()
        self.ledger.last_reset = reset_id
        self._start_round(msg.starting_player)
        if self.session.is_joiner():
            self._publish(PlayerJoined(round=self.round))
            self.link = LinkState.PLAYING
        else:
            # A reset from the joiner is as good as a fresh announcement.
            if self.session.on_peer_announced():
                self.presentation.on_peer_presence_changed(True)
            self.link = LinkState.PLAYING
        logger.info('%s adopted reset to round %d, %s starts', self.endpoint_id, self.round, msg.starting_player)
        self.presentation.on_state_changed(self.state)

    # ---------- shared transitions ----------

    def _after_placement(self, outcome: PlacementOutcome, declared_next: Optional[Player] = None) -> None:
        self.presentation.on_mark_placed(outcome)
        if declared_next is not None:
            self.engine.set_current_player(declared_next)
        if not self.state.is_over():
            self.presentation.on_turn_changed(self.engine.current_player)
        self.presentation.on_state_changed(self.state)

    def _adopt_turn_after(self, move_id, player: Player) -> None:
        # A later placement already moved the turn on; the old declaration no longer applies.
        if move_id != self.ledger.last_placed:
            return
        if self.engine.set_current_player(player):
            self.presentation.on_turn_changed(player)
            self.presentation.on_state_changed(self.state)

    def _start_round(self, starting: Player) -> None:
        self.engine.reset(starting)
        self._round_announced = False

    def _end_round(self, text: str) -> None:
        self.link = LinkState.ROUND_OVER
        if self._round_announced:
            return
        self._round_announced = True
        logger.info('%s round %d over: %s', self.endpoint_id, self.round, text)
        self.presentation.on_round_over(text)
