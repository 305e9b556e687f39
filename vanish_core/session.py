from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

from .board import Player, is_player, other_player
from .config import DEFAULT_PRESENCE_TIMEOUT, DEFAULT_ROOM_ID_LENGTH

ROOM_ALPHABET = string.ascii_lowercase + string.digits
ROOM_QUERY_PARAM = 'room'

CREATOR: Player = 'X'
JOINER: Player = 'O'

PRESENT = 'present'
WAITING = 'waiting'
TIMED_OUT = 'timed_out'


def is_room_id(value: object) -> bool:
    return (
        isinstance(value, str)
        and 0 < len(value) <= 64
        and all(ch in ROOM_ALPHABET or ch in '-_' for ch in value)
    )


def room_link(base_url: str, room_id: str) -> str:
    """Returns `base_url` with the room id set as a query parameter."""
    parts = urlsplit(base_url)
    query = parse_qs(parts.query)
    query[ROOM_QUERY_PARAM] = [room_id]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query, doseq=True), parts.fragment))


def room_id_from_link(url: str) -> Optional[str]:
    values = parse_qs(urlsplit(url).query).get(ROOM_QUERY_PARAM)
    if not values or not is_room_id(values[0]):
        return None
    return values[0]


@dataclass
class Session:
    room_id: Optional[str] = None
    local_role: Optional[Player] = None
    remote_joined: bool = False
    starting_player: Player = 'X'
    local_endpoint_id: str = ''
    waiting_since: Optional[float] = None


class SessionCoordinator:
    """Room identity, roles, peer presence and the per-round starting player."""

    def __init__(
        self,
        local_endpoint_id: str = '',
        rng: Optional[random.Random] = None,
        room_id_length: int = DEFAULT_ROOM_ID_LENGTH,
        presence_timeout: float = DEFAULT_PRESENCE_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = Session(local_endpoint_id=local_endpoint_id)
        self._rng = rng or random.SystemRandom()
        self.room_id_length = room_id_length
        self.presence_timeout = presence_timeout
        self._clock = clock

    @property
    def room_id(self) -> Optional[str]:
        return self.session.room_id

    @property
    def local_role(self) -> Optional[Player]:
        return self.session.local_role

    @property
    def remote_joined(self) -> bool:
        return self.session.remote_joined

    @property
    def starting_player(self) -> Player:
        return self.session.starting_player

    def is_creator(self) -> bool:
        return self.session.local_role == CREATOR

    def is_joiner(self) -> bool:
        return self.session.local_role == JOINER

    def generate_room_id(self) -> str:
        return ''.join(self._rng.choice(ROOM_ALPHABET) for _ in range(self.room_id_length))

    def create_room(self) -> str:
        s = self.session
        s.room_id = self.generate_room_id()
        s.local_role = CREATOR
        s.remote_joined = False
        s.waiting_since = self._clock()
        return s.room_id

    def join_room(self, room_id: str) -> None:
        if not is_room_id(room_id):
            raise ValueError(f'invalid room id {room_id!r}')
        s = self.session
        s.room_id = room_id
        s.local_role = JOINER
        s.remote_joined = True
        s.waiting_since = None

    def on_peer_announced(self) -> bool:
        """Marks the peer present. Returns True if presence changed."""
        changed = not self.session.remote_joined
        self.session.remote_joined = True
        self.session.waiting_since = None
        return changed

    def on_local_reset(self) -> bool:
        """Creator waits for the joiner to re-announce. Returns True if presence changed."""
        if not self.is_creator():
            return False
        changed = self.session.remote_joined
        self.session.remote_joined = False
        self.session.waiting_since = self._clock()
        return changed

    def start_new_round(self) -> Player:
        self.session.starting_player = other_player(self.session.starting_player)
        return self.session.starting_player

    def adopt_starting_player(self, player: Player) -> None:
        if not is_player(player):
            raise ValueError(f'unknown player {player!r}')
        self.session.starting_player = player

    def presence_status(self, now: Optional[float] = None) -> str:
        """`present`, `waiting`, or `timed_out` once the wait window has elapsed.

        Timing out is advisory: the caller may offer to proceed without a peer.
        """
        s = self.session
        if s.remote_joined:
            return PRESENT
        if s.waiting_since is None:
            return WAITING
        now = self._clock() if now is None else now
        if now - s.waiting_since >= self.presence_timeout:
            return TIMED_OUT
        return WAITING

    def link(self, base_url: str) -> Optional[str]:
        if self.session.room_id is None:
            return None
        return room_link(base_url, self.session.room_id)
