from __future__ import annotations

import logging
import threading
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List

from .config import DEFAULT_RELAY_BACKLOG, DEFAULT_RELAY_MAX_ROOMS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelayEntry:
    seq: int
    sender: str
    message: Dict[str, Any]

    def to_json(self) -> Dict[str, Any]:
        return {'seq': self.seq, 'sender': self.sender, 'message': self.message}


@dataclass
class _RoomLog:
    entries: Deque[RelayEntry]
    next_seq: int = 1


class ChannelRelay:
    """Room-scoped message log for browser peers that publish and poll over HTTP.

    It is only a channel: payloads are stored as given and handed back to every
    poller, the publisher included. Each room keeps the newest `backlog` entries,
    and once `max_rooms` rooms exist the one published to least recently is
    dropped to make space.
    """

    def __init__(self, backlog: int = DEFAULT_RELAY_BACKLOG, max_rooms: int = DEFAULT_RELAY_MAX_ROOMS):
        self.backlog = backlog
        self.max_rooms = max_rooms
        self._rooms: 'OrderedDict[str, _RoomLog]' = OrderedDict()
        self._lock = threading.Lock()

    def publish(self, room_id: str, sender: str, message: Dict[str, Any]) -> int:
        with self._lock:
            log = self._rooms.get(room_id)
            if log is None:
                while len(self._rooms) >= self.max_rooms:
                    evicted, _ = self._rooms.popitem(last=False)
                    logger.info('relay evicted idle room %s', evicted)
                log = self._rooms[room_id] = _RoomLog(deque(maxlen=self.backlog))
            else:
                self._rooms.move_to_end(room_id)
            seq = log.next_seq
            log.next_seq += 1
            log.entries.append(RelayEntry(seq, sender, message))
        logger.debug('relay %s <- %s #%d', room_id, sender, seq)
        return seq

    def since(self, room_id: str, after: int = 0) -> List[RelayEntry]:
        with self._lock:
            log = self._rooms.get(room_id)
            return [e for e in log.entries if e.seq > after] if log is not None else []

    def latest_seq(self, room_id: str) -> int:
        with self._lock:
            log = self._rooms.get(room_id)
            return log.next_seq - 1 if log is not None else 0

    def rooms(self) -> List[str]:
        with self._lock:
            return sorted(self._rooms)
