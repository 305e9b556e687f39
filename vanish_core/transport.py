from __future__ import annotations

import json
import logging
import random
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Set

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], None]


class Transport(Protocol):
    """Room-scoped publish/subscribe channel with at-least-once delivery."""

    def subscribe(self, room_id: str) -> None: ...

    def publish(self, room_id: str, message: Dict[str, Any]) -> None: ...

    def on_message(self, handler: Handler) -> None: ...

    def local_endpoint_identity(self) -> str: ...


@dataclass
class _Delivery:
    target: 'HubEndpoint'
    publisher: str
    payload: str


class InMemoryHub:
    """In-process channel shared by any number of endpoints.

    Publishing only queues deliveries; `pump()` hands them out, which stands in
    for the host event loop. Every subscriber of the room gets a copy, the
    publisher included. With an `rng`, publishers' queues are interleaved at
    random (each publisher stays FIFO) and `duplicate_rate` re-queues a copy of
    a delivery right behind the original.
    """

    def __init__(self, rng: Optional[random.Random] = None, duplicate_rate: float = 0.0):
        self._rng = rng
        self.duplicate_rate = duplicate_rate
        self._rooms: Dict[str, Set['HubEndpoint']] = {}
        self._pending: List[_Delivery] = []
        self.published = 0
        self.delivered = 0

    def connect(self, identity: Optional[str] = None) -> 'HubEndpoint':
        return HubEndpoint(self, identity or uuid.uuid4().hex)

    def _subscribe(self, endpoint: 'HubEndpoint', room_id: str) -> None:
        self._rooms.setdefault(room_id, set()).add(endpoint)

    def _publish(self, endpoint: 'HubEndpoint', room_id: str, message: Dict[str, Any]) -> None:
        payload = json.dumps(message)
        self.published += 1
        # Sort for a stable order independent of set hashing.
        for target in sorted(self._rooms.get(room_id, ()), key=lambda e: e.identity):
            self._pending.append(_Delivery(target, endpoint.identity, payload))
            if self._rng is not None and self.duplicate_rate and self._rng.random() < self.duplicate_rate:
                self._pending.append(_Delivery(target, endpoint.identity, payload))

    def pending(self) -> int:
        return len(self._pending)

    def _next_index(self) -> int:
        if self._rng is None:
            return 0
        heads: Dict[str, int] = {}
        for i, d in enumerate(self._pending):
            heads.setdefault(d.publisher, i)
        return self._rng.choice(sorted(heads.values()))

    def pump(self, limit: Optional[int] = None) -> int:
        """Delivers queued messages (including any queued while delivering)."""
        count = 0
        while self._pending and (limit is None or count < limit):
            d = self._pending.pop(self._next_index())
            count += 1
            self.delivered += 1
            d.target._deliver(json.loads(d.payload))
        return count


class HubEndpoint:
    """One endpoint's view of an InMemoryHub; satisfies `Transport`."""

    def __init__(self, hub: InMemoryHub, identity: str):
        self._hub = hub
        self.identity = identity
        self._handlers: List[Handler] = []

    def subscribe(self, room_id: str) -> None:
        self._hub._subscribe(self, room_id)

    def publish(self, room_id: str, message: Dict[str, Any]) -> None:
        logger.debug('%s publish %s: %s', self.identity, room_id, message)
        self._hub._publish(self, room_id, message)

    def on_message(self, handler: Handler) -> None:
        self._handlers.append(handler)

    def local_endpoint_identity(self) -> str:
        return self.identity

    def _deliver(self, message: Dict[str, Any]) -> None:
        for handler in list(self._handlers):
            handler(message)
