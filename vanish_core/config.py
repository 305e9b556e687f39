from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_PRESENCE_TIMEOUT = float(os.getenv('VANISH_PRESENCE_TIMEOUT', '30'))
DEFAULT_ROOM_ID_LENGTH = 6
DEFAULT_HISTORY_LIMIT = 3
DEFAULT_RELAY_BACKLOG = 256
DEFAULT_RELAY_MAX_ROOMS = 1024
DEFAULT_BASE_URL = 'http://localhost:5000/'

_TRUTHY = ('1', 'true', 'yes', 'on')


def _flag(value: Optional[str]) -> bool:
    return (value or '0').lower() in _TRUTHY


def _history_limit(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == '':
        return DEFAULT_HISTORY_LIMIT
    if value.strip().lower() in ('0', 'none', 'classic'):
        return None
    return int(value)


@dataclass(frozen=True)
class Settings:
    presence_timeout: float = DEFAULT_PRESENCE_TIMEOUT
    room_id_length: int = DEFAULT_ROOM_ID_LENGTH
    history_limit: Optional[int] = DEFAULT_HISTORY_LIMIT
    relay_backlog: int = DEFAULT_RELAY_BACKLOG
    relay_max_rooms: int = DEFAULT_RELAY_MAX_ROOMS
    base_url: str = DEFAULT_BASE_URL
    debug: bool = False

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'Settings':
        """Reads VANISH_* variables; unset ones keep their defaults."""
        e = os.environ if env is None else env
        return cls(
            presence_timeout=float(e.get('VANISH_PRESENCE_TIMEOUT', DEFAULT_PRESENCE_TIMEOUT)),
            room_id_length=int(e.get('VANISH_ROOM_ID_LENGTH', DEFAULT_ROOM_ID_LENGTH)),
            history_limit=_history_limit(e.get('VANISH_HISTORY_LIMIT')),
            relay_backlog=int(e.get('VANISH_RELAY_BACKLOG', DEFAULT_RELAY_BACKLOG)),
            relay_max_rooms=int(e.get('VANISH_RELAY_MAX_ROOMS', DEFAULT_RELAY_MAX_ROOMS)),
            base_url=e.get('VANISH_BASE_URL', DEFAULT_BASE_URL),
            debug=_flag(e.get('VANISH_DEBUG')),
        )


def setup_logging(debug: Optional[bool] = None) -> None:
    """Configures root logging for the CLI and the Flask app."""
    if debug is None:
        debug = _flag(os.getenv('VANISH_DEBUG'))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='[%(asctime)s] %(levelname)s %(name)s: %(message)s',
    )
