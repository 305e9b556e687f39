from __future__ import annotations

# Facade module that re-exports the vanishing tic-tac-toe core.
# Used by the Flask app, the tests and the tools scripts.
# Single-responsibility modules live under vanish_core/*.

# Prefer the relative import when this file is loaded as part of a package,
# fall back to the installed top-level package otherwise.
try:
    from .vanish_core.board import (  # type: ignore
        EMPTY,
        GRID_SIZE,
        PLAYERS,
        Board,
        Cell,
        Coord,
        Mark,
        Player,
        in_bounds,
        other_player,
    )
    from .vanish_core.state import GameState, Phase, PlayerHistory  # type: ignore
    from .vanish_core.rules import LINES, any_winner, check_draw, check_win, winning_line  # type: ignore
    from .vanish_core.errors import MalformedMessage, PlacementError  # type: ignore
    from .vanish_core.engine import (  # type: ignore
        DEFAULT_HISTORY_LIMIT,
        BoardEngine,
        PlacementOutcome,
        validate_state,
    )
    from .vanish_core.session import SessionCoordinator, room_id_from_link, room_link  # type: ignore
    from .vanish_core.messages import (  # type: ignore
        GameOver,
        Message,
        Move,
        PlayerJoined,
        Reset,
        decode_message,
        encode_message,
    )
    from .vanish_core.ledger import DedupLedger  # type: ignore
    from .vanish_core.transport import HubEndpoint, InMemoryHub, Transport  # type: ignore
    from .vanish_core.relay import ChannelRelay  # type: ignore
    from .vanish_core.presentation import Presentation, TextPresentation  # type: ignore
    from .vanish_core.sync import LinkState, SyncProtocol  # type: ignore
    from .vanish_core.config import Settings, setup_logging  # type: ignore
except ImportError:
    from vanish_core.board import (  # type: ignore
        EMPTY,
        GRID_SIZE,
        PLAYERS,
        Board,
        Cell,
        Coord,
        Mark,
        Player,
        in_bounds,
        other_player,
    )
    from vanish_core.state import GameState, Phase, PlayerHistory  # type: ignore
    from vanish_core.rules import LINES, any_winner, check_draw, check_win, winning_line  # type: ignore
    from vanish_core.errors import MalformedMessage, PlacementError  # type: ignore
    from vanish_core.engine import (  # type: ignore
        DEFAULT_HISTORY_LIMIT,
        BoardEngine,
        PlacementOutcome,
        validate_state,
    )
    from vanish_core.session import SessionCoordinator, room_id_from_link, room_link  # type: ignore
    from vanish_core.messages import (  # type: ignore
        GameOver,
        Message,
        Move,
        PlayerJoined,
        Reset,
        decode_message,
        encode_message,
    )
    from vanish_core.ledger import DedupLedger  # type: ignore
    from vanish_core.transport import HubEndpoint, InMemoryHub, Transport  # type: ignore
    from vanish_core.relay import ChannelRelay  # type: ignore
    from vanish_core.presentation import Presentation, TextPresentation  # type: ignore
    from vanish_core.sync import LinkState, SyncProtocol  # type: ignore
    from vanish_core.config import Settings, setup_logging  # type: ignore


def new_local_game(classic: bool = False, presentation: Presentation | None = None) -> SyncProtocol:
    """Hot-seat game: one endpoint drives both symbols."""
    settings = Settings(history_limit=None if classic else DEFAULT_HISTORY_LIMIT)
    return SyncProtocol(presentation=presentation, settings=settings)


def main() -> None:
    # CLI driver delegated to vanish_core.cli
    try:
        from .vanish_core.cli import main as _main  # type: ignore
    except ImportError:
        from vanish_core.cli import main as _main  # type: ignore
    raise SystemExit(_main())


if __name__ == '__main__':
    main()
