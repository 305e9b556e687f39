"""
Vanishing tic-tac-toe core package.

Pure game logic plus the peer synchronization layer, kept free of any UI so the
Flask app, the CLI and the tests can all drive it.
Modules:
- board.py: Board, Mark, Player helpers
- state.py: GameState, PlayerHistory, Phase
- rules.py: win/draw detection
- engine.py: BoardEngine (bounded symbol history)
- session.py: SessionCoordinator (rooms, roles, presence)
- messages.py: wire schema
- sync.py: SyncProtocol (dedup, echo suppression, reset precedence)
- transport.py / relay.py: in-process hub and HTTP relay log
"""
