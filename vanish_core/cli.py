from __future__ import annotations

import argparse
import dataclasses
import random
import sys
from typing import List, Optional, Tuple

from .config import Settings, setup_logging
from .presentation import TextPresentation
from .sync import LinkState, SyncProtocol
from .transport import InMemoryHub


def _parse_cell(text: str) -> Optional[Tuple[int, int]]:
    sep = ',' if ',' in text else ' '
    try:
        r_s, c_s = [t for t in text.split(sep) if t != '']
        return (int(r_s), int(c_s))
    except ValueError:
        return None


def play_local(settings: Settings) -> None:
    """Interactive hot-seat game on one terminal."""
    game = SyncProtocol(presentation=TextPresentation(), settings=settings)
    game.presentation.on_state_changed(game.state)
    while True:
        try:
            text = input('Move as r,c (or "reset", "quit"): ').strip().lower()
        except EOFError:
            return
        if text in ('q', 'quit', 'exit'):
            return
        if text == 'reset':
            game.request_reset()
            continue
        cell = _parse_cell(text)
        if cell is None:
            print('Could not parse. Try again.')
            continue
        game.request_place_mark(*cell)


def run_demo(settings: Settings, seed: Optional[int], rounds: int, duplicate_rate: float, verbose: bool) -> bool:
    """Two endpoints play random moves over a reordering, duplicating hub.

    Returns True when both copies of the game ended every round identical.
    """
    rng = random.Random(seed)
    hub = InMemoryHub(rng=random.Random(rng.random()), duplicate_rate=duplicate_rate)
    creator = SyncProtocol(hub.connect('creator'), TextPresentation(label='X') if verbose else None, settings)
    joiner = SyncProtocol(hub.connect('joiner'), TextPresentation(label='O') if verbose else None, settings)
    room_id = creator.request_create_room()
    assert room_id is not None
    joiner.request_join_room(room_id)
    hub.pump()

    consistent = True
    for rnd in range(1, rounds + 1):
        for _ in range(60):
            if creator.link is LinkState.ROUND_OVER:
                break
            mover = creator if creator.state.current_player == creator.local_role else joiner
            free: List[Tuple[int, int]] = [
                (r, c) for (r, c) in mover.state.board.coords() if mover.engine.can_place(r, c)
            ]
            if not free:
                break
            mover.request_place_mark(*rng.choice(free))
            hub.pump()
        same = creator.state == joiner.state
        consistent = consistent and same
        print(f'round {rnd}: {creator.state.status_text()} consistent={same}')
        initiator = creator if rng.random() < 0.5 else joiner
        initiator.request_reset()
        hub.pump()
    dropped = creator.drops + joiner.drops
    print(f'published={hub.published} delivered={hub.delivered} dropped={dict(dropped)}')
    return consistent


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Vanishing tic-tac-toe')
    parser.add_argument('--mode', choices=['local', 'demo'], default='local', help='Hot-seat game or networked self-play demo')
    parser.add_argument('--seed', type=int, default=None, help='RNG seed for the demo')
    parser.add_argument('--rounds', type=int, default=3, help='Demo rounds to play')
    parser.add_argument('--duplicates', type=float, default=0.2, help='Demo duplicate delivery rate (0..1)')
    parser.add_argument('--classic', action='store_true', help='Marks never vanish')
    parser.add_argument('--verbose', action='store_true', help='Print both boards during the demo')
    parser.add_argument('--debug', action='store_true', help='Debug logging')
    args = parser.parse_args(argv)

    env = Settings.from_env()
    settings = dataclasses.replace(
        env,
        history_limit=None if args.classic else env.history_limit,
        debug=args.debug or env.debug,
    )
    setup_logging(settings.debug)

    if args.mode == 'demo':
        ok = run_demo(settings, args.seed, args.rounds, args.duplicates, args.verbose)
        return 0 if ok else 1
    play_local(settings)
    return 0


if __name__ == '__main__':
    sys.exit(main())
