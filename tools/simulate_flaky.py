import random
import sys
from typing import Tuple
sys.path.append('.')
import game  # type: ignore

MAX_MOVES_PER_ROUND = 60


def play_seed(seed: int, rounds: int, duplicate_rate: float) -> Tuple[bool, int, int]:
    rng = random.Random(seed)
    hub = game.InMemoryHub(rng=random.Random(seed + 1), duplicate_rate=duplicate_rate)
    creator = game.SyncProtocol(hub.connect('creator'))
    joiner = game.SyncProtocol(hub.connect('joiner'))
    room = creator.request_create_room()
    joiner.request_join_room(room)
    hub.pump()
    ok = True
    for _ in range(rounds):
        for _ in range(MAX_MOVES_PER_ROUND):
            if creator.link is game.LinkState.ROUND_OVER:
                break
            mover = creator if creator.state.current_player == 'X' else joiner
            free = [rc for rc in mover.state.board.coords() if mover.engine.can_place(*rc)]
            if not free or not mover.request_place_mark(*rng.choice(free)):
                ok = False
                break
            hub.pump()
            ok = ok and creator.state == joiner.state
        (creator if rng.random() < 0.5 else joiner).request_reset()
        hub.pump()
        ok = ok and creator.state == joiner.state
    return ok, hub.published, hub.delivered


def main():
    random.seed(0)
    total = int(sys.argv[1]) if len(sys.argv) > 1 else 50
    rate = float(sys.argv[2]) if len(sys.argv) > 2 else 0.3
    divergent = 0
    for _ in range(total):
        seed = random.randrange(1_000_000)
        ok, published, delivered = play_seed(seed, rounds=5, duplicate_rate=rate)
        print(f"seed={seed} consistent={ok} published={published} delivered={delivered}")
        if not ok:
            divergent += 1
    print(f"Checked {total} seeds, divergent={divergent}")


if __name__ == '__main__':
    main()
