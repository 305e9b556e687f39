from __future__ import annotations

import os
import sys
from typing import Any, Dict, List, Optional

from flask import Flask, jsonify, request

# Ensure package imports work when executed directly from repo root or as module
if __package__ in (None, ""):
    sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

try:
    from .game import (  # type: ignore
        DEFAULT_HISTORY_LIMIT,
        PLAYERS,
        Board,
        BoardEngine,
        ChannelRelay,
        GameState,
        Mark,
        Phase,
        PlacementError,
        PlacementOutcome,
        PlayerHistory,
        SessionCoordinator,
        Settings,
        other_player,
        room_link,
        setup_logging,
    )
    from .vanish_core.session import is_room_id  # type: ignore
except ImportError:
    from game import (  # type: ignore
        DEFAULT_HISTORY_LIMIT,
        PLAYERS,
        Board,
        BoardEngine,
        ChannelRelay,
        GameState,
        Mark,
        Phase,
        PlacementError,
        PlacementOutcome,
        PlayerHistory,
        SessionCoordinator,
        Settings,
        other_player,
        room_link,
        setup_logging,
    )
    from vanish_core.session import is_room_id  # type: ignore

SETTINGS = Settings.from_env()
setup_logging(SETTINGS.debug)

app = Flask(__name__)
relay = ChannelRelay(backlog=SETTINGS.relay_backlog, max_rooms=SETTINGS.relay_max_rooms)
_rooms = SessionCoordinator(room_id_length=SETTINGS.room_id_length)


# ---------- JSON (de)serialization ----------

def board_to_json(b: Board) -> List[List[str]]:
    return b.rows()


def board_from_json(rows: Any) -> Board:
    if not isinstance(rows, list) or len(rows) != 3 or any(not isinstance(r, list) or len(r) != 3 for r in rows):
        raise ValueError("board must be a 3x3 list")
    board = Board()
    for r, row in enumerate(rows):
        for c, cell in enumerate(row):
            if cell not in ("", "X", "O"):
                raise ValueError(f"bad cell value {cell!r}")
            board.set(r, c, cell)
    return board


def mark_to_json(m: Optional[Mark]) -> Optional[Dict[str, Any]]:
    if m is None:
        return None
    return {"player": m.player, "row": m.row, "col": m.col, "sequence": m.sequence}


def _history_to_json(h: PlayerHistory) -> Dict[str, Any]:
    return {
        "marks": [{"row": m.row, "col": m.col, "sequence": m.sequence} for m in h.marks],
        "fading": h.fading,
        "nextSequence": h.next_sequence,
    }


def _require_object(value: Any, what: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"{what} must be an object")
    return value


def _history_from_json(player: str, obj: Any) -> PlayerHistory:
    obj = _require_object(obj, f"histories.{player}")
    raw_marks = obj.get("marks", [])
    if not isinstance(raw_marks, list):
        raise ValueError(f"histories.{player}.marks must be a list")
    marks = []
    for m in raw_marks:
        m = _require_object(m, f"histories.{player}.marks entry")
        marks.append(Mark(player, int(m["row"]), int(m["col"]), int(m["sequence"])))
    fading = obj.get("fading")
    next_seq = obj.get("nextSequence")
    return PlayerHistory(
        player=player,
        marks=marks,
        fading=int(fading) if fading is not None else None,
        next_sequence=int(next_seq) if next_seq is not None else (marks[-1].sequence + 1 if marks else 1),
    )


def state_to_json(s: GameState, history_limit: Optional[int] = DEFAULT_HISTORY_LIMIT) -> Dict[str, Any]:
    return {
        "board": board_to_json(s.board),
        "histories": {"X": _history_to_json(s.x_history), "O": _history_to_json(s.o_history)},
        "currentPlayer": s.current_player,
        "startingPlayer": s.starting_player,
        "phase": s.phase.value,
        "winner": s.winner,
        "historyLimit": history_limit,
        "status": s.status_text(),
        "resultText": s.result_text(),
    }


def json_to_state(obj: Dict[str, Any]) -> GameState:
    hist = _require_object(obj.get("histories") or {}, "histories")
    return GameState(
        board=board_from_json(obj["board"]),
        x_history=_history_from_json("X", hist.get("X") or {}),
        o_history=_history_from_json("O", hist.get("O") or {}),
        current_player=str(obj["currentPlayer"]),
        phase=Phase(obj.get("phase", Phase.IN_PROGRESS.value)),
        winner=obj.get("winner"),
        starting_player=str(obj.get("startingPlayer", "X")),
    )


def _limit_from_json(obj: Dict[str, Any]) -> Optional[int]:
    if "historyLimit" not in obj:
        return DEFAULT_HISTORY_LIMIT
    value = obj["historyLimit"]
    return None if value is None else int(value)


def _engine_from_body(body: Dict[str, Any]) -> BoardEngine:
    s_in = body.get("state")
    if not isinstance(s_in, dict):
        raise ValueError("state required")
    return BoardEngine.from_state(json_to_state(s_in), history_limit=_limit_from_json(s_in))


def outcome_to_json(o: PlacementOutcome) -> Dict[str, Any]:
    return {
        "cell": [o.cell[0], o.cell[1]],
        "mark": mark_to_json(o.mark),
        "removed": mark_to_json(o.removed),
        "faded": mark_to_json(o.faded),
        "phase": o.phase.value,
        "winner": o.winner,
        "currentPlayer": o.current_player,
    }


# ---------- Local (hot-seat) game API ----------

@app.get("/api/health")
def api_health() -> Any:
    return jsonify({"ok": True, "rooms": len(relay.rooms())})


@app.post("/api/local/new")
def api_local_new() -> Any:
    body = request.get_json(force=True, silent=True) or {}
    starting = body.get("startingPlayer", "X")
    if starting not in PLAYERS:
        return jsonify({"ok": False, "error": "startingPlayer must be X or O"}), 400
    limit = None if body.get("classic") else SETTINGS.history_limit
    engine = BoardEngine(history_limit=limit, starting_player=starting)
    return jsonify({"ok": True, "state": state_to_json(engine.state, limit)})


@app.post("/api/local/move")
def api_local_move() -> Any:
    body = request.get_json(force=True, silent=True) or {}
    try:
        engine = _engine_from_body(body)
        r, c = (int(v) for v in body["move"])
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({"ok": False, "error": f"bad request: {e}"}), 400
    try:
        outcome = engine.place_mark(engine.current_player, r, c)
    except PlacementError as e:
        return jsonify({"ok": False, "error": str(e), "reason": e.reason}), 400
    return jsonify({
        "ok": True,
        "outcome": outcome_to_json(outcome),
        "state": state_to_json(engine.state, engine.history_limit),
    })


@app.post("/api/local/reset")
def api_local_reset() -> Any:
    body = request.get_json(force=True, silent=True) or {}
    try:
        engine = _engine_from_body(body)
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({"ok": False, "error": f"bad request: {e}"}), 400
    engine.reset(other_player(engine.state.starting_player))
    return jsonify({"ok": True, "state": state_to_json(engine.state, engine.history_limit)})


# ---------- Room channel relay ----------

@app.post("/api/rooms")
def api_rooms_create() -> Any:
    room_id = _rooms.generate_room_id()
    base = SETTINGS.base_url or request.host_url
    return jsonify({"ok": True, "roomId": room_id, "link": room_link(base, room_id)})


@app.post("/api/rooms/<room_id>/publish")
def api_rooms_publish(room_id: str) -> Any:
    if not is_room_id(room_id):
        return jsonify({"ok": False, "error": "bad room id"}), 400
    body = request.get_json(force=True, silent=True) or {}
    sender = body.get("sender")
    message = body.get("message")
    if not isinstance(sender, str) or not sender:
        return jsonify({"ok": False, "error": "sender required"}), 400
    if not isinstance(message, dict):
        return jsonify({"ok": False, "error": "message must be an object"}), 400
    seq = relay.publish(room_id, sender, message)
    return jsonify({"ok": True, "seq": seq})


@app.get("/api/rooms/<room_id>/messages")
def api_rooms_messages(room_id: str) -> Any:
    if not is_room_id(room_id):
        return jsonify({"ok": False, "error": "bad room id"}), 400
    try:
        after = int(request.args.get("after", "0"))
    except ValueError:
        return jsonify({"ok": False, "error": "after must be an integer"}), 400
    items = [e.to_json() for e in relay.since(room_id, after)]
    return jsonify({"ok": True, "messages": items, "latest": relay.latest_seq(room_id)})


# Entrypoint for "python app.py"
if __name__ == "__main__":
    debug = os.getenv("FLASK_DEBUG", os.getenv("DEBUG", "0")).lower() in ("1", "true", "yes", "on")
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=debug)
