import json
import unittest

from app import app as flask_app  # noqa: E402
from game import ChannelRelay     # noqa: E402


class TestFlaskAPI(unittest.TestCase):
    def setUp(self):
        self.client = flask_app.test_client()

    def _post(self, path, payload):
        return self.client.post(path, data=json.dumps(payload), content_type="application/json")

    def _new(self, **payload):
        r = self._post("/api/local/new", payload)
        self.assertEqual(r.status_code, 200)
        return r.get_json()["state"]

    def _play(self, state, cells):
        data = None
        for cell in cells:
            r = self._post("/api/local/move", {"state": state, "move": list(cell)})
            self.assertEqual(r.status_code, 200, r.get_json())
            data = r.get_json()
            state = data["state"]
        return data

    def test_given_health_when_requested_then_ok(self):
        r = self.client.get("/api/health")
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.get_json()["ok"])

    def test_given_new_game_when_posted_then_empty_board_and_x_to_move(self):
        state = self._new()
        self.assertEqual(state["board"], [["", "", ""], ["", "", ""], ["", "", ""]])
        self.assertEqual(state["currentPlayer"], "X")
        self.assertEqual(state["historyLimit"], 3)
        self.assertEqual(state["status"], "Player X's Turn")
        self.assertEqual(state["phase"], "in_progress")
        self.assertIsNone(self._new(classic=True)["historyLimit"])
        self.assertEqual(self._new(startingPlayer="O")["currentPlayer"], "O")
        r = self._post("/api/local/new", {"startingPlayer": "Z"})
        self.assertEqual(r.status_code, 400)

    def test_given_third_mark_when_moved_then_oldest_reported_fading(self):
        data = self._play(self._new(), [(0, 0), (2, 2), (1, 1), (2, 0), (1, 2)])
        self.assertEqual(data["outcome"]["faded"], {"player": "X", "row": 0, "col": 0, "sequence": 1})
        self.assertIsNone(data["outcome"]["removed"])
        self.assertEqual(data["state"]["histories"]["X"]["fading"], 1)
        self.assertEqual(data["state"]["currentPlayer"], "O")

        data = self._play(data["state"], [(0, 1), (2, 1)])
        self.assertEqual(data["outcome"]["removed"]["row"], 0)
        self.assertEqual(data["outcome"]["removed"]["col"], 0)
        self.assertEqual(data["state"]["board"][0][0], "")
        self.assertEqual(len(data["state"]["histories"]["X"]["marks"]), 3)

    def test_given_row_completed_when_moved_then_won_and_further_moves_rejected(self):
        data = self._play(self._new(), [(0, 0), (2, 2), (0, 1), (1, 0), (0, 2)])
        state = data["state"]
        self.assertEqual(state["phase"], "won")
        self.assertEqual(state["winner"], "X")
        self.assertEqual(state["resultText"], "X Wins!")
        r = self._post("/api/local/move", {"state": state, "move": [1, 1]})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.get_json()["reason"], "round_over")

    def test_given_bad_moves_when_posted_then_400_with_reason(self):
        state = self._play(self._new(), [(1, 1)])["state"]
        r = self._post("/api/local/move", {"state": state, "move": [1, 1]})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.get_json()["reason"], "occupied")
        r = self._post("/api/local/move", {"state": state, "move": [5, 0]})
        self.assertEqual(r.get_json()["reason"], "out_of_bounds")
        r = self._post("/api/local/move", {"move": [0, 0]})
        self.assertEqual(r.status_code, 400)
        r = self._post("/api/local/move", {"state": state})
        self.assertEqual(r.status_code, 400)

    def test_given_inconsistent_state_when_posted_then_400(self):
        state = self._new()
        state["board"][0][0] = "X"
        r = self._post("/api/local/move", {"state": state, "move": [1, 1]})
        self.assertEqual(r.status_code, 400)
        self.assertFalse(r.get_json()["ok"])

        for histories in ({"X": [1], "O": {}}, [1, 2], {"X": {"marks": 5}}, {"X": {"marks": [7]}}):
            with self.subTest(histories=histories):
                bad = self._new()
                bad["histories"] = histories
                for path in ("/api/local/move", "/api/local/reset"):
                    r = self._post(path, {"state": bad, "move": [1, 1]})
                    self.assertEqual(r.status_code, 400)
                    self.assertFalse(r.get_json()["ok"])

    def test_given_reset_when_posted_then_clean_board_and_starting_player_toggles(self):
        state = self._play(self._new(), [(0, 0), (1, 1)])["state"]
        r = self._post("/api/local/reset", {"state": state})
        self.assertEqual(r.status_code, 200)
        state = r.get_json()["state"]
        self.assertEqual(state["startingPlayer"], "O")
        self.assertEqual(state["currentPlayer"], "O")
        self.assertEqual(state["histories"]["X"]["marks"], [])
        state = self._post("/api/local/reset", {"state": state}).get_json()["state"]
        self.assertEqual(state["currentPlayer"], "X")

    def test_given_room_created_when_posted_then_id_and_shareable_link(self):
        r = self._post("/api/rooms", {})
        self.assertEqual(r.status_code, 200)
        data = r.get_json()
        self.assertEqual(len(data["roomId"]), 6)
        self.assertIn("room=" + data["roomId"], data["link"])

    def test_given_published_messages_when_polled_then_returned_in_order_after_cursor(self):
        room = "relay-order"
        for i, msg in enumerate([{"type": "playerJoined"}, {"type": "move", "row": 0, "col": 0}], start=1):
            r = self._post(f"/api/rooms/{room}/publish", {"sender": "peer-a", "message": msg})
            self.assertEqual(r.status_code, 200)
            self.assertEqual(r.get_json()["seq"], i)
        data = self.client.get(f"/api/rooms/{room}/messages?after=0").get_json()
        self.assertEqual([m["seq"] for m in data["messages"]], [1, 2])
        self.assertEqual(data["messages"][0]["sender"], "peer-a")
        self.assertEqual(data["latest"], 2)
        data = self.client.get(f"/api/rooms/{room}/messages?after=1").get_json()
        self.assertEqual(data["messages"][0]["message"]["type"], "move")
        empty = self.client.get("/api/rooms/relay-nobody/messages").get_json()
        self.assertEqual(empty["messages"], [])
        self.assertEqual(empty["latest"], 0)

    def test_given_bad_relay_requests_when_sent_then_400(self):
        self.assertEqual(self._post("/api/rooms/NOPE/publish", {"sender": "a", "message": {}}).status_code, 400)
        self.assertEqual(self._post("/api/rooms/relay-bad/publish", {"message": {}}).status_code, 400)
        self.assertEqual(self._post("/api/rooms/relay-bad/publish", {"sender": "a", "message": [1]}).status_code, 400)
        self.assertEqual(self.client.get("/api/rooms/relay-bad/messages?after=x").status_code, 400)


class TestChannelRelay(unittest.TestCase):
    def test_given_small_backlog_when_overflowing_then_oldest_dropped_and_seq_continues(self):
        relay = ChannelRelay(backlog=2)
        for i in range(3):
            relay.publish("r", "s", {"n": i})
        self.assertEqual([e.seq for e in relay.since("r")], [2, 3])
        self.assertEqual(relay.latest_seq("r"), 3)
        self.assertEqual(relay.rooms(), ["r"])

    def test_given_room_cap_when_new_room_published_then_least_recent_room_evicted(self):
        relay = ChannelRelay(backlog=4, max_rooms=2)
        relay.publish("a", "s", {})
        relay.publish("b", "s", {})
        relay.publish("a", "s", {})
        relay.publish("c", "s", {})
        self.assertEqual(relay.rooms(), ["a", "c"])
        self.assertEqual(relay.since("b"), [])
        self.assertEqual(relay.latest_seq("b"), 0)
        self.assertEqual(relay.latest_seq("a"), 2)
        self.assertEqual(relay.publish("b", "s", {}), 1)
        self.assertEqual(relay.rooms(), ["b", "c"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
