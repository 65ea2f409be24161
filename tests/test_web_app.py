"""
Integration tests for the FastAPI adapter: REST round trip, error → status
code mapping, and the per-tournament WebSocket feed with replay.

Uses FastAPI's synchronous TestClient (no external server required).
"""

import unittest
import uuid
from unittest.mock import patch

from fastapi.testclient import TestClient

from courtside.tournaments.base import Known, Match, knockout_round
from courtside.tournaments.events import MatchStartedEvent
from courtside.web import app as web_app


def _new_id() -> str:
    return f"web{uuid.uuid4().hex[:8]}"


class RestTests(unittest.TestCase):

    def setUp(self):
        self.client = TestClient(web_app.app)
        self.tid = _new_id()

    def _knockout(self, n: int = 4, live: bool = True) -> None:
        r = self.client.post("/api/tournaments", json={"id": self.tid, "name": "Cup", "format": "knockout"})
        self.assertEqual(r.status_code, 201)
        names = ["Alpha", "Bravo", "Charlie", "Delta"][:n]
        for name in names:
            r = self.client.post(
                f"/api/tournaments/{self.tid}/participants",
                json={"display_name": name, "id": name.lower()},
            )
            self.assertEqual(r.status_code, 201)
        r = self.client.post(
            f"/api/tournaments/{self.tid}/fixtures",
            json={"seeding": [name.lower() for name in names]},
        )
        self.assertEqual(r.status_code, 201)
        if live:
            r = self.client.post(f"/api/tournaments/{self.tid}/status", json={"status": "live"})
            self.assertEqual(r.status_code, 200)

    def test_config_endpoint(self):
        data = self.client.get("/api/config").json()
        self.assertEqual(data["rules"]["winning_score"], web_app.config.rules.winning_score)
        self.assertIn("group_size", data)

    def test_full_knockout_over_http(self):
        self._knockout()
        matches = self.client.get(f"/api/tournaments/{self.tid}/matches").json()
        self.assertEqual([m["id"] for m in matches], [f"{self.tid}:SF-1", f"{self.tid}:SF-2", f"{self.tid}:F"])
        self.assertEqual(matches[2]["slot_a"], {"type": "Unresolved"})

        for code in ("SF-1", "SF-2"):
            r = self.client.post(f"/api/matches/{self.tid}:{code}/result", json={"score_a": 11, "score_b": 4})
            self.assertEqual(r.status_code, 200)
        record = r.json()
        self.assertTrue(record["progression"]["round_complete"])
        self.assertEqual(record["progression"]["next_round"], "Final")

        tournament = self.client.get(f"/api/tournaments/{self.tid}").json()
        self.assertEqual(tournament["current_round"], "Final")

        final = self.client.get(
            f"/api/tournaments/{self.tid}/matches", params={"stage": "knockout", "label": "Final", "depth": 1}
        ).json()
        self.assertEqual(final[0]["slot_a"], {"type": "Known", "participant_id": "alpha"})
        self.assertEqual(final[0]["slot_b"], {"type": "Known", "participant_id": "charlie"})

        locked = self.client.get(
            f"/api/tournaments/{self.tid}/rounds/locked",
            params={"stage": "knockout", "label": "Semi Finals", "depth": 2},
        ).json()
        self.assertTrue(locked["locked"])

        r = self.client.post(f"/api/matches/{self.tid}:F/result", json={"score_a": 9, "score_b": 11})
        self.assertTrue(r.json()["progression"]["tournament_complete"])
        standings = self.client.get(f"/api/tournaments/{self.tid}/standings").json()
        self.assertEqual(standings[0]["participant"]["id"], "charlie")
        self.assertEqual(standings[0]["position"], 1)

    def test_round_lock_lookup_without_depth(self):
        self._knockout()
        for code in ("SF-1", "SF-2"):
            self.client.post(f"/api/matches/{self.tid}:{code}/result", json={"score_a": 11, "score_b": 4})
        r = self.client.get(
            f"/api/tournaments/{self.tid}/rounds/locked",
            params={"stage": "knockout", "label": "Semi Finals"},
        )
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.json()["locked"])
        self.assertEqual(r.json()["round"]["depth_from_final"], 2)

        semis = self.client.get(
            f"/api/tournaments/{self.tid}/matches", params={"stage": "knockout", "label": "Semi Finals"}
        ).json()
        self.assertEqual(len(semis), 2)

    def test_unknown_round_is_404(self):
        self._knockout()
        r = self.client.get(
            f"/api/tournaments/{self.tid}/rounds/locked", params={"stage": "knockout", "label": "Nope"}
        )
        self.assertEqual(r.status_code, 404)
        self.assertEqual(r.json()["error"], "not_found")

    def test_edit_draft_tournament(self):
        self._knockout(live=False)
        r = self.client.patch(f"/api/tournaments/{self.tid}", json={"name": "Winter Cup", "rules": {"winning_score": 15}})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["name"], "Winter Cup")
        self.assertEqual(r.json()["rules"]["winning_score"], 15)
        self.assertEqual(r.json()["rules"]["scoring_system"], web_app.config.rules.scoring_system)

        self.client.post(f"/api/tournaments/{self.tid}/status", json={"status": "live"})
        r = self.client.patch(f"/api/tournaments/{self.tid}", json={"name": "Spring Cup"})
        self.assertEqual(r.status_code, 409)

    def test_remove_participant(self):
        self.client.post("/api/tournaments", json={"id": self.tid, "name": "Cup", "format": "knockout"})
        for name in ("Alpha", "Bravo"):
            self.client.post(f"/api/tournaments/{self.tid}/participants", json={"display_name": name, "id": name.lower()})
        r = self.client.delete(f"/api/tournaments/{self.tid}/participants/bravo")
        self.assertEqual(r.status_code, 204)
        ids = [p["id"] for p in self.client.get(f"/api/tournaments/{self.tid}/participants").json()]
        self.assertEqual(ids, ["alpha"])
        r = self.client.delete(f"/api/tournaments/{self.tid}/participants/bravo")
        self.assertEqual(r.status_code, 404)

    def test_validation_error_is_400(self):
        r = self.client.post("/api/tournaments", json={"name": "Cup", "format": "swiss"})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["error"], "validation")

    def test_missing_field_is_400(self):
        r = self.client.post("/api/tournaments", json={"name": "Cup"})
        self.assertEqual(r.status_code, 400)

    def test_state_error_is_409(self):
        self._knockout(live=False)
        r = self.client.post(f"/api/matches/{self.tid}:SF-1/result", json={"score_a": 11, "score_b": 4})
        self.assertEqual(r.status_code, 409)
        self.assertEqual(r.json()["error"], "state")

    def test_not_found_is_404(self):
        r = self.client.get(f"/api/tournaments/{_new_id()}")
        self.assertEqual(r.status_code, 404)
        self.assertIn("Tournament not found", r.json()["message"])

    def test_start_and_delete(self):
        self._knockout(live=False)
        r = self.client.delete(f"/api/matches/{self.tid}:SF-2")
        self.assertEqual(r.status_code, 409)
        r = self.client.delete(f"/api/matches/{self.tid}:F")
        self.assertEqual(r.status_code, 204)
        self.client.post(f"/api/tournaments/{self.tid}/status", json={"status": "live"})
        r = self.client.post(f"/api/matches/{self.tid}:SF-1/start", json={"court_number": 2})
        self.assertEqual(r.json()["status"], "live")
        self.assertEqual(r.json()["court_number"], 2)


class TournamentFeedTests(unittest.TestCase):

    def test_late_subscriber_receives_full_replay(self):
        """
        A client that connects after events were emitted should immediately
        receive all past events for that tournament, in order.
        """
        tid = _new_id()
        client = TestClient(web_app.app)
        client.post("/api/tournaments", json={"id": tid, "name": "Cup", "format": "knockout"})
        for name in ("Alpha", "Bravo"):
            client.post(f"/api/tournaments/{tid}/participants", json={"display_name": name, "id": name.lower()})
        client.post(f"/api/tournaments/{tid}/fixtures", json={"seeding": ["alpha", "bravo"]})
        client.post(f"/api/tournaments/{tid}/status", json={"status": "live"})
        client.post(f"/api/matches/{tid}:F/result", json={"score_a": 11, "score_b": 7})

        with TestClient(web_app.app) as ws_client:
            with ws_client.websocket_connect(f"/ws/tournaments/{tid}") as ws:
                received = [ws.receive_json(), ws.receive_json()]

        self.assertEqual([e["event"] for e in received], ["tournament_live", "match_completed"])
        self.assertEqual(received[1]["winner_id"], "alpha")
        self.assertTrue(received[1]["progression"]["tournament_complete"])

    def test_replay_is_scoped_to_the_tournament(self):
        match = Match(
            id="other:F", tournament_id="other", round=knockout_round(1, 1),
            slot_a=Known("alpha"), slot_b=Known("bravo"),
        )
        log = {
            "mine": [{"type": "TournamentLiveEvent", "event": "tournament_live", "tournament_id": "mine"}],
            "other": [web_app._to_json_dict(MatchStartedEvent(tournament_id="other", match=match))],
        }

        with patch.object(web_app._tournament_broadcaster, "_tournament_log", log):
            with TestClient(web_app.app) as client:
                with client.websocket_connect("/ws/tournaments/other") as ws:
                    payload = ws.receive_json()

        self.assertEqual(payload["type"], "MatchStartedEvent")
        self.assertEqual(payload["match"]["slot_b"]["participant_id"], "bravo")

    def test_broadcaster_logs_events_without_subscribers(self):
        broadcaster = web_app.TournamentBroadcaster()
        match = Match(
            id="x:F", tournament_id="x", round=knockout_round(1, 1),
            slot_a=Known("alpha"), slot_b=Known("bravo"),
        )
        broadcaster.publish(MatchStartedEvent(tournament_id="x", match=match))
        self.assertEqual(len(broadcaster._tournament_log["x"]), 1)
        self.assertEqual(broadcaster._tournament_log["x"][0]["event"], "match_started")
