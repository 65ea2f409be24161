"""
Tests for _to_json_dict — the serialiser that converts engine dataclasses
and events to JSON-safe dicts and injects a "type" key at every level of
nesting.

Slots depend on it: a client can only tell Known from Unresolved by the
nested "type" key.
"""

import dataclasses
import json
import unittest
from datetime import datetime

from courtside.tournaments.base import UNRESOLVED, Known, Match, knockout_round
from courtside.tournaments.events import MatchCompletedEvent, MatchStartedEvent
from courtside.tournaments.progression import ProgressionSummary
from courtside.web import app as web_app


# ── Local test dataclasses (no production imports needed) ──────────────────

@dataclasses.dataclass(frozen=True)
class _Inner:
    x: int
    label: str


@dataclasses.dataclass(frozen=True)
class _Outer:
    name: str
    inner: _Inner


@dataclasses.dataclass(frozen=True)
class _WithList:
    items: list


def _semi(slot_b=UNRESOLVED) -> Match:
    return Match(
        id="t:SF-1",
        tournament_id="t",
        round=knockout_round(2, 2),
        slot_a=Known("alpha"),
        slot_b=slot_b,
    )


# ── Tests ──────────────────────────────────────────────────────────────────

class ToJsonDictTests(unittest.TestCase):

    def test_adds_type_to_top_level(self):
        result = web_app._to_json_dict(_Outer(name="hello", inner=_Inner(x=1, label="a")))
        self.assertEqual(result["type"], "_Outer")

    def test_adds_type_to_nested_dataclass(self):
        result = web_app._to_json_dict(_Outer(name="hello", inner=_Inner(x=42, label="z")))
        self.assertEqual(result["inner"]["type"], "_Inner")
        self.assertEqual(result["inner"]["x"], 42)

    def test_list_of_dataclasses_each_get_type(self):
        result = web_app._to_json_dict(_WithList(items=[_Inner(1, "a"), _Inner(2, "b")]))
        self.assertEqual([item["type"] for item in result["items"]], ["_Inner", "_Inner"])

    def test_slots_are_tagged(self):
        result = web_app._to_json_dict(_semi())
        self.assertEqual(result["slot_a"], {"type": "Known", "participant_id": "alpha"})
        self.assertEqual(result["slot_b"], {"type": "Unresolved"})
        self.assertEqual(result["round"]["type"], "RoundDescriptor")
        self.assertEqual(result["round"]["depth_from_final"], 2)
        self.assertEqual(result["score"], {"type": "Score", "a": 0, "b": 0})

    def test_events_carry_name_and_iso_timestamp(self):
        stamp = datetime(2026, 5, 1, 18, 30)
        event = MatchStartedEvent(tournament_id="t", match=_semi(Known("bravo")), timestamp=stamp)
        result = web_app._to_json_dict(event)
        self.assertEqual(result["type"], "MatchStartedEvent")
        self.assertEqual(result["event"], "match_started")
        self.assertEqual(result["timestamp"], "2026-05-01T18:30:00")
        self.assertEqual(result["match"]["slot_b"]["participant_id"], "bravo")

    def test_completed_event_is_json_serialisable(self):
        match = _semi(Known("bravo"))
        summary = ProgressionSummary(match_id=match.id, round=match.round, winner_id="alpha")
        event = MatchCompletedEvent(
            tournament_id="t", match=match, winner_id="alpha", progression=summary
        )
        payload = json.loads(json.dumps(web_app._to_json_dict(event)))
        self.assertEqual(payload["progression"]["type"], "ProgressionSummary")
        self.assertEqual(payload["progression"]["round"]["label"], "Semi Finals")
        self.assertFalse(payload["progression"]["tournament_complete"])

    def test_non_dataclass_passthrough(self):
        self.assertEqual(web_app._to_json_dict(42), 42)
        self.assertEqual(web_app._to_json_dict("hi"), "hi")
        self.assertIsNone(web_app._to_json_dict(None))
