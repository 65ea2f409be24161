"""
Tests for fixture generation — round robin, group stage, knockout bracket
sizing and byes, composite shells, and format dispatch.
"""

from __future__ import annotations

import random
import unittest
from itertools import combinations

import pytest

from courtside.errors import ValidationError
from courtside.tournaments.base import UNRESOLVED, Known, Participant
from courtside.tournaments.fixtures import (
    FixtureOptions,
    composite,
    generate_fixtures,
    has_duplicate_matches,
)
from courtside.tournaments.knockout import (
    _next_power_of_two,
    knockout,
    knockout_shell,
    next_round_matches,
    plan_bracket,
    rank_participants,
)
from courtside.tournaments.round_robin import allocate_groups, group_stage, round_robin


# --------------------------------------------------------------------------- #
# Helpers                                                                      #
# --------------------------------------------------------------------------- #

NAMES = [
    "Alpha", "Bravo", "Charlie", "Delta",
    "Echo", "Foxtrot", "Golf", "Hotel",
    "India", "Juliet", "Kilo", "Lima",
    "Mike", "November", "Oscar", "Papa",
]


def make_participants(n: int) -> list[Participant]:
    return [Participant(id=name.lower(), display_name=name, roster=(name,)) for name in NAMES[:n]]


def ids(participants: list[Participant]) -> list[str]:
    return [p.id for p in participants]


# --------------------------------------------------------------------------- #
# Round robin                                                                  #
# --------------------------------------------------------------------------- #

class TestRoundRobin:
    @pytest.mark.parametrize("n", [3, 4, 5, 8])
    def test_match_count(self, n):
        matches = round_robin("t", make_participants(n))
        assert len(matches) == n * (n - 1) // 2

    def test_every_pair_exactly_once(self):
        participants = make_participants(6)
        matches = round_robin("t", participants)
        pairs = [frozenset(m.participant_ids) for m in matches]
        expected = {frozenset(pair) for pair in combinations(ids(participants), 2)}
        assert set(pairs) == expected
        assert len(pairs) == len(expected)

    def test_round_label_and_order(self):
        matches = round_robin("t", make_participants(4))
        assert {m.round.label for m in matches} == {"Round Robin"}
        assert {m.round.stage for m in matches} == {"round_robin"}
        assert [m.order for m in matches] == list(range(6))
        assert matches[0].id == "t:RR-M1"

    def test_requires_three_participants(self):
        with pytest.raises(ValidationError, match="at least 3"):
            round_robin("t", make_participants(2))


# --------------------------------------------------------------------------- #
# Group stage                                                                  #
# --------------------------------------------------------------------------- #

class TestGroupStage:
    def test_group_size_hint(self):
        groups = allocate_groups(make_participants(10), group_size=4)
        # ceil(10 / 4) = 3 groups of 4, 3, 3
        assert list(groups) == ["A", "B", "C"]
        assert [len(g) for g in groups.values()] == [4, 3, 3]

    def test_explicit_group_count(self):
        groups = allocate_groups(make_participants(8), num_groups=4)
        assert [len(g) for g in groups.values()] == [2, 2, 2, 2]

    def test_group_rounds_are_labelled_per_group(self):
        matches = group_stage("t", make_participants(8), num_groups=2)
        assert {m.round.label for m in matches} == {"Group A", "Group B"}
        assert len(matches) == 2 * 6
        for m in matches:
            assert m.round.stage == "group"
            assert m.round.label == f"Group {m.group_label}"

    def test_groups_of_two_play_one_match(self):
        matches = group_stage("t", make_participants(8), num_groups=4)
        assert len(matches) == 4
        assert [m.group_label for m in matches] == ["A", "B", "C", "D"]

    def test_too_many_groups(self):
        with pytest.raises(ValidationError):
            group_stage("t", make_participants(5), num_groups=3)


# --------------------------------------------------------------------------- #
# Knockout                                                                     #
# --------------------------------------------------------------------------- #

class TestBracketSizing:
    def test_next_power_of_two(self):
        assert _next_power_of_two(2) == 2
        assert _next_power_of_two(3) == 4
        assert _next_power_of_two(4) == 4
        assert _next_power_of_two(5) == 8
        assert _next_power_of_two(8) == 8
        assert _next_power_of_two(9) == 16

    @pytest.mark.parametrize(
        "n, bracket, byes, first_round",
        [(2, 2, 0, 1), (3, 4, 1, 1), (5, 8, 3, 1), (6, 8, 2, 2), (8, 8, 0, 4), (12, 16, 4, 4)],
    )
    def test_plan(self, n, bracket, byes, first_round):
        plan = plan_bracket(make_participants(n))
        assert plan.bracket_size == bracket
        assert plan.byes == byes
        assert len(plan.first_round) == first_round

    def test_byes_go_to_top_seeds(self):
        plan = plan_bracket(make_participants(5))
        assert plan.bye_ids == ("alpha", "bravo", "charlie")
        assert plan.first_round == (("delta", "echo"),)


class TestKnockout:
    def test_eight_players_pre_creates_every_round(self):
        matches = knockout("t", make_participants(8))
        labels = [m.round.label for m in matches]
        assert labels.count("Quarter Finals") == 4
        assert labels.count("Semi Finals") == 2
        assert labels.count("Final") == 1

        later = [m for m in matches if m.round.label != "Quarter Finals"]
        assert all(m.slot_a == UNRESOLVED and m.slot_b == UNRESOLVED for m in later)

    def test_round_one_pairs_sequentially(self):
        matches = knockout("t", make_participants(4))
        semis = [m for m in matches if m.round.label == "Semi Finals"]
        assert [m.participant_ids for m in semis] == [("alpha", "bravo"), ("charlie", "delta")]
        assert [m.id for m in semis] == ["t:SF-1", "t:SF-2"]

    def test_five_players_byes_enter_round_two(self):
        matches = knockout("t", make_participants(5))
        first = [m for m in matches if m.round.depth_from_final == 3]
        semis = [m for m in matches if m.round.depth_from_final == 2]
        assert len(first) == 1
        assert semis[0].slot_a == UNRESOLVED
        assert semis[0].slot_b == Known("alpha")
        assert (semis[1].slot_a, semis[1].slot_b) == (Known("bravo"), Known("charlie"))

    def test_two_players_is_a_final(self):
        matches = knockout("t", make_participants(2))
        assert len(matches) == 1
        assert matches[0].round.is_final
        assert matches[0].id == "t:F"

    def test_deep_round_labels(self):
        matches = knockout("t", make_participants(64))
        depths = {m.round.depth_from_final: m.round.label for m in matches}
        assert depths[6] == "Round 1"
        assert depths[5] == "Round of 32"
        assert depths[4] == "Round of 16"

    def test_explicit_seeding(self):
        participants = make_participants(4)
        ranked = rank_participants(participants, seeding=["delta", "alpha"])
        assert ranked == ["delta", "alpha", "bravo", "charlie"]

    def test_unknown_seeding_id(self):
        with pytest.raises(ValidationError, match="unknown participant"):
            rank_participants(make_participants(4), seeding=["zulu"])

    def test_rng_makes_draws_reproducible(self):
        participants = make_participants(8)
        first = rank_participants(participants, rng=random.Random(7))
        second = rank_participants(participants, rng=random.Random(7))
        assert first == second
        assert sorted(first) == sorted(ids(participants))

    def test_shell_requires_power_of_two(self):
        assert len(knockout_shell("t", 8)) == 7
        with pytest.raises(ValidationError, match="power-of-two"):
            knockout_shell("t", 6)

    def test_next_round_synthesis(self):
        semis = knockout("t", make_participants(4))[0].round
        final = next_round_matches("t", semis, ["alpha", "delta"], total_rounds=2)
        assert len(final) == 1
        assert final[0].round.is_final
        assert final[0].participant_ids == ("alpha", "delta")


# --------------------------------------------------------------------------- #
# Dispatch                                                                     #
# --------------------------------------------------------------------------- #

class GenerateFixturesTests(unittest.TestCase):

    def test_dispatches_by_format(self):
        participants = make_participants(8)
        self.assertEqual(len(generate_fixtures("t", "round_robin", participants)), 28)
        self.assertEqual(len(generate_fixtures("t", "knockout", participants)), 7)
        self.assertEqual(
            len(generate_fixtures("t", "group", participants, FixtureOptions(num_groups=2))), 12
        )

    def test_composite_four_groups_of_two(self):
        matches = generate_fixtures(
            "t", "composite", make_participants(8), FixtureOptions(num_groups=4, top_per_group=2)
        )
        groups = [m for m in matches if m.round.stage == "group"]
        knockouts = [m for m in matches if m.round.stage == "knockout"]
        self.assertEqual(len(groups), 4)
        self.assertEqual(len(knockouts), 7)
        self.assertTrue(all(not m.is_resolved for m in knockouts))

    def test_composite_rejects_non_power_of_two_qualifiers(self):
        with self.assertRaises(ValidationError):
            composite("t", make_participants(9), FixtureOptions(num_groups=3, top_per_group=2))

    def test_composite_rejects_too_many_qualifiers(self):
        with self.assertRaisesRegex(ValidationError, "smallest group"):
            composite("t", make_participants(8), FixtureOptions(num_groups=4, top_per_group=4))

    def test_unknown_format(self):
        with self.assertRaisesRegex(ValidationError, "Unknown tournament format"):
            generate_fixtures("t", "swiss", make_participants(4))

    def test_single_participant(self):
        with self.assertRaisesRegex(ValidationError, "at least 2"):
            generate_fixtures("t", "knockout", make_participants(1))

    def test_duplicate_participant_ids(self):
        participants = make_participants(3) + make_participants(1)
        with self.assertRaisesRegex(ValidationError, "Duplicate participant"):
            generate_fixtures("t", "knockout", participants)

    def test_generated_sets_have_no_duplicates(self):
        matches = generate_fixtures("t", "round_robin", make_participants(5))
        self.assertFalse(has_duplicate_matches(matches))
        self.assertTrue(has_duplicate_matches(matches + matches[:1]))
