"""
Standings with tie-breaks.

Ranking priority:
  1. wins
  2. point difference
  3. points scored
  4. head-to-head, only for an exact two-way tie with a completed direct match
  5. prior order (the sort is stable)
"""

from __future__ import annotations

from itertools import groupby
from typing import Iterable

from courtside.tournaments.base import Match, Participant, Standing, StandingStats, slot_id


def compute(participants: list[Participant], matches: Iterable[Match]) -> list[Standing]:
    """Aggregate completed, fully resolved matches into unsorted standings."""
    counted = [m for m in matches if m.is_completed and m.is_resolved]
    standings: list[Standing] = []
    for participant in participants:
        stats = StandingStats()
        for m in counted:
            if slot_id(m.slot_a) == participant.id:
                own, other = m.score.a, m.score.b
            elif slot_id(m.slot_b) == participant.id:
                own, other = m.score.b, m.score.a
            else:
                continue
            stats.matches_played += 1
            stats.points_for += own
            stats.points_against += other
            if own > other:
                stats.wins += 1
            else:
                stats.losses += 1
        stats.point_difference = stats.points_for - stats.points_against
        stats.win_rate = stats.wins / stats.matches_played if stats.matches_played else 0.0
        standings.append(Standing(participant=participant, stats=stats))
    return standings


def rank(standings: list[Standing], matches: Iterable[Match]) -> list[Standing]:
    """Return standings in ranking order with 1-based positions assigned."""
    completed = [m for m in matches if m.is_completed and m.is_resolved]
    ordered = sorted(standings, key=_primary_key, reverse=True)

    result: list[Standing] = []
    for _, tied in groupby(ordered, key=_primary_key):
        tied = list(tied)
        if len(tied) == 2:
            winner = head_to_head_winner(tied[0].participant.id, tied[1].participant.id, completed)
            if winner == tied[1].participant.id:
                tied.reverse()
        result.extend(tied)

    for position, standing in enumerate(result, 1):
        standing.position = position
    return result


def head_to_head_winner(first_id: str, second_id: str, matches: Iterable[Match]) -> str | None:
    """Winner of the single completed match between the two, or None."""
    direct = [
        m for m in matches
        if m.is_completed and set(m.participant_ids) == {first_id, second_id}
    ]
    if len(direct) != 1:
        return None
    return direct[0].winner_id


def standings_for(participants: list[Participant], matches: Iterable[Match]) -> list[Standing]:
    matches = list(matches)
    return rank(compute(participants, matches), matches)


def group_standings(
    participants: list[Participant],
    matches: Iterable[Match],
    group_label: str,
) -> list[Standing]:
    """Standings of one group: its members, ranked on its matches only."""
    group_matches = [m for m in matches if m.round.stage == "group" and m.group_label == group_label]
    member_ids = {pid for m in group_matches for pid in m.participant_ids}
    members = [p for p in participants if p.id in member_ids]
    return standings_for(members, group_matches)


def _primary_key(standing: Standing) -> tuple[int, int, int]:
    s = standing.stats
    return (s.wins, s.point_difference, s.points_for)
