"""
Round robin and group-stage fixtures.

Every participant meets every other participant in the same pool exactly
once: N(N-1)/2 matches.  Group stages run one round robin per group, and each
group is its own round ("Group A", "Group B", …).
"""

from __future__ import annotations

import logging
from itertools import combinations

from courtside.tournaments.base import (
    ROUND_ROBIN_ROUND,
    Known,
    Match,
    Participant,
    ensure_unique_participants,
    group_round,
    match_id,
)
from courtside.tournaments.groups import distribute, group_label, groups_for_size_hint

logger = logging.getLogger(__name__)

DEFAULT_GROUP_SIZE = 4


def round_robin(tournament_id: str, participants: list[Participant]) -> list[Match]:
    """One match per unordered pair, labelled "Round Robin"."""
    ensure_unique_participants(participants, 3, "Round robin")
    matches = [
        Match(
            id=match_id(tournament_id, f"RR-M{order + 1}"),
            tournament_id=tournament_id,
            round=ROUND_ROBIN_ROUND,
            slot_a=Known(a.id),
            slot_b=Known(b.id),
            order=order,
        )
        for order, (a, b) in enumerate(combinations(participants, 2))
    ]
    return matches


def group_stage(
    tournament_id: str,
    participants: list[Participant],
    num_groups: int | None = None,
    group_size: int = DEFAULT_GROUP_SIZE,
) -> list[Match]:
    """
    Distribute participants into groups and play a round robin inside each.

    num_groups wins over group_size when both are given; otherwise the
    number of groups is ceil(N / group_size).
    """
    return group_round_robins(tournament_id, allocate_groups(participants, num_groups, group_size))


def allocate_groups(
    participants: list[Participant],
    num_groups: int | None = None,
    group_size: int = DEFAULT_GROUP_SIZE,
) -> dict[str, list[Participant]]:
    """Group label → members, in label order."""
    ensure_unique_participants(participants, 2, "Group stage")
    if num_groups is None:
        num_groups = groups_for_size_hint(len(participants), group_size)
    groups = distribute(participants, num_groups)
    return {group_label(i): members for i, members in enumerate(groups)}


def group_round_robins(tournament_id: str, groups: dict[str, list[Participant]]) -> list[Match]:
    matches: list[Match] = []
    for label, members in groups.items():
        round_desc = group_round(label)
        for order, (a, b) in enumerate(combinations(members, 2)):
            matches.append(
                Match(
                    id=match_id(tournament_id, f"G{label}-M{order + 1}"),
                    tournament_id=tournament_id,
                    round=round_desc,
                    slot_a=Known(a.id),
                    slot_b=Known(b.id),
                    order=order,
                    group_label=label,
                )
            )
        logger.debug("Group %s: %d members", label, len(members))
    return matches
