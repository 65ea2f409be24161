"""
Fixture generation entry point — dispatches on tournament format.

Pure: returns Match objects and never touches storage.  The caller persists
them (TournamentService does so in one bulk insert).
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Sequence

from courtside.errors import ValidationError
from courtside.tournaments.base import (
    FORMATS,
    Match,
    Participant,
    TournamentFormat,
    ensure_unique_participants,
)
from courtside.tournaments.knockout import knockout, knockout_shell
from courtside.tournaments.round_robin import (
    DEFAULT_GROUP_SIZE,
    allocate_groups,
    group_round_robins,
    round_robin,
)

logger = logging.getLogger(__name__)


@dataclass
class FixtureOptions:
    num_groups: int | None = None
    group_size: int = DEFAULT_GROUP_SIZE
    top_per_group: int = 2            # composite only
    seeding: Sequence[str] | None = None
    # Shuffles knockout seeding and group draws.  None keeps input order.
    rng: random.Random | None = None


def generate_fixtures(
    tournament_id: str,
    format: TournamentFormat,
    participants: list[Participant],
    options: FixtureOptions | None = None,
) -> list[Match]:
    """
    Build the initial match set for a tournament.

    Args:
        format:  "round_robin" | "group" | "knockout" | "composite"
        options: grouping, seeding and random-source settings
    """
    options = options or FixtureOptions()
    if not participants:
        raise ValidationError("Participants list is required")
    ensure_unique_participants(participants, 2, "Fixture generation")

    match format:
        case "round_robin":
            matches = round_robin(tournament_id, participants)
        case "group":
            matches = group_round_robins(tournament_id, _draw_groups(participants, options))
        case "knockout":
            matches = knockout(tournament_id, participants, seeding=options.seeding, rng=options.rng)
        case "composite":
            matches = composite(tournament_id, participants, options)
        case _:
            raise ValidationError(
                f"Unknown tournament format: {format!r}. Valid formats: {', '.join(FORMATS)}"
            )

    if has_duplicate_matches(matches):
        raise ValidationError("Duplicate matches detected in generated fixtures")
    logger.info("Generated %d %s fixture(s) for %s", len(matches), format, tournament_id)
    return matches


def composite(
    tournament_id: str,
    participants: list[Participant],
    options: FixtureOptions,
) -> list[Match]:
    """Group stage followed by a pre-created knockout for the group qualifiers."""
    groups = _draw_groups(participants, options)
    k = options.top_per_group
    if k < 1:
        raise ValidationError(f"top_per_group must be at least 1, got {k}")
    smallest = min(len(members) for members in groups.values())
    if k > smallest:
        raise ValidationError(
            f"top_per_group={k} exceeds the smallest group size ({smallest})"
        )
    return group_round_robins(tournament_id, groups) + knockout_shell(tournament_id, len(groups) * k)


def has_duplicate_matches(matches: list[Match]) -> bool:
    """True if the same resolved pairing appears twice in one round."""
    seen: set[tuple] = set()
    for m in matches:
        if not m.is_resolved:
            continue
        key = (m.round, frozenset(m.participant_ids))
        if key in seen:
            return True
        seen.add(key)
    return False


def _draw_groups(
    participants: list[Participant],
    options: FixtureOptions,
) -> dict[str, list[Participant]]:
    pool = list(participants)
    if options.rng is not None:
        options.rng.shuffle(pool)
    return allocate_groups(pool, options.num_groups, options.group_size)
