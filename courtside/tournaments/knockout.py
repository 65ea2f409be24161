"""
Knock-out (single-elimination) fixtures.

Rules:
- The bracket is padded to the next power of two; the top seeds receive the
  byes and enter in round 2.
- Round 1 pairs the remaining participants sequentially in seed order.
- Every later round is created up front.  Slots are Unresolved until the
  feeding match completes, except where a bye participant is already known.
- Winner of match i in a round feeds slot (i mod 2) of match i // 2 in the
  next round.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Sequence

from courtside.errors import StateError, ValidationError
from courtside.tournaments.base import (
    UNRESOLVED,
    Known,
    Match,
    Participant,
    RoundDescriptor,
    Slot,
    ensure_unique_participants,
    knockout_round,
    match_id,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BracketPlan:
    """Sizing and first-round layout of a knockout bracket."""

    bracket_size: int
    byes: int
    total_rounds: int
    bye_ids: tuple[str, ...]
    first_round: tuple[tuple[str, str], ...]


def knockout(
    tournament_id: str,
    participants: list[Participant],
    seeding: Sequence[str] | None = None,
    rng: random.Random | None = None,
) -> list[Match]:
    """Build round 1 plus every later round of a single-elimination bracket."""
    plan = plan_bracket(participants, seeding=seeding, rng=rng)
    depth = plan.total_rounds
    round_desc = knockout_round(depth, plan.total_rounds)

    matches = [
        Match(
            id=match_id(tournament_id, _match_code(depth, plan.total_rounds, i)),
            tournament_id=tournament_id,
            round=round_desc,
            slot_a=Known(a),
            slot_b=Known(b),
            order=i,
        )
        for i, (a, b) in enumerate(plan.first_round)
    ]

    # Round-1 winners take the leading slots of round 2, byes fill the rest.
    entrants: list[Slot] = [UNRESOLVED] * len(plan.first_round)
    entrants += [Known(pid) for pid in plan.bye_ids]
    matches += _later_rounds(tournament_id, entrants, depth - 1, plan.total_rounds)

    logger.info(
        "Knockout bracket for %s: %d participants, bracket %d, %d bye(s), %d round(s)",
        tournament_id or "<draft>",
        len(participants),
        plan.bracket_size,
        plan.byes,
        plan.total_rounds,
    )
    return matches


def knockout_shell(tournament_id: str, entrant_count: int) -> list[Match]:
    """All knockout rounds for entrant_count qualifiers, every slot Unresolved."""
    if entrant_count < 2 or entrant_count & (entrant_count - 1):
        raise ValidationError(
            f"Knockout stage needs a power-of-two number of qualifiers, got {entrant_count}"
        )
    total_rounds = int(math.log2(entrant_count))
    return _later_rounds(tournament_id, [UNRESOLVED] * entrant_count, total_rounds, total_rounds)


def plan_bracket(
    participants: list[Participant],
    seeding: Sequence[str] | None = None,
    rng: random.Random | None = None,
) -> BracketPlan:
    ensure_unique_participants(participants, 2, "Knockout")
    n = len(participants)
    bracket_size = _next_power_of_two(n)
    byes = bracket_size - n
    ranked = rank_participants(participants, seeding=seeding, rng=rng)
    playing = ranked[byes:]
    return BracketPlan(
        bracket_size=bracket_size,
        byes=byes,
        total_rounds=int(math.log2(bracket_size)),
        bye_ids=tuple(ranked[:byes]),
        first_round=tuple((playing[i], playing[i + 1]) for i in range(0, len(playing), 2)),
    )


def rank_participants(
    participants: list[Participant],
    seeding: Sequence[str] | None = None,
    rng: random.Random | None = None,
) -> list[str]:
    """
    Participant ids in seed order (top seed first).

    An explicit seeding list wins; participants it leaves out follow in
    input order.  Without one, rng shuffles; without either, input order
    is the seed order.
    """
    ids = [p.id for p in participants]
    if seeding is not None:
        known = set(ids)
        seen: set[str] = set()
        for pid in seeding:
            if pid not in known:
                raise ValidationError(f"Seeding references unknown participant {pid!r}")
            if pid in seen:
                raise ValidationError(f"Seeding lists participant {pid!r} twice")
            seen.add(pid)
        return list(seeding) + [pid for pid in ids if pid not in seen]
    if rng is not None:
        shuffled = list(ids)
        rng.shuffle(shuffled)
        return shuffled
    return ids


def next_round_matches(
    tournament_id: str,
    completed_round: RoundDescriptor,
    winner_ids: list[str],
    total_rounds: int,
) -> list[Match]:
    """
    Synthesize the round after completed_round from its winners.  Only used
    when the pre-created round is missing.
    """
    depth = (completed_round.depth_from_final or 1) - 1
    if depth < 1:
        return []
    if len(winner_ids) % 2:
        raise StateError(
            f"{completed_round.label} produced {len(winner_ids)} winners; cannot pair an odd count"
        )
    round_desc = knockout_round(depth, total_rounds)
    matches = []
    for i in range(len(winner_ids) // 2):
        matches.append(
            Match(
                id=match_id(tournament_id, _match_code(depth, total_rounds, i)),
                tournament_id=tournament_id,
                round=round_desc,
                slot_a=Known(winner_ids[2 * i]),
                slot_b=Known(winner_ids[2 * i + 1]),
                order=i,
            )
        )
    return matches


# ------------------------------------------------------------------ #
# Bracket helpers                                                     #
# ------------------------------------------------------------------ #

def _next_power_of_two(n: int) -> int:
    return 1 << math.ceil(math.log2(max(n, 2)))


def _later_rounds(
    tournament_id: str,
    entrants: list[Slot],
    depth: int,
    total_rounds: int,
) -> list[Match]:
    matches: list[Match] = []
    while depth >= 1 and len(entrants) > 1:
        round_desc = knockout_round(depth, total_rounds)
        count = len(entrants) // 2
        for i in range(count):
            matches.append(
                Match(
                    id=match_id(tournament_id, _match_code(depth, total_rounds, i)),
                    tournament_id=tournament_id,
                    round=round_desc,
                    slot_a=entrants[2 * i],
                    slot_b=entrants[2 * i + 1],
                    order=i,
                )
            )
        entrants = [UNRESOLVED] * count
        depth -= 1
    return matches


def _match_code(depth: int, total_rounds: int, index: int) -> str:
    """Short match code: "F", "SF-1", "QF-3", "R1-M5"."""
    if depth == 1:
        return "F"
    if depth == 2:
        return f"SF-{index + 1}"
    if depth == 3:
        return f"QF-{index + 1}"
    return f"R{total_rounds - depth + 1}-M{index + 1}"
