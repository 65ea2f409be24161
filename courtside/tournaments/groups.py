"""
Group allocation and cross-group pairing.

distribute() is deterministic for a given input order; callers that want a
random draw shuffle the participants with their own random.Random first.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Mapping, Sequence, TypeVar

from courtside.errors import StateError, ValidationError
from courtside.tournaments.base import label_sort_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


def group_label(index: int) -> str:
    """0 → "A", 25 → "Z", 26 → "AA", spreadsheet-style."""
    label = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        label = chr(ord("A") + rem) + label
    return label


def distribute(participants: Sequence[T], num_groups: int) -> list[list[T]]:
    """
    Split participants into num_groups groups whose sizes differ by at most 1.
    The first N mod num_groups groups take the extra participant.
    """
    n = len(participants)
    if num_groups < 1:
        raise ValidationError(f"Number of groups must be at least 1, got {num_groups}")
    if num_groups * 2 > n:
        raise ValidationError(
            f"{num_groups} groups need at least {num_groups * 2} participants, got {n}"
        )

    base, extra = divmod(n, num_groups)
    groups: list[list[T]] = []
    start = 0
    for i in range(num_groups):
        size = base + (1 if i < extra else 0)
        groups.append(list(participants[start:start + size]))
        start += size
    return groups


def groups_for_size_hint(n: int, group_size: int) -> int:
    """Number of groups implied by a preferred group size, never leaving a group of one."""
    if group_size < 2:
        raise ValidationError(f"Group size must be at least 2, got {group_size}")
    return max(1, min(-(-n // group_size), n // 2))


# --------------------------------------------------------------------------- #
# Knockout entry pairings                                                      #
# --------------------------------------------------------------------------- #

def crossover_pairing(
    qualifiers_by_group: Mapping[str, Sequence[str]],
    top_per_group: int,
) -> list[tuple[str, str]]:
    """
    Pair group qualifiers for the first knockout round so nobody meets a
    team from their own group.

    qualifiers_by_group maps a group label to its qualifiers in finishing
    order.  Returns (slot_a, slot_b) participant id pairs in bracket order.
    """
    groups = sorted(qualifiers_by_group, key=label_sort_key)
    for label in groups:
        if len(qualifiers_by_group[label]) != top_per_group:
            raise ValidationError(
                f"Group {label} has {len(qualifiers_by_group[label])} qualifiers, "
                f"expected {top_per_group}"
            )
    total = len(groups) * top_per_group
    if total < 2 or total % 2:
        raise ValidationError(f"Cannot pair {total} qualifiers")

    if len(groups) == 4 and top_per_group == 2:
        a, b, c, d = (qualifiers_by_group[label] for label in groups)
        return [(a[0], d[1]), (a[1], d[0]), (b[0], c[1]), (b[1], c[0])]

    # Position-major rank order: every group winner, then every runner-up, …
    seeded = [
        (label, qualifiers_by_group[label][pos])
        for pos in range(top_per_group)
        for label in groups
    ]

    largest = max(Counter(label for label, _ in seeded).values())
    if largest * 2 > total:
        raise StateError(
            f"No pairing of {total} qualifiers avoids same-group matches "
            f"({largest} come from one group)"
        )

    pairs = _pair_avoiding_groups(seeded)
    if pairs is None:
        raise StateError(f"No same-group-free pairing exists for {total} qualifiers")
    logger.debug("Crossover pairing for %d qualifiers: %s", total, pairs)
    return pairs


def _pair_avoiding_groups(
    seeded: list[tuple[str, str]],
) -> list[tuple[str, str]] | None:
    """
    Pair neighbours in rank order.  The top remaining seed takes the next
    candidate from another group; a dead end backtracks to the next one.
    """
    if not seeded:
        return []
    (label, top), rest = seeded[0], seeded[1:]
    for idx in range(len(rest)):
        opponent_label, opponent = rest[idx]
        if opponent_label == label:
            continue
        remainder = _pair_avoiding_groups(rest[:idx] + rest[idx + 1:])
        if remainder is not None:
            return [(top, opponent)] + remainder
    return None


def knockout_entry_pairs(
    qualifiers_by_group: Mapping[str, Sequence[str]],
    top_per_group: int,
) -> list[tuple[str, str]]:
    """
    Pairings for the first knockout round after the group stage.

    Two qualifiers (direct final) and single-group stages are seeded
    directly; every other shape goes through crossover_pairing().
    """
    groups = sorted(qualifiers_by_group, key=label_sort_key)
    ranked = [
        qualifiers_by_group[label][pos]
        for pos in range(top_per_group)
        for label in groups
        if pos < len(qualifiers_by_group[label])
    ]
    if len(ranked) == 2 or len(groups) == 1:
        return direct_seeding(ranked)
    return crossover_pairing(qualifiers_by_group, top_per_group)


def direct_seeding(ranked: Sequence[str]) -> list[tuple[str, str]]:
    """1 v N, 2 v N-1, … — used for direct finals and single-group knockouts."""
    if len(ranked) < 2 or len(ranked) % 2:
        raise ValidationError(f"Cannot seed {len(ranked)} qualifiers into pairs")
    half = len(ranked) // 2
    return [(ranked[i], ranked[-1 - i]) for i in range(half)]
