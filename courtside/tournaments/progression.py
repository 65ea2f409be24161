"""
Progression — what happens after a match result is recorded.

Round states:
  open      at least one match in the round is not completed
  complete  every match is completed
  locked    complete, and a chronologically later round has a match

When a round completes:
- group round: once every group is complete, the top qualifiers of each
  group are paired into the first knockout round;
- knockout round: the winner of the match at order i fills slot (i mod 2) of
  match i // 2 in the next round, which is synthesized only if it does not
  exist yet;
- terminal round: the tournament is marked completed.

Only Unresolved slots are ever written, so re-running progression for the
same match is a no-op.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from courtside.errors import NotFoundError, StateError
from courtside.tournaments.base import (
    Known,
    Match,
    RoundDescriptor,
    Tournament,
    Unresolved,
    label_sort_key,
)
from courtside.tournaments.groups import knockout_entry_pairs
from courtside.tournaments.knockout import next_round_matches
from courtside.tournaments.standings import group_standings

if TYPE_CHECKING:
    from courtside.storage import Repository

logger = logging.getLogger(__name__)

RoundState = Literal["open", "complete", "locked"]

GROUP_STAGE_LABEL = "Group Stage"
COMPLETED_LABEL = "Completed"
NOT_SCHEDULED_LABEL = "Not Scheduled"


@dataclass
class ProgressionSummary:
    """What a single on_match_completed() call changed."""

    match_id: str
    round: RoundDescriptor
    winner_id: str | None = None
    round_complete: bool = False
    resolved_slots: int = 0
    next_round: str | None = None
    next_round_generated: bool = False
    knockout_seeded: bool = False
    tournament_complete: bool = False


# --------------------------------------------------------------------------- #
# Pure round-state helpers                                                     #
# --------------------------------------------------------------------------- #

def round_matches(matches: list[Match], round: RoundDescriptor) -> list[Match]:
    return sorted((m for m in matches if m.round == round), key=lambda m: m.order)


def round_state(matches: list[Match], round: RoundDescriptor) -> RoundState:
    in_round = round_matches(matches, round)
    if not in_round or not all(m.is_completed for m in in_round):
        return "open"
    if any(m.round.is_later_than(round) for m in matches):
        return "locked"
    return "complete"


def current_round(matches: list[Match]) -> str:
    """Label of the round currently in play, derived from match states."""
    if not matches:
        return NOT_SCHEDULED_LABEL
    open_rounds = sorted(
        {m.round for m in matches if not m.is_completed},
        key=lambda r: (r.sort_key, r.label),
    )
    if not open_rounds:
        return COMPLETED_LABEL
    if open_rounds[0].stage == "group":
        return GROUP_STAGE_LABEL
    return open_rounds[0].label


def round_winners(round: RoundDescriptor, in_round: list[Match]) -> list[str]:
    """Winners of a complete round in match order."""
    winners = [m.winner_id for m in in_round if m.winner_id is not None]
    if not winners:
        raise StateError(f"{round.label} is complete but has no winners")
    if len(winners) != len(in_round):
        raise StateError(
            f"{round.label} has {len(in_round) - len(winners)} completed match(es) without a winner"
        )
    return winners


# --------------------------------------------------------------------------- #
# Engine                                                                       #
# --------------------------------------------------------------------------- #

class ProgressionEngine:
    """
    Applies match-completion side effects through a Repository.

    Callers serialize access per tournament; the engine itself holds no
    locks and no state besides the repository handle.
    """

    def __init__(self, repository: Repository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    def round_state(self, tournament_id: str, round: RoundDescriptor) -> RoundState:
        self._repo.get_tournament(tournament_id)
        matches = self._repo.find_matches(tournament_id)
        if not any(m.round == round for m in matches):
            raise NotFoundError(f"Round not found: {round.label}")
        return round_state(matches, round)

    def find_round(
        self,
        tournament_id: str,
        stage: str,
        label: str,
        depth_from_final: int | None = None,
    ) -> RoundDescriptor:
        """The scheduled round with this stage and label (and depth, when given)."""
        self._repo.get_tournament(tournament_id)
        for m in self._repo.find_matches(tournament_id):
            r = m.round
            if r.stage == stage and r.label == label and depth_from_final in (None, r.depth_from_final):
                return r
        raise NotFoundError(f"Round not found: {stage} {label!r}")

    def is_round_locked(self, tournament_id: str, round: RoundDescriptor) -> bool:
        return self.round_state(tournament_id, round) == "locked"

    def current_round(self, tournament_id: str) -> str:
        self._repo.get_tournament(tournament_id)
        return current_round(self._repo.find_matches(tournament_id))

    # ------------------------------------------------------------------ #
    # Completion                                                           #
    # ------------------------------------------------------------------ #

    def on_match_completed(self, match_id: str) -> ProgressionSummary:
        done = self._repo.get_match(match_id)
        if not done.is_completed:
            raise StateError(f"Match {match_id} is not completed")
        winner = done.winner_id
        if winner is None:
            raise StateError(f"Match {match_id} has no winner")

        tournament = self._repo.get_tournament(done.tournament_id)
        matches = self._repo.find_matches(tournament.id)
        summary = ProgressionSummary(match_id=match_id, round=done.round, winner_id=winner)

        if round_state(matches, done.round) == "open":
            return summary
        summary.round_complete = True
        logger.info("%s complete in tournament %s", done.round.label, tournament.id)

        match done.round.stage:
            case "group":
                self._after_group_round(tournament, matches, summary)
            case "knockout":
                self._after_knockout_round(tournament, matches, done.round, summary)

        self._complete_if_finished(tournament, matches, done.round, summary)
        return summary

    def _after_group_round(
        self,
        tournament: Tournament,
        matches: list[Match],
        summary: ProgressionSummary,
    ) -> None:
        group_rounds = {m.round for m in matches if m.round.stage == "group"}
        if any(round_state(matches, r) == "open" for r in group_rounds):
            return
        knockout = [m for m in matches if m.round.stage == "knockout"]
        if not knockout:
            return

        k = tournament.top_per_group
        if k is None:
            raise StateError(
                f"Tournament {tournament.id} has a knockout stage but no recorded qualifiers per group"
            )

        participants = self._repo.list_participants(tournament.id)
        qualifiers_by_group: dict[str, list[str]] = {}
        labels = {m.group_label for m in matches if m.round.stage == "group"}
        for label in sorted(labels, key=label_sort_key):
            table = group_standings(participants, matches, label)
            if len(table) < k:
                raise StateError(f"Group {label} has {len(table)} member(s); {k} must qualify")
            qualifiers_by_group[label] = [s.participant.id for s in table[:k]]

        pairs = knockout_entry_pairs(qualifiers_by_group, k)
        first_round = min({m.round for m in knockout}, key=lambda r: r.sort_key)
        targets = round_matches(knockout, first_round)
        if len(targets) != len(pairs):
            raise StateError(
                f"{first_round.label} has {len(targets)} match(es) for {len(pairs)} qualifier pair(s)"
            )

        updated = []
        for target, (a, b) in zip(targets, pairs):
            filled = _fill(target, 0, a) + _fill(target, 1, b)
            if filled:
                summary.resolved_slots += filled
                updated.append(target)
        if updated:
            self._repo.update_matches(updated)

        summary.knockout_seeded = True
        summary.next_round = first_round.label
        logger.info(
            "Seeded %s of %s from %d group(s): %d slot(s) resolved",
            first_round.label,
            tournament.id,
            len(qualifiers_by_group),
            summary.resolved_slots,
        )

    def _after_knockout_round(
        self,
        tournament: Tournament,
        matches: list[Match],
        completed: RoundDescriptor,
        summary: ProgressionSummary,
    ) -> None:
        feeders = round_matches(matches, completed)
        winners = round_winners(completed, feeders)
        if completed.is_final:
            return

        next_depth = (completed.depth_from_final or 1) - 1
        knockout = [m for m in matches if m.round.stage == "knockout"]
        targets = sorted(
            (m for m in knockout if m.round.depth_from_final == next_depth),
            key=lambda m: m.order,
        )

        if not targets:
            total_rounds = max(m.round.depth_from_final or 1 for m in knockout)
            generated = next_round_matches(tournament.id, completed, winners, total_rounds)
            self._repo.insert_matches(generated)
            summary.next_round_generated = True
            summary.resolved_slots = 2 * len(generated)
            summary.next_round = generated[0].round.label if generated else None
            logger.warning(
                "%s missing in tournament %s; synthesized %d match(es)",
                summary.next_round,
                tournament.id,
                len(generated),
            )
            return

        by_order = {m.order: m for m in targets}
        updated: dict[str, Match] = {}
        for feeder, winner in zip(feeders, winners):
            target = by_order.get(feeder.order // 2)
            if target is None:
                raise StateError(
                    f"{targets[0].round.label} has no slot for the winner of {feeder.id}"
                )
            if _fill(target, feeder.order % 2, winner):
                summary.resolved_slots += 1
                updated[target.id] = target
        if updated:
            self._repo.update_matches(list(updated.values()))

        summary.next_round = targets[0].round.label
        logger.info(
            "Advanced %d winner(s) from %s into %s (%d slot(s) resolved)",
            len(winners),
            completed.label,
            summary.next_round,
            summary.resolved_slots,
        )

    def _complete_if_finished(
        self,
        tournament: Tournament,
        matches: list[Match],
        completed: RoundDescriptor,
        summary: ProgressionSummary,
    ) -> None:
        if tournament.status in ("completed", "cancelled"):
            return
        if tournament.format in ("knockout", "composite"):
            finished = completed.is_final
        else:
            finished = all(m.is_completed for m in matches)
        if not finished:
            return

        tournament.status = "completed"
        self._repo.save_tournament(tournament)
        summary.tournament_complete = True
        logger.info("Tournament %s completed", tournament.id)


def _fill(match: Match, slot_index: int, participant_id: str) -> int:
    """Write participant_id into an Unresolved slot; returns 1 if written."""
    attr = "slot_a" if slot_index == 0 else "slot_b"
    if not isinstance(getattr(match, attr), Unresolved):
        return 0
    setattr(match, attr, Known(participant_id))
    return 1
