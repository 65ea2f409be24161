"""
Tournament data model — shared types used by fixture generation, standings
and progression.

Slots are tagged values (Known | Unresolved) rather than nullable ids so
"opponent not decided yet" is never confused with "no opponent".  Rounds are
structured descriptors; nothing in the engine parses label strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from courtside.errors import ValidationError

ParticipantMode = Literal["singles", "doubles"]
TournamentFormat = Literal["round_robin", "group", "knockout", "composite"]
TournamentStatus = Literal["draft", "live", "completed", "cancelled"]
MatchStatus = Literal["upcoming", "live", "completed"]
Stage = Literal["group", "knockout", "round_robin"]
ScoringSystem = Literal["rally", "pickleball"]

FORMATS: tuple[TournamentFormat, ...] = ("round_robin", "group", "knockout", "composite")
TOURNAMENT_STATUSES: tuple[TournamentStatus, ...] = ("draft", "live", "completed", "cancelled")
MATCH_STATUSES: tuple[MatchStatus, ...] = ("upcoming", "live", "completed")
WINNING_SCORES = (11, 15)
SCORING_SYSTEMS: tuple[ScoringSystem, ...] = ("rally", "pickleball")


# --------------------------------------------------------------------------- #
# Slots                                                                        #
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class Known:
    """A slot whose occupant is decided."""

    participant_id: str


@dataclass(frozen=True)
class Unresolved:
    """A slot waiting on the outcome of an earlier match."""


UNRESOLVED = Unresolved()

Slot = Known | Unresolved


def slot_id(slot: Slot) -> str | None:
    return slot.participant_id if isinstance(slot, Known) else None


# --------------------------------------------------------------------------- #
# Rounds                                                                       #
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class RoundDescriptor:
    """
    Identifies a round.  Equality is structural, so two descriptors with the
    same stage, label and depth refer to the same round.

    depth_from_final is only set for knockout rounds: Final = 1,
    Semi Finals = 2, and so on.
    """

    stage: Stage
    label: str
    depth_from_final: int | None = None

    @property
    def sort_key(self) -> tuple[int, int]:
        """Chronological ordering: group/round-robin rounds first, then knockout by depth."""
        if self.stage == "knockout":
            return (1, -(self.depth_from_final or 0))
        return (0, 0)

    @property
    def is_final(self) -> bool:
        return self.stage == "knockout" and self.depth_from_final == 1

    def is_later_than(self, other: RoundDescriptor) -> bool:
        return self.sort_key > other.sort_key


ROUND_ROBIN_ROUND = RoundDescriptor(stage="round_robin", label="Round Robin")


def group_round(group_label: str) -> RoundDescriptor:
    return RoundDescriptor(stage="group", label=f"Group {group_label}")


def knockout_round(depth_from_final: int, total_rounds: int) -> RoundDescriptor:
    return RoundDescriptor(
        stage="knockout",
        label=knockout_round_label(depth_from_final, total_rounds),
        depth_from_final=depth_from_final,
    )


_DEPTH_LABELS = {
    1: "Final",
    2: "Semi Finals",
    3: "Quarter Finals",
    4: "Round of 16",
    5: "Round of 32",
}


def knockout_round_label(depth_from_final: int, total_rounds: int) -> str:
    """Human-readable name; rounds deeper than 32 use their chronological number."""
    if depth_from_final in _DEPTH_LABELS:
        return _DEPTH_LABELS[depth_from_final]
    return f"Round {total_rounds - depth_from_final + 1}"


# --------------------------------------------------------------------------- #
# Entities                                                                     #
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class Rules:
    winning_score: int = 11
    scoring_system: ScoringSystem = "rally"

    def validate(self) -> None:
        if self.winning_score not in WINNING_SCORES:
            raise ValidationError(
                f"rules.winning_score must be one of {WINNING_SCORES}, got {self.winning_score!r}"
            )
        if self.scoring_system not in SCORING_SYSTEMS:
            raise ValidationError(
                f"rules.scoring_system must be one of {SCORING_SYSTEMS}, "
                f"got {self.scoring_system!r}"
            )


@dataclass
class Tournament:
    id: str
    name: str
    participant_mode: ParticipantMode
    format: TournamentFormat
    status: TournamentStatus = "draft"
    rules: Rules = field(default_factory=Rules)
    # Qualifiers per group, fixed when composite fixtures are generated.
    top_per_group: int | None = None


@dataclass
class Participant:
    id: str
    display_name: str
    roster: tuple[str, ...] = ()

    def validate_roster(self, mode: ParticipantMode) -> None:
        expected = 1 if mode == "singles" else 2
        if len(self.roster) != expected:
            raise ValidationError(
                f"{mode} participant {self.display_name!r} needs {expected} player name(s), "
                f"got {len(self.roster)}"
            )
        if any(not name.strip() for name in self.roster):
            raise ValidationError(f"Participant {self.display_name!r} has a blank player name")


@dataclass(frozen=True)
class Score:
    a: int = 0
    b: int = 0


@dataclass
class Match:
    """A single fixture.  order is the 0-based position within its round."""

    id: str
    tournament_id: str
    round: RoundDescriptor
    slot_a: Slot = UNRESOLVED
    slot_b: Slot = UNRESOLVED
    order: int = 0
    group_label: str | None = None
    score: Score = field(default_factory=Score)
    status: MatchStatus = "upcoming"
    court_number: int | None = None

    @property
    def is_resolved(self) -> bool:
        return isinstance(self.slot_a, Known) and isinstance(self.slot_b, Known)

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    @property
    def participant_ids(self) -> tuple[str, ...]:
        return tuple(pid for pid in (slot_id(self.slot_a), slot_id(self.slot_b)) if pid)

    def involves(self, participant_id: str) -> bool:
        return participant_id in self.participant_ids

    @property
    def winner_id(self) -> str | None:
        """Winner of a completed, resolved match; None otherwise."""
        if not self.is_completed or not self.is_resolved:
            return None
        if self.score.a > self.score.b:
            return slot_id(self.slot_a)
        if self.score.b > self.score.a:
            return slot_id(self.slot_b)
        return None


# --------------------------------------------------------------------------- #
# Standings                                                                    #
# --------------------------------------------------------------------------- #

@dataclass
class StandingStats:
    matches_played: int = 0
    wins: int = 0
    losses: int = 0
    points_for: int = 0
    points_against: int = 0
    point_difference: int = 0
    win_rate: float = 0.0


@dataclass
class Standing:
    participant: Participant
    stats: StandingStats = field(default_factory=StandingStats)
    position: int = 0


def label_sort_key(label: str) -> tuple[int, str]:
    """Group labels in issue order: A..Z, then AA, AB, …"""
    return len(label), label


def match_sort_key(match: Match) -> tuple:
    return (match.round.sort_key, label_sort_key(match.group_label or ""), match.order)


def match_id(tournament_id: str, code: str) -> str:
    """Deterministic match id, e.g. "t1:SF-2"."""
    return f"{tournament_id}:{code}" if tournament_id else code


def ensure_unique_participants(participants: list[Participant], minimum: int, what: str) -> None:
    if len(participants) < minimum:
        raise ValidationError(f"{what} requires at least {minimum} participants, got {len(participants)}")
    seen: set[str] = set()
    for p in participants:
        if p.id in seen:
            raise ValidationError(f"Duplicate participant id: {p.id!r}")
        seen.add(p.id)
