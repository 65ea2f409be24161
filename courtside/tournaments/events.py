"""
Tournament event dataclasses — what the service publishes to the
notification sink after a state transition.

All events are frozen and carry a snapshot of the entity they describe, so
they are safe to hand across threads and to serialise after the fact.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Literal

from courtside.tournaments.base import Match, Tournament
from courtside.tournaments.progression import ProgressionSummary

EventName = Literal["match_started", "score_updated", "match_completed", "tournament_live"]


@dataclass(frozen=True)
class MatchStartedEvent:
    """A match moved to live."""

    name: ClassVar[EventName] = "match_started"

    tournament_id: str
    match: Match
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class ScoreUpdatedEvent:
    """Running score changed on a live match."""

    name: ClassVar[EventName] = "score_updated"

    tournament_id: str
    match: Match
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class MatchCompletedEvent:
    """A result was recorded; progression has already been applied."""

    name: ClassVar[EventName] = "match_completed"

    tournament_id: str
    match: Match
    winner_id: str | None
    progression: ProgressionSummary
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class TournamentLiveEvent:
    name: ClassVar[EventName] = "tournament_live"

    tournament_id: str
    tournament: Tournament
    timestamp: datetime = field(default_factory=datetime.now)


# Union type for type-safe pattern matching in consumers
TournamentEvent = (
    MatchStartedEvent
    | ScoreUpdatedEvent
    | MatchCompletedEvent
    | TournamentLiveEvent
)
