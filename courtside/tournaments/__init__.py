"""
Tournament package.

generate_fixtures() is the single entry point for building any format's
initial match set; ProgressionEngine applies results afterwards.

To add a new format:
  1. Create courtside/tournaments/<name>.py returning a list of Match
  2. Add it to FORMATS in base.py and a case in fixtures.generate_fixtures()
"""

from __future__ import annotations

from courtside.tournaments.base import (
    FORMATS,
    UNRESOLVED,
    Known,
    Match,
    Participant,
    RoundDescriptor,
    Rules,
    Score,
    Slot,
    Standing,
    StandingStats,
    Tournament,
    TournamentFormat,
    Unresolved,
)
from courtside.tournaments.events import (
    EventName,
    MatchCompletedEvent,
    MatchStartedEvent,
    ScoreUpdatedEvent,
    TournamentEvent,
    TournamentLiveEvent,
)
from courtside.tournaments.fixtures import FixtureOptions, generate_fixtures
from courtside.tournaments.progression import ProgressionEngine, ProgressionSummary
from courtside.tournaments.standings import group_standings, standings_for

__all__ = [
    # Base types
    "FORMATS",
    "UNRESOLVED",
    "Known",
    "Match",
    "Participant",
    "RoundDescriptor",
    "Rules",
    "Score",
    "Slot",
    "Standing",
    "StandingStats",
    "Tournament",
    "TournamentFormat",
    "Unresolved",
    # Events
    "EventName",
    "TournamentEvent",
    "MatchStartedEvent",
    "ScoreUpdatedEvent",
    "MatchCompletedEvent",
    "TournamentLiveEvent",
    # Fixtures, standings, progression
    "FixtureOptions",
    "generate_fixtures",
    "group_standings",
    "standings_for",
    "ProgressionEngine",
    "ProgressionSummary",
]
