"""
TournamentService — the operations exposed to adapters (web app, CLI).

Every mutating operation runs under the tournament's lock, re-reads state
from the repository inside it and validates before the first write.
Notifications go out after the lock is released.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from typing import Sequence

from courtside.config import Config
from courtside.errors import NotFoundError, StateError, ValidationError
from courtside.notifications import NotificationSink, NullSink, publish_safely
from courtside.storage import Repository
from courtside.tournaments.base import (
    FORMATS,
    MATCH_STATUSES,
    TOURNAMENT_STATUSES,
    Match,
    MatchStatus,
    Participant,
    ParticipantMode,
    RoundDescriptor,
    Rules,
    Score,
    Standing,
    Tournament,
    TournamentFormat,
    TournamentStatus,
)
from courtside.tournaments.events import (
    MatchCompletedEvent,
    MatchStartedEvent,
    ScoreUpdatedEvent,
    TournamentEvent,
    TournamentLiveEvent,
)
from courtside.tournaments.fixtures import FixtureOptions, generate_fixtures
from courtside.tournaments.progression import ProgressionEngine, ProgressionSummary
from courtside.tournaments.standings import group_standings, standings_for

logger = logging.getLogger(__name__)

PARTICIPANT_MODES: tuple[ParticipantMode, ...] = ("singles", "doubles")

# Forward-only status machine; setting the current status again is a no-op.
_TRANSITIONS: dict[TournamentStatus, tuple[TournamentStatus, ...]] = {
    "draft": ("live", "cancelled"),
    "live": ("completed", "cancelled"),
    "completed": (),
    "cancelled": (),
}


@dataclass
class MatchResultRecord:
    match: Match
    progression: ProgressionSummary


class TournamentLocks:
    """One re-entrant lock per tournament id, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def __call__(self, tournament_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(tournament_id)
            if lock is None:
                lock = self._locks[tournament_id] = threading.RLock()
            return lock


class TournamentService:
    def __init__(
        self,
        repository: Repository,
        sink: NotificationSink | None = None,
        config: Config | None = None,
    ) -> None:
        self.repository = repository
        self.sink = sink or NullSink()
        self.config = config or Config()
        self.engine = ProgressionEngine(repository)
        self._locks = TournamentLocks()

    # ------------------------------------------------------------------ #
    # Tournaments & participants                                          #
    # ------------------------------------------------------------------ #

    def create_tournament(
        self,
        name: str,
        participant_mode: ParticipantMode,
        format: TournamentFormat,
        rules: Rules | None = None,
        tournament_id: str | None = None,
    ) -> Tournament:
        if not name or not name.strip():
            raise ValidationError("Tournament name is required")
        if participant_mode not in PARTICIPANT_MODES:
            raise ValidationError(
                f"Unknown participant mode {participant_mode!r}. Valid modes: {', '.join(PARTICIPANT_MODES)}"
            )
        if format not in FORMATS:
            raise ValidationError(
                f"Unknown tournament format: {format!r}. Valid formats: {', '.join(FORMATS)}"
            )
        rules = rules or self.config.rules
        rules.validate()

        tournament = Tournament(
            id=tournament_id or uuid.uuid4().hex[:12],
            name=name.strip(),
            participant_mode=participant_mode,
            format=format,
            rules=rules,
        )
        with self._locks(tournament.id):
            try:
                self.repository.get_tournament(tournament.id)
            except NotFoundError:
                pass
            else:
                raise StateError(f"Tournament already exists: {tournament.id}")
            self.repository.save_tournament(tournament)
        logger.info("Created %s tournament %s (%s)", format, tournament.id, tournament.name)
        return tournament

    def get_tournament(self, tournament_id: str) -> Tournament:
        return self.repository.get_tournament(tournament_id)

    def update_tournament(
        self,
        tournament_id: str,
        name: str | None = None,
        rules: Rules | None = None,
    ) -> Tournament:
        """Rename a draft tournament or change its rules."""
        if name is not None and not name.strip():
            raise ValidationError("Tournament name is required")
        if rules is not None:
            rules.validate()

        with self._locks(tournament_id):
            tournament = self.repository.get_tournament(tournament_id)
            if tournament.status != "draft":
                raise StateError(f"Tournament {tournament_id} is {tournament.status}; only drafts can be edited")
            if name is not None:
                tournament.name = name.strip()
            if rules is not None:
                tournament.rules = rules
            self.repository.save_tournament(tournament)
        logger.info("Updated tournament %s (%s)", tournament_id, tournament.name)
        return tournament

    def add_participant(
        self,
        tournament_id: str,
        display_name: str,
        roster: Sequence[str] | None = None,
        participant_id: str | None = None,
    ) -> Participant:
        """
        Register a participant.  roster defaults to the display name for
        singles; doubles must name both players.
        """
        if not display_name or not display_name.strip():
            raise ValidationError("Participant display name is required")
        display_name = display_name.strip()
        participant = Participant(
            id=participant_id or uuid.uuid4().hex[:12],
            display_name=display_name,
            roster=tuple(r.strip() for r in roster) if roster is not None else (display_name,),
        )

        with self._locks(tournament_id):
            tournament = self.repository.get_tournament(tournament_id)
            participant.validate_roster(tournament.participant_mode)
            if tournament.status != "draft":
                raise StateError(f"Tournament {tournament_id} is {tournament.status}; participants are closed")
            if self.repository.count_matches(tournament_id):
                raise StateError(f"Fixtures already generated for {tournament_id}")
            self.repository.add_participants(tournament_id, [participant])
        return participant

    def list_participants(self, tournament_id: str) -> list[Participant]:
        return self.repository.list_participants(tournament_id)

    def remove_participant(self, tournament_id: str, participant_id: str) -> None:
        """Withdraw a draft participant who is not scheduled in any match."""
        with self._locks(tournament_id):
            tournament = self.repository.get_tournament(tournament_id)
            self.repository.get_participant(tournament_id, participant_id)
            if tournament.status != "draft":
                raise StateError(f"Tournament {tournament_id} is {tournament.status}; participants are closed")
            scheduled = [
                m.id for m in self.repository.find_matches(tournament_id) if m.involves(participant_id)
            ]
            if scheduled:
                raise StateError(
                    f"Participant {participant_id} is scheduled in {len(scheduled)} match(es)"
                )
            self.repository.remove_participant(tournament_id, participant_id)
        logger.info("Removed participant %s from %s", participant_id, tournament_id)

    # ------------------------------------------------------------------ #
    # Fixtures                                                             #
    # ------------------------------------------------------------------ #

    def generate_fixtures(
        self,
        tournament_id: str,
        format: TournamentFormat | None = None,
        participants: Sequence[Participant | str] | None = None,
        options: FixtureOptions | None = None,
    ) -> list[Match]:
        """
        Generate and persist the initial match set.

        Args:
            format:       must match the tournament's format when given
            participants: registered participants (or their ids) to draw,
                          in seed order; defaults to everyone registered
            options:      defaults come from the fixtures config section
        """
        options = options or self.config.fixture_options()

        with self._locks(tournament_id):
            tournament = self.repository.get_tournament(tournament_id)
            if format is not None and format != tournament.format:
                raise ValidationError(
                    f"Tournament {tournament_id} is {tournament.format}, not {format}"
                )
            if tournament.status != "draft":
                raise StateError(f"Tournament {tournament_id} is {tournament.status}; fixtures are fixed")
            if self.repository.count_matches(tournament_id):
                raise StateError(f"Fixtures already generated for {tournament_id}")

            pool = self._resolve_pool(tournament, participants)
            matches = generate_fixtures(tournament_id, tournament.format, pool, options)

            self.repository.insert_matches(matches)
            if tournament.format == "composite":
                tournament.top_per_group = options.top_per_group
                self.repository.save_tournament(tournament)
        return matches

    def _resolve_pool(
        self,
        tournament: Tournament,
        participants: Sequence[Participant | str] | None,
    ) -> list[Participant]:
        registered = self.repository.list_participants(tournament.id)
        if participants is None:
            pool = registered
        else:
            by_id = {p.id: p for p in registered}
            pool = []
            for entry in participants:
                pid = entry if isinstance(entry, str) else entry.id
                if pid not in by_id:
                    raise NotFoundError(f"Participant not found: {pid}")
                pool.append(by_id[pid])
        for p in pool:
            p.validate_roster(tournament.participant_mode)
        return pool

    def delete_match(self, match_id: str) -> None:
        tournament_id = self.repository.get_match(match_id).tournament_id
        with self._locks(tournament_id):
            match = self.repository.get_match(match_id)
            tournament = self.repository.get_tournament(tournament_id)
            if tournament.status != "draft":
                raise StateError(f"Matches can only be deleted while {tournament_id} is in draft")
            if self.engine.is_round_locked(tournament_id, match.round):
                raise StateError(f"{match.round.label} is locked")
            if match.round.stage == "knockout" and any(
                m.round.stage == "knockout" and m.round.is_later_than(match.round)
                for m in self.repository.find_matches(tournament_id)
            ):
                raise StateError(f"Match {match_id} feeds a later knockout round")
            self.repository.delete_match(match_id)
        logger.info("Deleted match %s", match_id)

    def list_matches(
        self,
        tournament_id: str,
        round: RoundDescriptor | None = None,
        status: MatchStatus | None = None,
        group_label: str | None = None,
    ) -> list[Match]:
        if status is not None and status not in MATCH_STATUSES:
            raise ValidationError(
                f"Unknown match status {status!r}. Valid statuses: {', '.join(MATCH_STATUSES)}"
            )
        self.repository.get_tournament(tournament_id)
        return self.repository.find_matches(
            tournament_id, round=round, status=status, group_label=group_label
        )

    # ------------------------------------------------------------------ #
    # Status                                                               #
    # ------------------------------------------------------------------ #

    def set_tournament_status(self, tournament_id: str, status: TournamentStatus) -> Tournament:
        if status not in TOURNAMENT_STATUSES:
            raise ValidationError(
                f"Unknown tournament status {status!r}. Valid statuses: {', '.join(TOURNAMENT_STATUSES)}"
            )
        with self._locks(tournament_id):
            tournament = self.repository.get_tournament(tournament_id)
            if tournament.status == status:
                return tournament
            if status not in _TRANSITIONS[tournament.status]:
                raise StateError(f"Cannot move tournament {tournament_id} from {tournament.status} to {status}")
            if status == "live" and not self.repository.count_matches(tournament_id):
                raise StateError(f"Generate fixtures for {tournament_id} before going live")
            tournament.status = status
            self.repository.save_tournament(tournament)
        logger.info("Tournament %s is now %s", tournament_id, status)

        if status == "live":
            self._publish(TournamentLiveEvent(tournament_id=tournament_id, tournament=replace(tournament)))
        return tournament

    # ------------------------------------------------------------------ #
    # Matches                                                              #
    # ------------------------------------------------------------------ #

    def start_match(self, match_id: str, court_number: int | None = None) -> Match:
        if court_number is not None and (isinstance(court_number, bool) or not isinstance(court_number, int) or court_number < 1):
            raise ValidationError(f"Court number must be a positive integer, got {court_number!r}")

        tournament_id = self.repository.get_match(match_id).tournament_id
        with self._locks(tournament_id):
            match = self._playable_match(match_id)
            if match.status == "completed":
                raise StateError(f"Match {match_id} is already completed")
            if match.status == "live" and court_number in (None, match.court_number):
                return match
            match.status = "live"
            if court_number is not None:
                match.court_number = court_number
            self.repository.update_matches([match])

        self._publish(MatchStartedEvent(tournament_id=tournament_id, match=match))
        return match

    def update_score(self, match_id: str, score_a: int, score_b: int) -> Match:
        """Running score of a match in play; does not complete it."""
        _validate_score(score_a, score_b)

        tournament_id = self.repository.get_match(match_id).tournament_id
        with self._locks(tournament_id):
            match = self._playable_match(match_id)
            if match.status == "completed":
                raise StateError(f"Match {match_id} is completed; record a corrected result instead")
            match.score = Score(score_a, score_b)
            match.status = "live"
            self.repository.update_matches([match])

        self._publish(ScoreUpdatedEvent(tournament_id=tournament_id, match=match))
        return match

    def record_match_result(self, match_id: str, score_a: int, score_b: int) -> MatchResultRecord:
        """
        Record the final score and apply progression.

        Re-recording a completed match is allowed until its round locks;
        Known slots downstream are never overwritten.
        """
        _validate_score(score_a, score_b)
        if score_a == score_b:
            raise ValidationError(f"A completed match needs a winner, got {score_a}-{score_b}")

        tournament_id = self.repository.get_match(match_id).tournament_id
        with self._locks(tournament_id):
            match = self._playable_match(match_id)
            if match.is_completed and self.engine.is_round_locked(tournament_id, match.round):
                raise StateError(f"{match.round.label} is locked; result of {match_id} cannot change")

            previous = replace(match)
            match.score = Score(score_a, score_b)
            match.status = "completed"
            self.repository.update_matches([match])
            try:
                progression = self.engine.on_match_completed(match_id)
            except StateError:
                self.repository.update_matches([previous])
                raise

        logger.info(
            "Result %s %d-%d; round complete: %s, slots resolved: %d",
            match_id,
            score_a,
            score_b,
            progression.round_complete,
            progression.resolved_slots,
        )
        self._publish(
            MatchCompletedEvent(
                tournament_id=tournament_id,
                match=match,
                winner_id=match.winner_id,
                progression=progression,
            )
        )
        return MatchResultRecord(match=match, progression=progression)

    def _playable_match(self, match_id: str) -> Match:
        """Re-read a match under its tournament's lock and check it can be played."""
        match = self.repository.get_match(match_id)
        tournament = self.repository.get_tournament(match.tournament_id)
        if tournament.status != "live":
            raise StateError(f"Tournament {tournament.id} is {tournament.status}, not live")
        if not match.is_resolved:
            raise StateError(f"Match {match_id} is waiting on an earlier result")
        return match

    # ------------------------------------------------------------------ #
    # Standings & rounds                                                   #
    # ------------------------------------------------------------------ #

    def get_standings(self, tournament_id: str, group_label: str | None = None) -> list[Standing]:
        participants = self.repository.list_participants(tournament_id)
        matches = self.repository.find_matches(tournament_id)
        if group_label is None:
            return standings_for(participants, matches)
        if not any(m.group_label == group_label for m in matches):
            raise NotFoundError(f"Group not found: {group_label}")
        return group_standings(participants, matches, group_label)

    def is_round_locked(self, tournament_id: str, round: RoundDescriptor) -> bool:
        return self.engine.is_round_locked(tournament_id, round)

    def find_round(
        self,
        tournament_id: str,
        stage: str,
        label: str,
        depth_from_final: int | None = None,
    ) -> RoundDescriptor:
        return self.engine.find_round(tournament_id, stage, label, depth_from_final)

    def current_round(self, tournament_id: str) -> str:
        return self.engine.current_round(tournament_id)

    # ------------------------------------------------------------------ #
    # Notifications                                                        #
    # ------------------------------------------------------------------ #

    def _publish(self, event: TournamentEvent) -> None:
        publish_safely(self.sink, event)


def _validate_score(score_a: int, score_b: int) -> None:
    for value in (score_a, score_b):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"Scores must be integers, got {value!r}")
        if value < 0:
            raise ValidationError(f"Scores cannot be negative, got {value}")
