"""
Persistence contract and the in-memory implementation.

The engine only needs create / read-by-filter / update / bulk-insert for
participants and matches, and read / update for tournaments.  Any backend
implementing Repository can be dropped in; InMemoryRepository is used by the
CLI, the web app and the tests.

Reads return copies, so callers never mutate stored state without an
explicit save.
"""

from __future__ import annotations

import copy
import threading
from abc import ABC, abstractmethod

from courtside.errors import NotFoundError, StateError
from courtside.tournaments.base import (
    Match,
    MatchStatus,
    Participant,
    RoundDescriptor,
    Tournament,
    match_sort_key,
)


class Repository(ABC):

    # Tournaments --------------------------------------------------------- #

    @abstractmethod
    def get_tournament(self, tournament_id: str) -> Tournament:
        """Raises NotFoundError for an unknown id."""
        ...  # pragma: no cover

    @abstractmethod
    def save_tournament(self, tournament: Tournament) -> None:
        ...  # pragma: no cover

    # Participants -------------------------------------------------------- #

    @abstractmethod
    def add_participants(self, tournament_id: str, participants: list[Participant]) -> None:
        ...  # pragma: no cover

    @abstractmethod
    def list_participants(self, tournament_id: str) -> list[Participant]:
        """In registration order."""
        ...  # pragma: no cover

    @abstractmethod
    def remove_participant(self, tournament_id: str, participant_id: str) -> None:
        """Raises NotFoundError for an unknown participant."""
        ...  # pragma: no cover

    def get_participant(self, tournament_id: str, participant_id: str) -> Participant:
        for p in self.list_participants(tournament_id):
            if p.id == participant_id:
                return p
        raise NotFoundError(f"Participant not found: {participant_id}")

    # Matches ------------------------------------------------------------- #

    @abstractmethod
    def get_match(self, match_id: str) -> Match:
        """Raises NotFoundError for an unknown id."""
        ...  # pragma: no cover

    @abstractmethod
    def find_matches(
        self,
        tournament_id: str,
        *,
        round: RoundDescriptor | None = None,
        status: MatchStatus | None = None,
        group_label: str | None = None,
    ) -> list[Match]:
        """Matching matches in chronological round order, then group, then order."""
        ...  # pragma: no cover

    @abstractmethod
    def insert_matches(self, matches: list[Match]) -> None:
        """All-or-nothing bulk insert."""
        ...  # pragma: no cover

    @abstractmethod
    def update_matches(self, matches: list[Match]) -> None:
        """All-or-nothing bulk update of existing matches."""
        ...  # pragma: no cover

    @abstractmethod
    def delete_match(self, match_id: str) -> None:
        ...  # pragma: no cover

    def count_matches(self, tournament_id: str) -> int:
        return len(self.find_matches(tournament_id))


class InMemoryRepository(Repository):
    """Dict-backed store; safe to share between threads."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._tournaments: dict[str, Tournament] = {}
        self._participants: dict[str, list[Participant]] = {}
        self._matches: dict[str, Match] = {}

    def get_tournament(self, tournament_id: str) -> Tournament:
        with self._guard:
            try:
                return copy.deepcopy(self._tournaments[tournament_id])
            except KeyError:
                raise NotFoundError(f"Tournament not found: {tournament_id}") from None

    def save_tournament(self, tournament: Tournament) -> None:
        with self._guard:
            self._tournaments[tournament.id] = copy.deepcopy(tournament)
            self._participants.setdefault(tournament.id, [])

    def add_participants(self, tournament_id: str, participants: list[Participant]) -> None:
        with self._guard:
            if tournament_id not in self._tournaments:
                raise NotFoundError(f"Tournament not found: {tournament_id}")
            existing = {p.id for p in self._participants[tournament_id]}
            for p in participants:
                if p.id in existing:
                    raise StateError(f"Participant already registered: {p.id}")
            self._participants[tournament_id].extend(copy.deepcopy(participants))

    def list_participants(self, tournament_id: str) -> list[Participant]:
        with self._guard:
            if tournament_id not in self._tournaments:
                raise NotFoundError(f"Tournament not found: {tournament_id}")
            return copy.deepcopy(self._participants[tournament_id])

    def remove_participant(self, tournament_id: str, participant_id: str) -> None:
        with self._guard:
            if tournament_id not in self._tournaments:
                raise NotFoundError(f"Tournament not found: {tournament_id}")
            registered = self._participants[tournament_id]
            remaining = [p for p in registered if p.id != participant_id]
            if len(remaining) == len(registered):
                raise NotFoundError(f"Participant not found: {participant_id}")
            self._participants[tournament_id] = remaining

    def get_match(self, match_id: str) -> Match:
        with self._guard:
            try:
                return copy.deepcopy(self._matches[match_id])
            except KeyError:
                raise NotFoundError(f"Match not found: {match_id}") from None

    def find_matches(
        self,
        tournament_id: str,
        *,
        round: RoundDescriptor | None = None,
        status: MatchStatus | None = None,
        group_label: str | None = None,
    ) -> list[Match]:
        with self._guard:
            found = [
                m for m in self._matches.values()
                if m.tournament_id == tournament_id
                and (round is None or m.round == round)
                and (status is None or m.status == status)
                and (group_label is None or m.group_label == group_label)
            ]
            return copy.deepcopy(sorted(found, key=match_sort_key))

    def insert_matches(self, matches: list[Match]) -> None:
        with self._guard:
            ids = [m.id for m in matches]
            if len(set(ids)) != len(ids) or any(mid in self._matches for mid in ids):
                raise StateError("Bulk insert would duplicate a match id")
            for m in matches:
                self._matches[m.id] = copy.deepcopy(m)

    def update_matches(self, matches: list[Match]) -> None:
        with self._guard:
            missing = [m.id for m in matches if m.id not in self._matches]
            if missing:
                raise NotFoundError(f"Match not found: {missing[0]}")
            for m in matches:
                self._matches[m.id] = copy.deepcopy(m)

    def delete_match(self, match_id: str) -> None:
        with self._guard:
            if self._matches.pop(match_id, None) is None:
                raise NotFoundError(f"Match not found: {match_id}")
