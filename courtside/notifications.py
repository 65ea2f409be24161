"""
Notification sinks.

The service publishes an event after each committed state transition.
Delivery is best effort: a failing sink is logged and never undoes or
fails the operation that produced the event.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from courtside.tournaments.events import TournamentEvent

logger = logging.getLogger(__name__)


class NotificationSink(ABC):

    @abstractmethod
    def publish(self, event: TournamentEvent) -> None:
        ...  # pragma: no cover


class NullSink(NotificationSink):
    def publish(self, event: TournamentEvent) -> None:
        pass


class LoggingSink(NotificationSink):
    """Writes a one-line summary of every event to the log."""

    def publish(self, event: TournamentEvent) -> None:
        match = getattr(event, "match", None)
        logger.info(
            "[%s] %s%s",
            event.tournament_id,
            event.name,
            f" {match.id} {match.score.a}-{match.score.b}" if match is not None else "",
        )


class FanOutSink(NotificationSink):
    """Delivers each event to several sinks; one failing sink does not starve the rest."""

    def __init__(self, *sinks: NotificationSink) -> None:
        self.sinks = list(sinks)

    def publish(self, event: TournamentEvent) -> None:
        for sink in self.sinks:
            publish_safely(sink, event)


def publish_safely(sink: NotificationSink, event: TournamentEvent) -> bool:
    """Publish and swallow failures.  Returns False if the sink raised."""
    try:
        sink.publish(event)
    except Exception:
        logger.warning(
            "Notification sink %s failed to publish %s for tournament %s",
            type(sink).__name__,
            event.name,
            event.tournament_id,
            exc_info=True,
        )
        return False
    return True
