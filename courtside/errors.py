"""
Engine error taxonomy.

Every error the engine raises derives from CourtsideError so adapters (the
web app, the CLI) can catch engine failures with a single except clause and
map each subclass to its own response.
"""

from __future__ import annotations


class CourtsideError(Exception):
    """Base class for all engine errors."""


class ValidationError(CourtsideError, ValueError):
    """Input rejected by a pure pre-check; nothing has been written."""


class StateError(CourtsideError):
    """The operation conflicts with the current persisted state."""


class NotFoundError(CourtsideError, KeyError):
    """An unknown tournament, match or participant id was referenced."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable.
        return str(self.args[0]) if self.args else ""
