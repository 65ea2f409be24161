"""
Courtside — interactive tournament runner.

Usage:
    python tournament_main.py

Wires together:
    config → tournament settings → line-up → fixtures →
    result-entry loop → standings
"""

from __future__ import annotations

import sys
from pathlib import Path

from rich.prompt import Prompt

from courtside.cli.display import (
    console,
    display_fixtures,
    display_standings,
    display_tournament_event,
    slot_name,
)
from courtside.cli.selector import print_lineup, select_entries, select_tournament_settings
from courtside.config import load_config
from courtside.errors import CourtsideError
from courtside.notifications import NotificationSink
from courtside.service import TournamentService
from courtside.storage import InMemoryRepository
from courtside.tournaments.events import TournamentEvent


class ConsoleSink(NotificationSink):
    """Renders every published event on the console."""

    def __init__(self) -> None:
        self.names: dict[str, str] = {}

    def publish(self, event: TournamentEvent) -> None:
        display_tournament_event(event, self.names)


def _parse_score(raw: str) -> tuple[int, int] | None:
    parts = raw.replace(":", "-").split("-")
    if len(parts) != 2 or not all(p.strip().isdigit() for p in parts):
        return None
    return int(parts[0]), int(parts[1])


def main() -> None:
    config_path = Path("config.yaml")
    try:
        config = load_config(config_path)
    except FileNotFoundError as exc:
        console.print(f"[red]Error:[/] {exc}")
        sys.exit(1)
    except ValueError as exc:
        console.print(f"[red]Config error:[/] {exc}")
        sys.exit(1)

    sink = ConsoleSink()
    service = TournamentService(InMemoryRepository(), sink=sink, config=config)

    # ── Set up the tournament ────────────────────────────────────────── #
    settings = select_tournament_settings(config)
    minimum = 3 if settings.format == "round_robin" else 2
    settings.entries = select_entries(settings.participant_mode, minimum=minimum)
    print_lineup(settings)

    tournament = service.create_tournament(settings.name, settings.participant_mode, settings.format)
    for entry in settings.entries:
        participant = service.add_participant(tournament.id, entry.display_name, entry.roster)
        sink.names[participant.id] = participant.display_name

    options = config.fixture_options()
    options.num_groups = settings.num_groups
    if settings.top_per_group is not None:
        options.top_per_group = settings.top_per_group
    # Entry order is seed order
    options.seeding = list(sink.names)
    options.rng = None

    try:
        service.generate_fixtures(tournament.id, options=options)
    except CourtsideError as exc:
        console.print(f"[red]Cannot generate fixtures:[/] {exc}")
        sys.exit(1)
    service.set_tournament_status(tournament.id, "live")

    # ── Result entry loop ────────────────────────────────────────────── #
    while service.get_tournament(tournament.id).status == "live":
        matches = service.list_matches(tournament.id)
        display_fixtures(matches, sink.names)
        playable = [m for m in matches if m.is_resolved and not m.is_completed]
        if not playable:
            break

        console.print(f"\n[bold]{service.current_round(tournament.id)}[/]")
        for i, m in enumerate(playable, 1):
            console.print(
                f"  {i}. {m.round.label}: {slot_name(m.slot_a, sink.names)} vs {slot_name(m.slot_b, sink.names)}"
            )
        raw = Prompt.ask(
            "\nMatch number [dim](s = standings, q = quit)[/]", default="", show_default=False
        ).strip().lower()
        if raw == "q":
            break
        if raw == "s":
            display_standings(service.get_standings(tournament.id))
            continue
        if not raw.isdigit() or not 1 <= int(raw) <= len(playable):
            console.print(f"  [red]Enter a number between 1 and {len(playable)}.[/]")
            continue

        match = playable[int(raw) - 1]
        score = _parse_score(Prompt.ask("  Final score (e.g. 11-7)"))
        if score is None:
            console.print("  [red]Scores look like 11-7.[/]")
            continue
        try:
            service.record_match_result(match.id, *score)
        except CourtsideError as exc:
            console.print(f"  [red]{exc}[/]")

    display_standings(service.get_standings(tournament.id), title="Final Standings")


if __name__ == "__main__":
    main()
