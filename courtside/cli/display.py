"""
Rich-based CLI rendering: fixture tables, standings tables and a consumer
for TournamentEvent objects.

Participant ids are shown by display name; callers pass the id → name map.
"""

from __future__ import annotations

from itertools import groupby

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from courtside.tournaments.base import Known, Match, Slot, Standing
from courtside.tournaments.events import (
    MatchCompletedEvent,
    MatchStartedEvent,
    ScoreUpdatedEvent,
    TournamentEvent,
    TournamentLiveEvent,
)
from courtside.tournaments.progression import ProgressionSummary

console = Console(legacy_windows=False)


def slot_name(slot: Slot, names: dict[str, str]) -> str:
    if isinstance(slot, Known):
        return names.get(slot.participant_id, slot.participant_id)
    return "TBD"


def display_fixtures(matches: list[Match], names: dict[str, str]) -> None:
    """One table per round, in chronological order."""
    for round_desc, in_round in groupby(matches, key=lambda m: m.round):
        console.print()
        console.rule(f"[bold]{round_desc.label}[/]", style="bright_blue")

        table = Table(show_header=True, header_style="bold", border_style="dim", show_lines=False)
        table.add_column("#", style="dim", width=4, justify="right")
        table.add_column("Match", style="dim", min_width=10)
        table.add_column("Side A", min_width=18)
        table.add_column("Score", width=7, justify="center")
        table.add_column("Side B", min_width=18)
        table.add_column("Status", style="dim", width=10)

        for m in in_round:
            status = m.status if m.court_number is None else f"{m.status} (court {m.court_number})"
            score = f"{m.score.a}-{m.score.b}" if m.status != "upcoming" else ""
            a, b = slot_name(m.slot_a, names), slot_name(m.slot_b, names)
            winner = m.winner_id
            if winner and winner == getattr(m.slot_a, "participant_id", None):
                a = f"[bold green]{a}[/]"
            elif winner:
                b = f"[bold green]{b}[/]"
            table.add_row(str(m.order + 1), m.id.rsplit(":", 1)[-1], a, score, b, status)

        console.print(table)


def display_standings(standings: list[Standing], title: str = "Standings") -> None:
    table = Table(
        title=title,
        show_header=True,
        header_style="bold",
        border_style="dim",
        show_lines=False,
    )
    table.add_column("#", style="dim", width=3, justify="right")
    table.add_column("Name", min_width=20)
    table.add_column("P", justify="center", width=4)
    table.add_column("W", justify="center", width=4)
    table.add_column("L", justify="center", width=4)
    table.add_column("PF", justify="right", width=5)
    table.add_column("PA", justify="right", width=5)
    table.add_column("+/-", justify="right", width=5)
    table.add_column("Win %", justify="right", width=6)

    for entry in standings:
        s = entry.stats
        table.add_row(
            str(entry.position),
            entry.participant.display_name,
            str(s.matches_played),
            str(s.wins),
            str(s.losses),
            str(s.points_for),
            str(s.points_against),
            f"{s.point_difference:+d}",
            f"{s.win_rate:.0%}",
            style="bold yellow" if entry.position == 1 and s.matches_played else "",
        )

    console.print()
    console.print(table)


def display_tournament_event(event: TournamentEvent, names: dict[str, str]) -> None:
    """Dispatch a TournamentEvent to the appropriate display function."""
    match event:
        case TournamentLiveEvent():
            console.print()
            console.print(
                Panel(
                    f"[bold]{event.tournament.name}[/]\n\n"
                    f"[dim]{event.tournament.format.replace('_', ' ').title()}  •  "
                    f"{event.timestamp.strftime('%Y-%m-%d %H:%M:%S')}[/]",
                    title="[bold green] Tournament Live [/]",
                    border_style="green",
                    expand=False,
                )
            )
        case MatchStartedEvent():
            m = event.match
            court = f"  [dim](court {m.court_number})[/]" if m.court_number else ""
            console.print(
                f"\n[bold bright_blue]▶ {m.round.label}[/]  "
                f"[bold]{slot_name(m.slot_a, names)}[/] vs [bold]{slot_name(m.slot_b, names)}[/]{court}"
            )
        case ScoreUpdatedEvent():
            m = event.match
            console.print(f"  [dim]{m.id}: {m.score.a}-{m.score.b}[/]")
        case MatchCompletedEvent():
            winner = names.get(event.winner_id or "", event.winner_id or "?")
            console.print(
                f"\n  [green]✓[/] [bold]{winner}[/] wins "
                f"[dim]({event.match.score.a}-{event.match.score.b})[/]"
            )
            display_progression(event.progression, names)


def display_progression(summary: ProgressionSummary, names: dict[str, str]) -> None:
    if not summary.round_complete:
        return
    console.rule(f"[dim]{summary.round.label} complete[/]", style="dim")
    if summary.knockout_seeded:
        console.print(f"  [bold]Group stage finished:[/] {summary.next_round} is set.")
    elif summary.next_round:
        verb = "generated" if summary.next_round_generated else "updated"
        console.print(
            f"  {summary.next_round} {verb}: {summary.resolved_slots} slot(s) filled."
        )
    if summary.tournament_complete:
        if summary.round.is_final:
            headline = f"[bold yellow]★  {names.get(summary.winner_id or '', summary.winner_id or '?')}[/]"
        else:
            headline = "[bold]All matches played[/]  [dim]see the final standings[/]"
        console.print()
        console.print(
            Panel(
                headline,
                title="[bold green] Tournament Complete [/]",
                border_style="yellow",
                expand=False,
            )
        )
