"""
Interactive tournament setup: name, format, participant mode and line-up.

Participants are entered one at a time until the user is done; entry order
is seed order (first entered = seed 1).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rich.console import Console
from rich.prompt import IntPrompt, Prompt
from rich.table import Table

from courtside.config import Config
from courtside.tournaments.base import ParticipantMode, TournamentFormat
from courtside.tournaments.knockout import _next_power_of_two

console = Console(legacy_windows=False)

_FORMAT_CHOICES: dict[int, tuple[TournamentFormat, str]] = {
    1: ("knockout", "Knock-out (single elimination)"),
    2: ("round_robin", "Round Robin"),
    3: ("group", "Group stage"),
    4: ("composite", "Groups, then knock-out"),
}


@dataclass
class EntrySelection:
    display_name: str
    roster: tuple[str, ...]


@dataclass
class TournamentSettings:
    name: str
    format: TournamentFormat
    participant_mode: ParticipantMode
    num_groups: int | None = None
    top_per_group: int | None = None
    entries: list[EntrySelection] = field(default_factory=list)


def select_tournament_settings(config: Config) -> TournamentSettings:
    """Prompt for name, format, participant mode and group settings."""
    console.print()
    name = Prompt.ask("[bold]Tournament name[/]", default="Club Night")

    console.print("\n[bold]Tournament format:[/]")
    for number, (_, description) in _FORMAT_CHOICES.items():
        console.print(f"  {number}. {description}")
    choice = IntPrompt.ask("\nSelect format", choices=[str(n) for n in _FORMAT_CHOICES], default=1)
    fmt = _FORMAT_CHOICES[choice][0]

    console.print("\n[bold]Participants:[/]")
    console.print("  1. Singles")
    console.print("  2. Doubles")
    mode: ParticipantMode = "singles" if IntPrompt.ask("Select", choices=["1", "2"], default=1) == 1 else "doubles"

    settings = TournamentSettings(name=name, format=fmt, participant_mode=mode)
    if fmt in ("group", "composite"):
        raw = Prompt.ask(
            f"Number of groups [dim](Enter = groups of {config.fixtures.group_size})[/]",
            default="",
            show_default=False,
        )
        settings.num_groups = int(raw) if raw.strip().isdigit() else None
    if fmt == "composite":
        settings.top_per_group = IntPrompt.ask(
            "Qualifiers per group", default=config.fixtures.top_per_group
        )
    console.print()
    return settings


def select_entries(mode: ParticipantMode, minimum: int = 2) -> list[EntrySelection]:
    console.print(
        "\n[bold]Line-up[/]\n"
        f"  Enter one {'player' if mode == 'singles' else 'team'} at a time.\n"
        f"  Press [bold]Enter[/] with no input when you're done (minimum {minimum}).\n"
    )
    entries: list[EntrySelection] = []

    while True:
        prompt = f"  Seed #{len(entries) + 1}"
        if len(entries) >= minimum:
            prompt += " (or Enter to finish)"
        raw = Prompt.ask(prompt, default="", show_default=False).strip()
        if not raw:
            if len(entries) < minimum:
                console.print(f"  [red]Need at least {minimum} participants.[/]")
                continue
            break

        if mode == "singles":
            entry = EntrySelection(display_name=raw, roster=(raw,))
        else:
            partner = Prompt.ask("    Partner", default="", show_default=False).strip()
            if not partner:
                console.print("  [red]Doubles teams need two players.[/]")
                continue
            entry = EntrySelection(display_name=f"{raw} / {partner}", roster=(raw, partner))
        entries.append(entry)
        console.print(f"  [green]✓[/] Added [bold]{entry.display_name}[/] (seed {len(entries)})")

    return entries


def print_lineup(settings: TournamentSettings) -> None:
    table = Table(
        title="Tournament Line-up",
        show_header=True,
        header_style="bold",
        border_style="green",
        show_lines=False,
    )
    table.add_column("Seed", style="dim", width=5, justify="right")
    table.add_column("Name", min_width=20)
    table.add_column("Roster", style="dim")

    for seed, entry in enumerate(settings.entries, 1):
        table.add_row(str(seed), entry.display_name, ", ".join(entry.roster))

    console.print()
    console.print(table)
    if settings.format == "knockout":
        n = len(settings.entries)
        byes = _next_power_of_two(n) - n
        if byes:
            console.print(
                f"  [dim]ℹ  {byes} bye(s) will be awarded to the top {byes} seed(s).[/]"
            )
    console.print()
