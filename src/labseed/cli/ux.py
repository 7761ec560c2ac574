"""
Console output helpers for the labseed CLI.

All human-facing output goes through the shared rich console. Colour is
disabled when NO_COLOR is set and forced when FORCE_COLOR is set; rich
handles TTY detection otherwise, so piping output into a file or a CI log
stays plain.
"""

from __future__ import annotations

import os

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from labseed.orchestrator.events import EventLevel, StepEvent

LABSEED_THEME = Theme(
    {
        "info": "#88C0D0",
        "success": "#A3BE8C",
        "warning": "#EBCB8B",
        "error": "#BF616A bold",
        "muted": "#D8DEE9",
        "highlight": "#B48EAD",
    }
)

console = Console(
    theme=LABSEED_THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
    highlight=False,
)


def success(message: str) -> None:
    console.print(f"[success]✓ {message}[/success]")


def error(message: str) -> None:
    console.print(f"[error]✗ {message}[/error]")


def warning(message: str) -> None:
    console.print(f"[warning]⚠ {message}[/warning]")


def info(message: str) -> None:
    console.print(f"[info]ℹ {message}[/info]")


def header(title: str) -> None:
    """Print a section header."""
    console.print()
    console.print(Panel(f"[bold]{title}[/bold]", border_style="cyan"))


def print_table(
    title: str,
    columns: list[str],
    rows: list[list[str]],
    show_header: bool = True,
) -> None:
    table = Table(title=title, show_header=show_header)
    for col in columns:
        table.add_column(col)
    for row in rows:
        table.add_row(*row)
    console.print(table)


class ConsoleObserver:
    """
    Renders orchestrator steps on the console.

    Plain INFO steps are only shown in verbose mode; successes, warnings
    and errors are always shown.
    """

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    def on_step(self, event: StepEvent) -> None:
        if event.level is EventLevel.SUCCESS:
            success(event.message)
        elif event.level is EventLevel.WARNING:
            warning(event.message)
        elif event.level is EventLevel.ERROR:
            error(event.message)
        elif self.verbose or event.action.endswith("_started"):
            info(event.message)
