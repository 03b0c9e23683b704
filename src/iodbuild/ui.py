"""Operator console output."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

console = Console()
err_console = Console(stderr=True)


class Reporter:
    """Progress reporter shared by the build components.

    Progress lines go to stdout and can be silenced; errors always go to stderr.
    """

    def __init__(self, *, quiet: bool = False, out: Console | None = None, err: Console | None = None) -> None:
        self.quiet = quiet
        self.out = out or console
        self.err = err or err_console

    def step(self, message: str) -> None:
        if not self.quiet:
            self.out.print(f"[cyan]{escape(message)}[/cyan]", highlight=False)

    def success(self, message: str) -> None:
        if not self.quiet:
            self.out.print(f"[green]{escape(message)}[/green]", highlight=False)

    def warn(self, message: str) -> None:
        if not self.quiet:
            self.out.print(f"[yellow]{escape(message)}[/yellow]", highlight=False)

    def info(self, message: str) -> None:
        """Always printed, even in quiet mode."""
        self.out.print(escape(message), highlight=False)

    def error(self, message: str, details: list[str] | None = None) -> None:
        self.err.print(f"[bold red]Error:[/bold red] {escape(message)}", highlight=False)
        for line in details or []:
            self.err.print(f"  {escape(line)}", highlight=False)
