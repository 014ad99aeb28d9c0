"""Console output for lightcone runs.

Usage:
    from lightcone.console import console

    with console.spinner("Diagonalizing retarded kernel..."):
        aim = AimInteraction.from_config(config, sources, history)

    console.info("Lattice built", detail=repr(lattice))
    console.warn("History window shorter than the kernel depth")
    console.error("Kernel table could not be built", detail=str(err))
    console.success("Propagation finished", detail="max relative error 3.2e-09")

Details are printed verbatim; tensor shapes and index ranges such as
`[-3, 7]` are never read as rich markup.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Optional

from rich.console import Console as RichConsole
from rich.markup import escape
from rich.panel import Panel


class Console:
    """Diagnostics for kernel construction and CLI runs, rendered with rich."""

    __slots__ = ("_console",)

    def __init__(self, rich_console: Optional[RichConsole] = None) -> None:
        self._console = rich_console if rich_console is not None else RichConsole()

    @contextmanager
    def spinner(self, message: str):
        """Show a spinner while a long construction phase runs."""
        with self._console.status(f"[bold cyan]{message}", spinner="dots"):
            yield

    def _line(self, marker: str, message: str, detail: Optional[str]) -> None:
        text = f"{marker} {escape(message)}"
        if detail:
            text += f" [dim]{escape(detail)}[/dim]"
        self._console.print(text)

    def success(self, message: str, *, detail: Optional[str] = None) -> None:
        self._line("[bold green]✓[/bold green]", message, detail)

    def warn(self, message: str, *, detail: Optional[str] = None) -> None:
        self._line("[yellow]⚠[/yellow]", message, detail)

    def error(self, message: str, *, detail: Optional[str] = None) -> None:
        self._line("[bold red]✗[/bold red]", message, detail)

    def info(self, message: str, *, detail: Optional[str] = None) -> None:
        self._line("[blue]•[/blue]", message, detail)

    def header(self, title: str, **fields: str) -> None:
        """Panel of run parameters shown before a CLI run."""
        lines = [f"[bold]{k}:[/bold] {escape(str(v))}" for k, v in fields.items()]
        self._console.print(Panel("\n".join(lines), title=f"[cyan]{escape(title)}[/cyan]", border_style="blue"))


console = Console()
