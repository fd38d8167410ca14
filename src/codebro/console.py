from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt

from codebro.config import DiffKind

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rich.status import Status

    from codebro.config import DiffLine

_DIFF_STYLES = {
    DiffKind.ADDED: ("green", "+ "),
    DiffKind.REMOVED: ("red", "- "),
    DiffKind.UNCHANGED: ("grey50", "  "),
}


class Terminal:
    """Line-based status output and question/answer for the CLI workflows."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(highlight=False)

    def info(self, message: str) -> None:
        self.console.print(escape(message), style="blue")

    def success(self, message: str) -> None:
        self.console.print(escape(message), style="green")

    def warning(self, message: str) -> None:
        self.console.print(escape(message), style="yellow")

    def error(self, message: str) -> None:
        self.console.print(escape(message), style="bold red")

    def bold(self, message: str) -> None:
        self.console.print(escape(message), style="bold")

    def text(self, message: str) -> None:
        """Print model output as-is, without markup interpretation."""
        self.console.print(message, markup=False)

    def code(self, source: str) -> None:
        self.console.print(f"\n```\n{source}\n```\n", style="grey50", markup=False)

    def status(self, message: str) -> Status:
        """Spinner shown while the `with` block runs."""
        return self.console.status(escape(message))

    def ask(self, question: str) -> str:
        return Prompt.ask(f"[magenta]{escape(question)}[/magenta]", console=self.console).strip()

    def confirm(self, question: str) -> bool:
        """Yes/no question that defaults to no."""
        return Confirm.ask(f"[magenta]{escape(question)}[/magenta]", console=self.console, default=False)

    def show_diff(self, lines: Sequence[DiffLine]) -> None:
        self.bold("\n--- Proposed Changes ---")
        for line in lines:
            style, prefix = _DIFF_STYLES[line.kind]
            if line.collapsed:
                prefix = "   "
            self.console.print(f"{prefix}{line.text}", style=style, markup=False)
        self.bold("------------------------\n")
