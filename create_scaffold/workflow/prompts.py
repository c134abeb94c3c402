"""Operator interaction used by the workflow for choices and recovery menus."""

from __future__ import annotations

from typing import Protocol, Sequence

from rich.markup import escape
from rich.prompt import IntPrompt

from create_scaffold.utils import console


class PromptAdapter(Protocol):
    def write(self, message: str) -> None: ...

    def choose(self, question: str, options: Sequence[str]) -> int:
        """Return the 0-based index of the chosen option."""
        ...


class ConsolePrompt:
    """Numbered menus on the shared Rich console."""

    def write(self, message: str) -> None:
        console.print(escape(message))

    def choose(self, question: str, options: Sequence[str]) -> int:
        if not options:
            raise ValueError("choose() needs at least one option")
        for index, option in enumerate(options, start=1):
            console.print(f"   [cyan]{index}.[/cyan] {escape(option)}")
        answer = IntPrompt.ask(
            escape(question),
            console=console,
            choices=[str(i) for i in range(1, len(options) + 1)],
            show_choices=False,
        )
        return answer - 1
