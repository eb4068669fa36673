"""
Terminal prompts - Prompter implementation backed by Typer.

Hidden input goes through typer.prompt(hide_input=True) so the same code
reads from a real terminal or from the input stream of a test runner.
"""

from typing import Optional

import typer
from rich.console import Console


class TerminalPrompter:
    """Asks the user on the terminal."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def text(self, message: str, default: Optional[str] = None) -> str:
        return typer.prompt(message, default=default)

    def password(self, message: str, confirm: bool = False) -> str:
        return typer.prompt(
            message,
            hide_input=True,
            confirmation_prompt="Confirm password" if confirm else False,
        )

    def confirm(self, message: str, default: bool = False) -> bool:
        return typer.confirm(message, default=default)

    def choose(self, message: str, choices: list[str], default: Optional[str] = None) -> str:
        """Numbered menu; accepts the number or the choice itself."""
        self.console.print(message)
        for i, choice in enumerate(choices, 1):
            self.console.print(f"  [cyan]{i}[/cyan]. {choice}")

        while True:
            answer = typer.prompt("Choice", default=default).strip()
            if answer in choices:
                return answer
            if answer.isdigit() and 1 <= int(answer) <= len(choices):
                return choices[int(answer) - 1]
            self.console.print(f"[red]Pick one of 1-{len(choices)}[/red]")
