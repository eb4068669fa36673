"""
CLI package - Terminal front end.

Contains:
- app: Typer application with the wallet and addressbook groups
- TerminalPrompter: Prompter backed by the terminal
"""

from .commands import app
from .prompts import TerminalPrompter

__all__ = [
    "app",
    "TerminalPrompter",
]
