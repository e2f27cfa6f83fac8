"""CLI console helpers with optional Rich support.

This module intentionally avoids module-level imports of optional UI
dependencies so bootstrap paths (``--help``, ``--version``) remain
functional even when Rich is not installed.
"""

from __future__ import annotations

import sys
from typing import Any

from shipyard.exceptions import UIUnavailableError

_plain_mode: bool = False


def set_plain(enabled: bool) -> None:
    """Switch all console output to plain (no colors, no styling)."""
    global _plain_mode
    _plain_mode = enabled


def is_plain() -> bool:
    return _plain_mode


def _load_rich_console_class() -> type[Any]:
    """Return ``rich.console.Console`` class or raise ``UIUnavailableError``."""
    try:
        from rich.console import Console
    except ModuleNotFoundError as exc:
        raise UIUnavailableError(
            "rich is not installed. Install with: pip install rich",
        ) from exc
    return Console


def get_rich_console() -> Any:
    """Create a Rich console instance targeting stderr."""
    console_class = _load_rich_console_class()
    if _plain_mode:
        return console_class(stderr=True, no_color=True, highlight=False, emoji=False)
    return console_class(stderr=True)


class _ConsoleProxy:
    """Minimal ``print``-compatible proxy with Rich fallback."""

    def print(self, *objects: object) -> None:
        """Render with Rich when available, else plain stderr print."""
        try:
            rich_console = get_rich_console()
        except UIUnavailableError:
            print(*objects, file=sys.stderr)
            return
        rich_console.print(*objects)

    def error(self, message: str, hint: str | None = None) -> None:
        """Render an error (and optional hint) in the standard layout."""
        self.print(f"[bold red]Error:[/bold red] {message}")
        if hint:
            self.print(f"[yellow]Hint:[/yellow] {hint}")


console = _ConsoleProxy()
