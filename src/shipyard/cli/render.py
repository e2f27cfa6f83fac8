"""Rendering of command results for the CLI layer.

Rich tables are used when Rich is installed and plain mode is off;
otherwise a fixed-width text layout is written to stderr.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import Any

from shipyard.cli.console import console, is_plain
from shipyard.core.models import AppStatus, CommandContext


def _import_rich_table() -> type[Any] | None:
    if is_plain():
        return None
    try:
        from rich.table import Table
    except ModuleNotFoundError:
        return None
    return Table


def _context_rows(ctx: CommandContext, server: str | None) -> list[tuple[str, str]]:
    rows = [
        ("Project", ctx.project.project if ctx.project else "-"),
        ("App", ctx.app.app if ctx.app else "-"),
        ("Workspace", ctx.workspace.workspace),
        ("Requires runner", "yes" if ctx.requires_runner else "no"),
        ("Config", (ctx.config.path or "loaded") if ctx.config else "-"),
        ("Server", server or "-"),
    ]
    if ctx.args:
        rows.append(("Arguments", " ".join(ctx.args)))
    for variable in ctx.variables:
        rows.append((f"var.{variable.name}", f"{variable.value} ({variable.source.value})"))
    for key, value in sorted(ctx.flags.labels.items()):
        rows.append((f"label.{key}", value))
    return rows


def render_context(ctx: CommandContext, *, server: str | None = None) -> None:
    rows = _context_rows(ctx, server)
    table_class = _import_rich_table()
    if table_class is None:
        for label, value in rows:
            print(f"{label:<18} {value}", file=sys.stderr)
        return

    table = table_class(title="Command context", show_header=False, border_style="dim")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for label, value in rows:
        table.add_row(label, value)
    console.print(table)


_HEALTH_STYLES = {"ready": "green", "alive": "green", "down": "red", "partial": "yellow"}


def render_statuses(statuses: Sequence[AppStatus]) -> None:
    if not statuses:
        return
    table_class = _import_rich_table()
    if table_class is None:
        for status in statuses:
            line = f"{str(status.app):<32} {status.workspace:<12} {status.health}"
            if status.message:
                line += f"  {status.message}"
            print(line, file=sys.stderr)
        return

    table = table_class(title="App status", header_style="bold cyan", border_style="dim")
    table.add_column("App", style="bold")
    table.add_column("Workspace")
    table.add_column("Health", justify="center")
    table.add_column("Message")
    for status in statuses:
        style = _HEALTH_STYLES.get(status.health.lower())
        health = f"[{style}]{status.health}[/{style}]" if style else status.health
        table.add_row(str(status.app), status.workspace, health, status.message)
    console.print(table)


def render_context_names(names: Sequence[str], default: str) -> None:
    """List stored contexts, marking the default one."""
    table_class = _import_rich_table()
    if table_class is None:
        for name in names:
            marker = "*" if name == default else " "
            print(f"{marker} {name}", file=sys.stderr)
        return

    table = table_class(title="Contexts", header_style="bold cyan", border_style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Default", justify="center")
    for name in names:
        table.add_row(name, "[green]yes[/green]" if name == default else "")
    console.print(table)
