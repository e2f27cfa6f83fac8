"""``shipyard doctor`` — environment diagnostics command.

Gathers local information and renders a Rich table summarising whether
the runtime environment is ready to resolve targets and reach a server.

This module lives in the CLI layer — it may import from ``infra``
and ``core``, and it renders via Rich.  No business logic resides
here; it purely collects and displays diagnostic data.
"""

from __future__ import annotations

import os
import platform
import sys
from collections.abc import Mapping
from pathlib import Path

from shipyard.cli import exit_codes
from shipyard.cli.console import console
from shipyard.exceptions import ContextStorageError
from shipyard.infra.config_loader import find_config_file
from shipyard.infra.context_storage import FileContextStorage
from shipyard.settings import SERVER_ADDR_ENV, WORKSPACE_ENV, load_settings
from shipyard.version import __version__

Check = tuple[str, str, str]


# ---------------------------------------------------------------------------
# Diagnostic collectors
# ---------------------------------------------------------------------------

def _python_version_check() -> Check:
    """Return (label, value, status) for the Python version row."""
    version = platform.python_version()
    ok = sys.version_info[:2] >= (3, 11)
    status = "[green]OK[/green]" if ok else "[red]FAIL (>=3.11 required)[/red]"
    return "Python", version, status


def _requests_check() -> Check:
    try:
        import requests
    except ImportError:
        return "requests", "NOT INSTALLED", "[red]FAIL[/red]"
    return "requests", requests.__version__, "[green]OK[/green]"


def _rich_check() -> Check:
    try:
        from importlib.metadata import version

        return "rich", version("rich"), "[green]OK[/green]"
    except Exception:  # noqa: BLE001
        return "rich", "not installed", "[yellow]WARN[/yellow]"


def _project_config_check(cwd: Path) -> Check:
    path = find_config_file(cwd)
    if path is None:
        return "Project config", "not found", "[yellow]WARN[/yellow]"
    return "Project config", str(path), "[green]OK[/green]"


def _context_check(storage: FileContextStorage) -> Check:
    try:
        name = storage.default_name()
        if name and name != "-":
            storage.load(name)
    except ContextStorageError as exc:
        return "Default context", str(exc), "[red]FAIL[/red]"
    if not name or name == "-":
        return "Default context", "none", "[yellow]WARN[/yellow]"
    return "Default context", name, "[green]OK[/green]"


def _server_check(storage: FileContextStorage, environ: Mapping[str, str]) -> Check:
    if environ.get(SERVER_ADDR_ENV):
        return "Server", f"{environ[SERVER_ADDR_ENV]} ({SERVER_ADDR_ENV})", "[green]OK[/green]"
    try:
        context = storage.load_default()
    except ContextStorageError:
        context = None
    if context is not None and context.server.address:
        return "Server", context.server.address, "[green]OK[/green]"
    return "Server", "not configured", "[yellow]WARN[/yellow]"


def _workspace_check(environ: Mapping[str, str]) -> Check:
    value = environ.get(WORKSPACE_ENV, "")
    return WORKSPACE_ENV, value or "unset", "[green]OK[/green]"


def _status_plain(status: str) -> str:
    """Convert rich-markup status to plain text."""
    for word in ("FAIL", "WARN", "OK"):
        if word in status:
            return word
    return status


def _print_plain_doctor_table(checks: list[Check]) -> None:
    """Render doctor output without Rich."""
    print("\nshipyard doctor", file=sys.stderr)
    print("=" * 72, file=sys.stderr)
    print(f"{'Component':<20} {'Value':<42} {'Status':<8}", file=sys.stderr)
    print("-" * 72, file=sys.stderr)
    for label, value, status in checks:
        print(f"{label:<20} {value:<42} {_status_plain(status):<8}", file=sys.stderr)
    print(file=sys.stderr)


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def collect_checks(
    environ: Mapping[str, str] | None = None,
    cwd: Path | None = None,
) -> list[Check]:
    env = os.environ if environ is None else environ
    storage = FileContextStorage(load_settings(env).context_dir)
    return [
        ("shipyard", __version__, "[green]OK[/green]"),
        _python_version_check(),
        _requests_check(),
        _rich_check(),
        _project_config_check(cwd or Path.cwd()),
        _context_check(storage),
        _server_check(storage, env),
        _workspace_check(env),
    ]


def run_doctor(environ: Mapping[str, str] | None = None, cwd: Path | None = None) -> int:
    """Execute all diagnostic checks and render a summary table.

    Returns
    -------
    int
        :data:`exit_codes.SUCCESS` when no check failed,
        :data:`exit_codes.GENERAL_ERROR` otherwise.
    """
    checks = collect_checks(environ, cwd)
    has_failure = any("FAIL" in status for _, _, status in checks)

    try:
        from rich.table import Table
    except ModuleNotFoundError:
        _print_plain_doctor_table(checks)
        print("Some checks failed." if has_failure else "All checks passed.", file=sys.stderr)
        return exit_codes.GENERAL_ERROR if has_failure else exit_codes.SUCCESS

    table = Table(
        title="shipyard doctor",
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
    )
    table.add_column("Component", style="bold", min_width=16)
    table.add_column("Value", min_width=20)
    table.add_column("Status", justify="center", min_width=8)
    for label, value, status in checks:
        table.add_row(label, value, status)

    console.print()
    console.print(table)
    console.print()

    if has_failure:
        console.print("[bold red]Some checks failed.[/bold red]")
        return exit_codes.GENERAL_ERROR
    console.print("[bold green]All checks passed.[/bold green]")
    return exit_codes.SUCCESS
