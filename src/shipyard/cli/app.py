"""CLI application entry point and command routing for shipyard.

This module is the **sole error boundary** for the entire application.
It catches :class:`~shipyard.exceptions.ShipyardError`,
``KeyboardInterrupt``, and any unexpected ``Exception``, rendering
user-friendly messages and returning well-defined exit codes.

Architecture notes
------------------
* Commands build their :class:`~shipyard.core.models.CommandContext`
  through :func:`_init_command`, then delegate to the core layer.
* ``print()`` is forbidden outside the CLI layer; the console proxy is
  used exclusively.
* :class:`~shipyard.exceptions.AlreadyReportedError` is never printed
  here: its message was shown where the failure happened.
"""

from __future__ import annotations

import argparse
import contextlib
import logging
import os
import signal
import sys
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from shipyard.cli import exit_codes
from shipyard.cli.console import console, set_plain
from shipyard.cli.flags import FlagSet, add_context_create_flags, add_flag_sets, command_flags
from shipyard.cli.logging_setup import configure_logging
from shipyard.core.context_builder import InitOptions, build_command_context
from shipyard.core.dispatch import (
    AppDispatcher,
    AppOperation,
    CancellationToken,
    DispatchOutcome,
    OperationContext,
)
from shipyard.core.models import AppRef, AppStatus, CommandContext, ConnectionFlags
from shipyard.core.remote import decide_remote
from shipyard.exceptions import (
    AlreadyReportedError,
    ContextStorageError,
    MissingAppTargetError,
    ServerError,
    ServerNotConfiguredError,
    ShipyardError,
    UIUnavailableError,
)
from shipyard.infra.config_loader import TomlConfigLoader
from shipyard.infra.context_storage import ContextConfig, FileContextStorage, ServerConfig
from shipyard.infra.server_client import HttpServerClient, connect_client
from shipyard.infra.var_files import read_var_files
from shipyard.settings import SERVER_ADDR_ENV, SERVER_TOKEN_ENV, Settings, load_settings
from shipyard.version import __version__

logger = logging.getLogger(__name__)

Handler = Callable[[argparse.Namespace, Mapping[str, str]], int]


@dataclass(frozen=True, slots=True)
class _CommandSpec:
    name: str
    help: str
    flag_sets: FlagSet
    options: InitOptions
    handler: Handler


# ---------------------------------------------------------------------------
# Command initialization
# ---------------------------------------------------------------------------

class _ClientConnector:
    """Connect to the server on first call and return the same client after."""

    def __init__(
        self,
        connection: ConnectionFlags,
        storage: FileContextStorage,
        environ: Mapping[str, str],
        *,
        runner_id: str | None,
    ) -> None:
        self._connection = connection
        self._storage = storage
        self._environ = environ
        self._runner_id = runner_id
        self._client: HttpServerClient | None = None
        self._connected = False

    def __call__(self) -> HttpServerClient | None:
        if not self._connected:
            self._client = connect_client(
                self._connection,
                self._storage,
                self._environ,
                runner_id=self._runner_id,
            )
            self._connected = True
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()


@dataclass(frozen=True, slots=True)
class _Initialized:
    """A built command context plus the server client, closed on exit."""

    ctx: CommandContext
    settings: Settings
    client: HttpServerClient | None

    def require_client(self) -> HttpServerClient:
        if self.client is None:
            raise ServerNotConfiguredError(
                "This command needs a shipyard server.",
                hint=(
                    f"Pass -server-addr, set {SERVER_ADDR_ENV}, or run "
                    "'shipyard context create -set-default NAME'."
                ),
            )
        return self.client

    def close(self) -> None:
        if self.client is not None:
            self.client.close()

    def __enter__(self) -> _Initialized:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _init_command(
    args: argparse.Namespace,
    environ: Mapping[str, str],
) -> _Initialized:
    spec: _CommandSpec = args._spec
    flags = command_flags(args)

    set_plain(flags.plain)
    settings = load_settings(environ)
    configure_logging(settings.log_level, plain=flags.plain)

    storage = FileContextStorage(settings.context_dir)
    connector = _ClientConnector(
        flags.connection,
        storage,
        environ,
        runner_id=settings.runner_id,
    )
    try:
        ctx = build_command_context(
            flags,
            args.args,
            args._known_flags,
            environ=environ,
            options=spec.options,
            storage=storage,
            config_loader=TomlConfigLoader(Path.cwd()),
            read_var_files=read_var_files,
            connect=connector,
        )
        client = connector()
    except BaseException:
        connector.close()
        raise
    return _Initialized(ctx=ctx, settings=settings, client=client)


def _context_storage(environ: Mapping[str, str]) -> FileContextStorage:
    settings = load_settings(environ)
    configure_logging(settings.log_level)
    return FileContextStorage(settings.context_dir)


@contextlib.contextmanager
def cancel_on_interrupt(token: CancellationToken) -> Iterator[None]:
    """Cancel *token* on the first SIGINT; a second one interrupts as usual."""

    def _handler(signum: int, frame: Any) -> None:
        if token.cancelled:
            raise KeyboardInterrupt
        console.print("\n[yellow]Cancelling after the current app…[/yellow]")
        token.cancel("interrupted by user")

    try:
        previous = signal.signal(signal.SIGINT, _handler)
    except ValueError:
        # Not on the main thread; leave signal handling alone.
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------

def _handle_context_show(args: argparse.Namespace, environ: Mapping[str, str]) -> int:
    """Print the resolved command context."""
    from shipyard.cli.render import render_context

    with _init_command(args, environ) as init:
        render_context(init.ctx, server=init.client.base_url if init.client else None)
    return exit_codes.SUCCESS


def _handle_context_create(args: argparse.Namespace, environ: Mapping[str, str]) -> int:
    """Save a named context, optionally making it the default."""
    storage = _context_storage(environ)
    if args.name in storage.list_names() and not args.force:
        raise ContextStorageError(
            f"context {args.name!r} already exists",
            hint="Pass -force to replace it.",
        )

    context = ContextConfig(
        workspace=args.workspace,
        server=ServerConfig(
            address=args.server_addr,
            tls=args.server_tls,
            tls_skip_verify=args.server_tls_skip_verify,
            auth_token=args.server_auth_token or environ.get(SERVER_TOKEN_ENV, ""),
        ),
    )
    storage.save(args.name, context)
    logger.debug("saved context %s in %s", args.name, storage.directory)

    if args.set_default:
        storage.set_default(args.name)
        console.print(f"Context [bold]{args.name}[/bold] saved and set as the default.")
    else:
        console.print(f"Context [bold]{args.name}[/bold] saved.")
    return exit_codes.SUCCESS


def _handle_context_use(args: argparse.Namespace, environ: Mapping[str, str]) -> int:
    """Select the default context; ``-`` clears it."""
    storage = _context_storage(environ)
    storage.set_default(args.name)
    if args.name == "-":
        console.print("Default context cleared.")
    else:
        console.print(f"Default context is now [bold]{args.name}[/bold].")
    return exit_codes.SUCCESS


def _handle_context_list(args: argparse.Namespace, environ: Mapping[str, str]) -> int:
    """List stored contexts."""
    from shipyard.cli.render import render_context_names

    storage = _context_storage(environ)
    names = storage.list_names()
    if not names:
        console.print("No contexts saved. Create one with [bold]shipyard context create NAME[/bold].")
        return exit_codes.SUCCESS
    render_context_names(names, storage.default_name())
    return exit_codes.SUCCESS


def _handle_status(args: argparse.Namespace, environ: Mapping[str, str]) -> int:
    """Dispatch a status lookup across every targeted app.

    Per-app server errors are shown as they happen and reported to the
    dispatcher as already reported, so they are not printed twice.
    """
    from shipyard.cli.render import render_statuses

    with _init_command(args, environ) as init:
        client = init.require_client()

        statuses: list[AppStatus] = []

        def _status(op: OperationContext, app: AppRef) -> None:
            try:
                statuses.append(
                    client.get_app_status(app, op.workspace, runner_id=op.runner_id)
                )
            except ServerError as exc:
                console.error(f"{app}: {exc}", exc.hint)
                raise AlreadyReportedError() from exc

        dispatcher = AppDispatcher(client, reporter=console.print)
        token = CancellationToken()
        with cancel_on_interrupt(token):
            outcome = _dispatch_with_progress(dispatcher, init.ctx, _status, token)

    if not outcome.results and outcome.ok:
        raise MissingAppTargetError(
            "No apps to operate on.",
            hint="Pass a project/app target, -project, or run inside a project directory.",
        )
    render_statuses(statuses)
    outcome.raise_for_outcome()
    return exit_codes.SUCCESS


def _dispatch_with_progress(
    dispatcher: AppDispatcher,
    ctx: CommandContext,
    operation: AppOperation,
    token: CancellationToken,
) -> DispatchOutcome:
    if ctx.flags.plain:
        return dispatcher.dispatch(ctx, operation, token)
    try:
        from shipyard.cli.progress import RichDispatchProgress

        progress = RichDispatchProgress()
    except UIUnavailableError:
        return dispatcher.dispatch(ctx, operation, token)
    with progress:
        return dispatcher.dispatch(ctx, progress.wrap(operation), token)


def _handle_describe(args: argparse.Namespace, environ: Mapping[str, str]) -> int:
    """Show the one targeted app, with its status when a server is configured."""
    from shipyard.cli.render import render_context, render_statuses

    with _init_command(args, environ) as init:
        ctx = init.ctx
        render_context(ctx, server=init.client.base_url if init.client else None)
        if init.client is None or ctx.app is None:
            return exit_codes.SUCCESS
        status = init.client.get_app_status(
            ctx.app,
            ctx.workspace.workspace,
            runner_id=init.client.local_runner_id(),
        )
    render_statuses([status])
    return exit_codes.SUCCESS


def _handle_remote_check(args: argparse.Namespace, environ: Mapping[str, str]) -> int:
    """Print the routing decision for the targeted project."""
    with _init_command(args, environ) as init:
        if init.ctx.project is None:
            raise MissingAppTargetError(
                "No project to check.",
                hint="Pass the project name or run inside a project directory.",
            )
        client = init.require_client()

        project = init.ctx.project.project
        decision = decide_remote(client.get_project(project), client)
    label = "[green]remote[/green]" if decision.remote else "[cyan]local[/cyan]"
    console.print(f"[bold]{project}[/bold]: {label} ({decision.reason})")
    return exit_codes.SUCCESS


def _handle_doctor(args: argparse.Namespace, environ: Mapping[str, str]) -> int:
    """Dispatch the ``doctor`` diagnostics command."""
    from shipyard.cli.doctor import run_doctor

    return run_doctor(environ)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

_CONTEXT_SHOW = _CommandSpec(
    name="show",
    help="Show the project, app and workspace this command would target.",
    flag_sets=FlagSet.OPERATION | FlagSet.CONNECTION,
    options=InitOptions(app_optional=True, config_optional=True),
    handler=_handle_context_show,
)

_COMMANDS: tuple[_CommandSpec, ...] = (
    _CommandSpec(
        name="status",
        help="Show the status of every targeted app.",
        flag_sets=FlagSet.OPERATION | FlagSet.CONNECTION,
        options=InitOptions(app_optional=True, config_optional=True),
        handler=_handle_status,
    ),
    _CommandSpec(
        name="describe",
        help="Show a single app and its status.",
        flag_sets=FlagSet.OPERATION | FlagSet.CONNECTION,
        options=InitOptions(app_target_required=True),
        handler=_handle_describe,
    ),
    _CommandSpec(
        name="remote-check",
        help="Report whether a project's operations would run on a remote runner.",
        flag_sets=FlagSet.CONNECTION,
        options=InitOptions(
            project_target_required=True,
            config_optional=True,
            validate_remote_capability=False,
        ),
        handler=_handle_remote_check,
    ),
)


def _add_command(
    subparsers: Any,
    spec: _CommandSpec,
) -> argparse.ArgumentParser:
    sub = subparsers.add_parser(spec.name, help=spec.help, allow_abbrev=False)
    known = add_flag_sets(sub, spec.flag_sets)
    sub.set_defaults(_spec=spec, _known_flags=known, _handler=spec.handler)
    return sub


def _build_parser() -> argparse.ArgumentParser:
    """Construct the top-level argument parser.

    The CLI supports:
    * ``shipyard status [flags] [project[/app]]``
    * ``shipyard describe [flags] [project/app]``
    * ``shipyard remote-check [flags] [project]``
    * ``shipyard context show [flags] [project[/app]]``
    * ``shipyard context create [flags] NAME``
    * ``shipyard context use NAME``
    * ``shipyard context list``
    * ``shipyard doctor``
    * ``shipyard --version``
    """
    parser = argparse.ArgumentParser(
        prog="shipyard",
        description="Resolve deployment targets and run operations across apps.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    for spec in _COMMANDS:
        _add_command(subparsers, spec)

    context = subparsers.add_parser("context", help="Inspect, create and select CLI contexts.")
    context.set_defaults(_group=context)
    context_commands = context.add_subparsers(dest="context_command", metavar="SUBCOMMAND")
    _add_command(context_commands, _CONTEXT_SHOW)

    create = context_commands.add_parser(
        "create",
        help="Save a named server connection and workspace.",
        allow_abbrev=False,
    )
    add_context_create_flags(create)
    create.set_defaults(_handler=_handle_context_create)

    use = context_commands.add_parser("use", help="Make a context the default.")
    use.add_argument("name", metavar="NAME", help='Context name, or "-" for no default.')
    use.set_defaults(_handler=_handle_context_use)

    listing = context_commands.add_parser("list", help="List saved contexts.")
    listing.set_defaults(_handler=_handle_context_list)

    doctor = subparsers.add_parser("doctor", help="Run environment diagnostics.")
    doctor.set_defaults(_handler=_handle_doctor)
    return parser


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None, environ: Mapping[str, str] | None = None) -> int:
    """Run the shipyard CLI.

    Parameters
    ----------
    argv:
        Explicit argument list.  When ``None`` (default), ``sys.argv[1:]``
        is used.
    environ:
        Environment mapping.  When ``None``, ``os.environ`` is used.

    Returns
    -------
    int
        OS process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    env = os.environ if environ is None else environ

    if args.command is None:
        parser.print_help()
        return exit_codes.SUCCESS

    handler: Handler | None = getattr(args, "_handler", None)
    if handler is None:
        # A command group given without a subcommand.
        args._group.print_help()
        return exit_codes.SUCCESS
    return handler(args, env)


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def cli() -> None:
    """Top-level error boundary invoked by the console-script entry point.

    This function wraps :func:`main` and guarantees the process never
    exits with a raw stack trace during normal usage.
    """
    try:
        code = main()
        sys.exit(code)
    except AlreadyReportedError:
        sys.exit(exit_codes.GENERAL_ERROR)
    except ShipyardError as exc:
        logger.debug("command failed", exc_info=True)
        console.error(str(exc), exc.hint)
        sys.exit(exit_codes.GENERAL_ERROR)
    except KeyboardInterrupt:
        console.print("\n[yellow]Aborted by user.[/yellow]")
        sys.exit(exit_codes.KEYBOARD_INTERRUPT)
    except Exception as exc:  # noqa: BLE001
        console.print(
            "[bold red]Unexpected error.[/bold red] "
            "Please report this issue.\n"
            f"  {type(exc).__name__}: {exc}"
        )
        sys.exit(exit_codes.UNEXPECTED_ERROR)
