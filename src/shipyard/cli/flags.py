"""Shared command flags and their translation into :class:`CommandFlags`.

Flags are written Go-style with a single hyphen (``-project web``,
``-var=region=eu``); the double-hyphen spelling is accepted too.
Parsing stops at the first positional argument: everything after it is
collected verbatim so the flag-placement check can inspect it.
"""

from __future__ import annotations

import argparse
import enum
from collections.abc import Iterable
from typing import Any

from shipyard.core.models import CommandFlags, ConnectionFlags, freeze_mapping


class FlagSet(enum.Flag):
    """Optional groups of flags a command may accept."""

    NONE = 0
    OPERATION = enum.auto()
    CONNECTION = enum.auto()


def _spellings(name: str, *aliases: str) -> list[str]:
    names = [f"-{name}", f"--{name}"]
    names.extend(f"-{alias}" for alias in aliases)
    return names


def parse_key_value(raw: str) -> tuple[str, str]:
    """argparse ``type`` for ``key=value`` flag values."""
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected key=value, got {raw!r}")
    return key, value


def parse_bool(raw: str) -> bool:
    """argparse ``type`` for explicit boolean values."""
    lowered = raw.strip().lower()
    if lowered in {"1", "t", "true", "yes", "on"}:
        return True
    if lowered in {"0", "f", "false", "no", "off"}:
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got {raw!r}")


class _FlagRegistry:
    """Adds flags in their single- and double-hyphen spellings and records
    the bare names, which the flag-placement check looks for.
    """

    def __init__(self) -> None:
        self.names: set[str] = set()

    def add(self, group: Any, name: str, *aliases: str, **kwargs: Any) -> None:
        group.add_argument(*_spellings(name, *aliases), **kwargs)
        self.names.update((name, *aliases))


def add_flag_sets(parser: argparse.ArgumentParser, sets: FlagSet = FlagSet.NONE) -> frozenset[str]:
    """Add the global flags, plus any requested optional groups, to *parser*.

    Returns the bare names of the added flags (``"project"``, ``"p"`` …).
    argparse's own ``-h``/``--help`` is not among them.
    """
    flags = _FlagRegistry()
    group = parser.add_argument_group("Global Options")
    flags.add(
        group,
        "plain",
        dest="plain",
        action="store_true",
        help="Plain output: no colors, no animation.",
    )
    flags.add(
        group,
        "app", "a",
        dest="app",
        default="",
        metavar="NAME",
        help=(
            "App to target. Certain commands require a single app target for "
            "projects with multiple apps."
        ),
    )
    flags.add(
        group,
        "project", "p",
        dest="project",
        default="",
        metavar="NAME",
        help="Project to target.",
    )
    flags.add(
        group,
        "workspace", "w",
        dest="workspace",
        default="",
        metavar="NAME",
        help="Workspace to operate in.",
    )

    if FlagSet.OPERATION in sets:
        group = parser.add_argument_group("Operation Options")
        flags.add(
            group,
            "label",
            dest="label",
            action="append",
            type=parse_key_value,
            default=[],
            metavar="KEY=VALUE",
            help="Labels to set for this operation. Can be specified multiple times.",
        )
        flags.add(
            group,
            "remote",
            dest="remote",
            action="store_true",
            help="Use a remote runner to execute the operation.",
        )
        flags.add(
            group,
            "remote-source",
            dest="remote_source",
            action="append",
            type=parse_key_value,
            default=[],
            metavar="KEY=VALUE",
            help=(
                "Override how remote runners source data, e.g. a specific git "
                "ref. Can be specified multiple times."
            ),
        )
        flags.add(
            group,
            "var",
            dest="var",
            action="append",
            type=parse_key_value,
            default=[],
            metavar="KEY=VALUE",
            help="Variable value to set for this operation. Can be specified multiple times.",
        )
        flags.add(
            group,
            "var-file",
            dest="var_file",
            action="append",
            default=[],
            metavar="PATH",
            help=(
                "JSON or TOML file with variable values. *.auto.vars.json and "
                "*.auto.vars.toml files beside shipyard.toml load automatically."
            ),
        )

    if FlagSet.CONNECTION in sets:
        _add_connection_flags(flags, parser)

    parser.add_argument("args", nargs=argparse.REMAINDER, help=argparse.SUPPRESS)
    return frozenset(flags.names)


def _add_connection_flags(flags: _FlagRegistry, parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("Connection Options")
    flags.add(
        group,
        "server-addr",
        dest="server_addr",
        default="",
        metavar="ADDR",
        help="Address for the server.",
    )
    flags.add(
        group,
        "server-tls",
        dest="server_tls",
        type=parse_bool,
        default=True,
        metavar="BOOL",
        help="True if the server should be connected to via TLS.",
    )
    flags.add(
        group,
        "server-tls-skip-verify",
        dest="server_tls_skip_verify",
        type=parse_bool,
        default=False,
        metavar="BOOL",
        help="True to skip verification of the server's TLS certificate.",
    )


def add_context_create_flags(parser: argparse.ArgumentParser) -> None:
    """Add the arguments of ``shipyard context create`` to *parser*."""
    flags = _FlagRegistry()
    _add_connection_flags(flags, parser)
    group = parser.add_argument_group("Context Options")
    flags.add(
        group,
        "server-auth-token",
        dest="server_auth_token",
        default="",
        metavar="TOKEN",
        help="Token to authenticate with the server. Defaults to SHIPYARD_SERVER_TOKEN.",
    )
    flags.add(
        group,
        "workspace", "w",
        dest="workspace",
        default="",
        metavar="NAME",
        help="Workspace used by commands run in this context.",
    )
    flags.add(
        group,
        "set-default",
        dest="set_default",
        action="store_true",
        help="Make this the default context.",
    )
    flags.add(
        group,
        "force",
        dest="force",
        action="store_true",
        help="Replace an existing context with the same name.",
    )
    parser.add_argument("name", metavar="NAME", help="Name of the context.")


def _pairs_to_dict(pairs: Iterable[tuple[str, str]]) -> dict[str, str]:
    result: dict[str, str] = {}
    for key, value in pairs:
        result[key] = value
    return result


def command_flags(namespace: argparse.Namespace) -> CommandFlags:
    """Translate a parsed namespace into an immutable :class:`CommandFlags`."""
    return CommandFlags(
        plain=bool(getattr(namespace, "plain", False)),
        app=getattr(namespace, "app", "") or "",
        project=getattr(namespace, "project", "") or "",
        workspace=getattr(namespace, "workspace", "") or "",
        labels=freeze_mapping(_pairs_to_dict(getattr(namespace, "label", []))),
        remote=bool(getattr(namespace, "remote", False)),
        remote_source=freeze_mapping(_pairs_to_dict(getattr(namespace, "remote_source", []))),
        variables=freeze_mapping(_pairs_to_dict(getattr(namespace, "var", []))),
        var_files=tuple(getattr(namespace, "var_file", [])),
        connection=ConnectionFlags(
            address=getattr(namespace, "server_addr", "") or "",
            tls=getattr(namespace, "server_tls", True),
            tls_skip_verify=getattr(namespace, "server_tls_skip_verify", False),
        ),
    )
