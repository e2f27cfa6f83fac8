"""Logging configuration for the CLI process.

Core and infra modules only ever call ``logging.getLogger(__name__)``;
this is the single place handlers are attached.  Rich's handler is used
when Rich is installed, a plain stream handler otherwise.
"""

from __future__ import annotations

import logging
import sys

_HANDLER_NAME = "shipyard-cli"


def configure_logging(level: str = "WARNING", *, plain: bool = False) -> logging.Handler:
    """Attach one handler to the ``shipyard`` logger and set its level.

    Calling it again replaces the previously attached handler.
    """
    root = logging.getLogger("shipyard")
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)

    handler = _build_handler(plain)
    handler.set_name(_HANDLER_NAME)
    root.addHandler(handler)
    root.setLevel(_coerce_level(level))
    root.propagate = False
    return handler


def _build_handler(plain: bool) -> logging.Handler:
    if not plain:
        try:
            from rich.logging import RichHandler

            from shipyard.cli.console import get_rich_console
        except ModuleNotFoundError:
            pass
        else:
            return RichHandler(console=get_rich_console(), show_path=False, markup=False)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    return handler


def _coerce_level(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.WARNING
