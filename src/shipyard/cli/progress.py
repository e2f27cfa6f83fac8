"""Rich-based progress display for multi-app dispatch.

:class:`RichDispatchProgress` wraps an app operation so that a Rich
:class:`~rich.progress.Progress` bar advances once per app, whatever
the operation's result.  The dispatcher itself knows nothing about it.

Design
------
* Used as a context manager around :meth:`AppDispatcher.dispatch`.
* :meth:`wrap` returns an operation with the same signature.
* Shutdown-safe: once stopped, updates are silently ignored.
"""

from __future__ import annotations

from typing import Any

from shipyard.cli.console import get_rich_console
from shipyard.core.dispatch import AppOperation, OperationContext
from shipyard.core.models import AppRef
from shipyard.exceptions import UIUnavailableError


class RichDispatchProgress:
    """Progress bar advanced once per dispatched app.

    Usage::

        with RichDispatchProgress(total=3) as progress:
            dispatcher.dispatch(ctx, progress.wrap(operation))
    """

    def __init__(self, total: int | None = None) -> None:
        try:
            from rich.progress import (
                BarColumn,
                MofNCompleteColumn,
                Progress,
                SpinnerColumn,
                TextColumn,
            )
        except ModuleNotFoundError as exc:
            raise UIUnavailableError(
                "rich is not installed. Install with: pip install rich",
            ) from exc

        self._progress: Any = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=get_rich_console(),
            transient=True,
        )
        self._task_id: Any = self._progress.add_task("apps", total=total)
        self._started: bool = False

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> RichDispatchProgress:
        self.start()
        return self

    def __exit__(self, *_args: object) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if not self._started:
            self._progress.start()
            self._started = True

    def stop(self) -> None:
        """Stop the Rich progress display (idempotent)."""
        if self._started:
            self._progress.stop()
            self._started = False

    # ------------------------------------------------------------------
    # Operation wrapper
    # ------------------------------------------------------------------

    def wrap(self, operation: AppOperation) -> AppOperation:
        def _tracked(ctx: OperationContext, app: AppRef) -> None:
            self._describe(str(app))
            try:
                operation(ctx, app)
            finally:
                self._advance()

        return _tracked

    def _describe(self, description: str) -> None:
        if self._started:
            self._progress.update(self._task_id, description=description)

    def _advance(self) -> None:
        if self._started:
            self._progress.advance(self._task_id)
