"""App dispatcher — apply one operation to every targeted app.

The dispatcher expands a :class:`~shipyard.core.models.CommandContext`
into an ordered list of apps, builds one :class:`AppTask` per app and
runs the caller's operation for each.  Every run is turned into a
tagged :class:`AppResult`; :func:`reduce_results` folds those into a
single :class:`DispatchOutcome`.

Execution is sequential today.  The aggregation only ever sees a
sequence of :class:`AppResult` values, so running tasks in parallel
would not change it.

Error contract
--------------
* An operation returns ``None`` on success.
* Raising :class:`~shipyard.exceptions.AlreadyReportedError` means the
  failure was already shown to the user.  It is tracked but never put
  in the aggregate error.
* Any other exception is a substantive failure and is aggregated into a
  :class:`~shipyard.exceptions.DispatchError`.  One app failing does not
  stop the remaining apps.
* Cancellation is checked between apps and stops the run early.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass

from shipyard.core.models import AppRef, CommandContext, ProjectRef
from shipyard.core.protocols import ServerClient
from shipyard.core.remote import Routing, decide_remote
from shipyard.exceptions import (
    AlreadyReportedError,
    DispatchError,
    MissingAppTargetError,
    OperationCancelledError,
    ServerNotConfiguredError,
    ShipyardError,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

class CancellationToken:
    """Thread-safe cancellation signal shared by every task of a dispatch."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str = "operation cancelled"

    def cancel(self, reason: str | None = None) -> None:
        if reason:
            self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def error(self) -> OperationCancelledError | None:
        """Return the cancellation error, or ``None`` if not cancelled."""
        if not self._event.is_set():
            return None
        return OperationCancelledError(self._reason)


# ---------------------------------------------------------------------------
# Per-app tasks and results
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class OperationContext:
    """What an operation receives besides the app it works on."""

    command: CommandContext
    cancel_token: CancellationToken
    routing: Routing = Routing.UNDECIDED
    runner_id: str | None = None
    """Active local runner, for correlating remote calls."""

    @property
    def workspace(self) -> str:
        return self.command.workspace.workspace


AppOperation = Callable[[OperationContext, AppRef], None]


@dataclass(frozen=True, slots=True)
class AppTask:
    app: AppRef
    context: OperationContext


class ResultKind(enum.Enum):
    OK = "ok"
    FAILED = "failed"
    ALREADY_REPORTED = "already_reported"


@dataclass(frozen=True, slots=True)
class AppResult:
    app: AppRef
    kind: ResultKind
    error: Exception | None = None

    @classmethod
    def ok(cls, app: AppRef) -> AppResult:
        return cls(app, ResultKind.OK)

    @classmethod
    def failed(cls, app: AppRef, error: Exception) -> AppResult:
        return cls(app, ResultKind.FAILED, error)

    @classmethod
    def already_reported(cls, app: AppRef) -> AppResult:
        return cls(app, ResultKind.ALREADY_REPORTED)


class OutcomeKind(enum.Enum):
    OK = "ok"
    FAILED = "failed"
    ALREADY_REPORTED = "already_reported"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    """Aggregated result of one dispatch."""

    kind: OutcomeKind
    error: ShipyardError | None = None
    results: tuple[AppResult, ...] = ()
    routing: Routing = Routing.UNDECIDED

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.OK

    def raise_for_outcome(self) -> None:
        """Raise the outcome's error, if any."""
        if self.error is not None:
            raise self.error


def run_task(task: AppTask, operation: AppOperation) -> AppResult:
    """Run *operation* for one task and tag what happened."""
    try:
        operation(task.context, task.app)
    except AlreadyReportedError:
        return AppResult.already_reported(task.app)
    except Exception as exc:
        logger.debug("operation failed for %s: %s", task.app, exc)
        return AppResult.failed(task.app, exc)
    return AppResult.ok(task.app)


def reduce_results(
    results: Iterable[AppResult],
    *,
    cancelled: OperationCancelledError | None = None,
    routing: Routing = Routing.UNDECIDED,
) -> DispatchOutcome:
    """Fold per-app results into a :class:`DispatchOutcome`.

    Substantive failures win over the already-reported sentinel, which
    wins over success.  A cancellation error wins over everything.
    """
    collected = tuple(results)
    if cancelled is not None:
        return DispatchOutcome(OutcomeKind.CANCELLED, cancelled, collected, routing)

    failures: list[Exception] = []
    saw_sentinel = False
    for result in collected:
        if result.kind is ResultKind.FAILED and result.error is not None:
            failures.append(result.error)
        elif result.kind is ResultKind.ALREADY_REPORTED:
            saw_sentinel = True

    if failures:
        return DispatchOutcome(OutcomeKind.FAILED, DispatchError(failures), collected, routing)
    if saw_sentinel:
        return DispatchOutcome(
            OutcomeKind.ALREADY_REPORTED, AlreadyReportedError(), collected, routing,
        )
    return DispatchOutcome(OutcomeKind.OK, None, collected, routing)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class TargetPlan:
    """The apps a dispatch will visit and how they will be run."""

    apps: tuple[AppRef, ...]
    routing: Routing = Routing.UNDECIDED


class AppDispatcher:
    """Apply an operation across the apps a command targets.

    Parameters
    ----------
    client:
        Server client, required only when ``-project`` is given or a
        local runner id should be attached.  May be ``None``.
    reporter:
        Receives short user-facing notices (e.g. the chosen runner).
    """

    def __init__(
        self,
        client: ServerClient | None = None,
        *,
        reporter: Callable[[str], None] | None = None,
    ) -> None:
        self._client = client
        self._reporter = reporter

    # ------------------------------------------------------------------
    # Target list
    # ------------------------------------------------------------------

    def plan(self, ctx: CommandContext) -> TargetPlan:
        """Build the ordered app list for *ctx*.

        Raises
        ------
        ServerNotConfiguredError
            ``-project`` was given but there is no server client.
        ServerError
            Fetching the project or the runner profiles failed.
        MissingAppTargetError
            An app was named but no project is known.
        """
        names: list[str] = []
        routing = Routing.UNDECIDED
        project = ctx.project

        if ctx.flags.project:
            project = ProjectRef(ctx.flags.project)
            if self._client is None:
                raise ServerNotConfiguredError(
                    f"Cannot list the apps of project {project.project!r} "
                    "without a server connection.",
                    hint="Pass -server-addr or set a default context.",
                )
            descriptor = self._client.get_project(project.project)
            decision = decide_remote(descriptor, self._client)
            routing = decision.routing
            self._report(
                "Using remote runner" if decision.remote else "Using local runner"
            )
            names.extend(descriptor.applications)

        explicit = self._explicit_app(ctx, project)
        if explicit is not None:
            return TargetPlan(apps=(explicit,), routing=routing)

        if ctx.config is not None and not names:
            names.extend(ctx.config.apps)

        if names and project is None:
            raise MissingAppTargetError(
                "Apps were found but the project they belong to is unknown.",
                hint="Pass -project or run inside a project directory.",
            )
        apps = tuple(project.app(name) for name in names) if project else ()
        return TargetPlan(apps=apps, routing=routing)

    @staticmethod
    def _explicit_app(ctx: CommandContext, project: ProjectRef | None) -> AppRef | None:
        if ctx.flags.app:
            if project is None:
                raise MissingAppTargetError(
                    f"App {ctx.flags.app!r} was selected but no project is known.",
                    hint="Pass -project or use the project/app form.",
                )
            return project.app(ctx.flags.app)
        return ctx.app

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def tasks(
        self,
        ctx: CommandContext,
        plan: TargetPlan,
        cancel_token: CancellationToken,
    ) -> list[AppTask]:
        op_context = OperationContext(
            command=ctx,
            cancel_token=cancel_token,
            routing=plan.routing,
            runner_id=self._client.local_runner_id() if self._client else None,
        )
        for app in plan.apps:
            logger.debug("will operate on app %s", app)
        return [AppTask(app=app, context=op_context) for app in plan.apps]

    def dispatch(
        self,
        ctx: CommandContext,
        operation: AppOperation,
        cancel_token: CancellationToken | None = None,
    ) -> DispatchOutcome:
        """Run *operation* once per targeted app, in order.

        Errors from building the target list are raised; errors from the
        operation are aggregated into the returned outcome.
        """
        token = cancel_token or CancellationToken()
        plan = self.plan(ctx)
        tasks = self.tasks(ctx, plan, token)

        results: list[AppResult] = []
        for result in _run_sequential(tasks, operation, token):
            if result is None:
                return reduce_results(results, cancelled=token.error(), routing=plan.routing)
            results.append(result)
        return reduce_results(results, routing=plan.routing)

    def _report(self, message: str) -> None:
        logger.info(message)
        if self._reporter is not None:
            self._reporter(message)


def _run_sequential(
    tasks: Sequence[AppTask],
    operation: AppOperation,
    token: CancellationToken,
) -> Iterator[AppResult | None]:
    """Yield one result per task; yield ``None`` and stop once cancelled."""
    for task in tasks:
        if token.cancelled:
            yield None
            return
        yield run_task(task, operation)
