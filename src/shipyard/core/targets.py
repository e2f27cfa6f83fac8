"""Target resolution — which project and app a command addresses.

A target may be written positionally (``project/app`` or a bare
``project``), supplied via ``-project``/``-app``, or taken from the
local project configuration.  Positional targets mark the command as
requiring a runner, because explicit targeting is how automation
invokes shipyard against projects it has no checkout of.

Guarantees
----------
* No I/O — configuration is obtained through the ``load_config``
  callable supplied by the caller, and only when it is needed.
* Only :class:`~shipyard.exceptions.ShipyardError` subclasses escape.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from shipyard.core.models import AppRef, ProjectConfig, ProjectRef
from shipyard.exceptions import AmbiguousAppTargetError, MissingAppTargetError

_SEGMENT = r"[-0-9A-Za-z_]+"
APP_TARGET_PATTERN: re.Pattern[str] = re.compile(
    rf"^(?P<project>{_SEGMENT})/(?P<app>{_SEGMENT})$"
)

AMBIGUOUS_APP_MESSAGE: str = (
    "This command requires a single targeted app. You have multiple apps "
    "defined."
)
AMBIGUOUS_APP_HINT: str = (
    'Specify the app to target with the "-app" flag or as "project/app".'
)


# ---------------------------------------------------------------------------
# Positional parsing
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class NoMatch:
    """The argument is not a ``project/app`` target."""


@dataclass(frozen=True, slots=True)
class ProjectOnly:
    project: ProjectRef


@dataclass(frozen=True, slots=True)
class ProjectAndApp:
    project: ProjectRef
    app: AppRef


TargetMatch = NoMatch | ProjectOnly | ProjectAndApp


def parse_target(arg: str, *, allow_project_only: bool = False) -> TargetMatch:
    """Parse a positional argument into a typed target.

    ``"proj/app"`` always yields :class:`ProjectAndApp`.  Anything else
    (including ``"a/b/c"``) yields :class:`ProjectOnly` when
    *allow_project_only* is set and the argument is non-empty, else
    :class:`NoMatch`.  A value starting with ``-`` is never a project
    name; it stays in the arguments.
    """
    match = APP_TARGET_PATTERN.match(arg)
    if match is not None:
        project = ProjectRef(match.group("project"))
        return ProjectAndApp(project=project, app=project.app(match.group("app")))
    if allow_project_only and arg and not arg.startswith("-"):
        return ProjectOnly(project=ProjectRef(arg))
    return NoMatch()


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class TargetMode:
    """How strictly a command needs a target."""

    app_target_required: bool = False
    app_optional: bool = False
    project_target_required: bool = False

    @property
    def allows_project_only(self) -> bool:
        return (self.app_optional or self.project_target_required) and not self.app_target_required

    @property
    def wants_positional_target(self) -> bool:
        return self.app_target_required or self.app_optional or self.project_target_required


@dataclass(frozen=True, slots=True)
class ResolvedTarget:
    project: ProjectRef | None
    app: AppRef | None
    requires_runner: bool
    args: tuple[str, ...]
    config: ProjectConfig | None
    config_requested: bool
    explicit_app: bool = False
    """The app came from a positional target or ``-app``, not a default."""


class TargetResolver:
    """Resolve project and app references for one command invocation.

    Parameters
    ----------
    mode:
        The command's targeting requirements.
    load_config:
        Called with no arguments when configuration is required; returns
        the loaded configuration or ``None`` when it is optional and
        absent.
    always_load_config:
        Load configuration even when a positional target was given.
    """

    def __init__(
        self,
        mode: TargetMode,
        load_config: Callable[[], ProjectConfig | None],
        *,
        always_load_config: bool = True,
    ) -> None:
        self._mode = mode
        self._load_config = load_config
        self._always_load_config = always_load_config

    def resolve(
        self,
        args: Sequence[str],
        *,
        flag_project: str = "",
        flag_app: str = "",
    ) -> ResolvedTarget:
        """Apply the precedence rules and return the resolved target.

        Raises
        ------
        AmbiguousAppTargetError
            An app is required, none was given and several are configured.
        MissingAppTargetError
            An app is required, none was given and none is configured.
        ConfigNotFoundError / ConfigLoadError
            Propagated from the configuration loader.
        """
        remaining = tuple(args)
        project: ProjectRef | None = None
        app: AppRef | None = None
        requires_runner = False

        if self._mode.wants_positional_target and remaining:
            parsed = parse_target(
                remaining[0],
                allow_project_only=self._mode.allows_project_only,
            )
            if isinstance(parsed, ProjectAndApp):
                project, app = parsed.project, parsed.app
            elif isinstance(parsed, ProjectOnly):
                project = parsed.project
            if not isinstance(parsed, NoMatch):
                remaining = remaining[1:]
                requires_runner = True

        config_requested = self._always_load_config or (project is None and app is None)
        if self._mode.app_target_required and app is None:
            config_requested = True

        config: ProjectConfig | None = None
        if config_requested:
            config = self._load_config()

        if project is None:
            if flag_project:
                project = ProjectRef(flag_project)
            elif config is not None and config.project:
                project = ProjectRef(config.project)

        explicit_app = app is not None
        if self._mode.app_target_required and app is None:
            explicit_app = bool(flag_app) and project is not None
            app = self._select_app(project, config, flag_app)

        return ResolvedTarget(
            project=project,
            app=app,
            requires_runner=requires_runner,
            args=remaining,
            config=config,
            config_requested=config_requested,
            explicit_app=explicit_app,
        )

    @staticmethod
    def _select_app(
        project: ProjectRef | None,
        config: ProjectConfig | None,
        flag_app: str,
    ) -> AppRef:
        if flag_app and project is not None:
            return project.app(flag_app)

        if config is None or not config.apps:
            raise MissingAppTargetError(
                "This command requires a single targeted app, but no app was "
                "given and none is configured.",
                hint=AMBIGUOUS_APP_HINT,
            )
        if len(config.apps) > 1:
            raise AmbiguousAppTargetError(
                f"{AMBIGUOUS_APP_MESSAGE} ({', '.join(config.apps)})",
                hint=AMBIGUOUS_APP_HINT,
            )
        owner = project or ProjectRef(config.project)
        return owner.app(config.apps[0])
