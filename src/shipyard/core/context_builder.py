"""Command initialization — build the immutable CommandContext.

:func:`build_command_context` is the one place a command's inputs are
interpreted.  It runs, in order:

1. the flag-placement check on the positional arguments (skipped
   after a leading ``--``, which is dropped) and the shape check on name flags,
2. workspace resolution,
3. target resolution (loading project configuration when needed),
4. variable merging,
5. validation of ``-remote`` against the project configuration,
6. validation that positionally targeted projects can run remotely.

Any error stops initialization immediately.  Collaborators are passed
in explicitly; nothing here touches the filesystem or network itself.
The server client is obtained through *connect* only when step 6
needs it, so no stored context is read before the input checks pass.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from shipyard.core.flag_check import positional_args
from shipyard.core.models import CommandContext, CommandFlags, ProjectConfig, ProjectRef
from shipyard.core.protocols import ConfigLoader, ContextStorage, ServerClient
from shipyard.core.remote import decide_remote
from shipyard.core.targets import ResolvedTarget, TargetMode, TargetResolver
from shipyard.core.variables import merge_variables, variables_from_env
from shipyard.core.workspace import resolve_workspace
from shipyard.exceptions import (
    ConfigNotFoundError,
    InvalidFlagValueError,
    RemoteNotSupportedError,
)

logger = logging.getLogger(__name__)

VarFileReader = Callable[[ProjectConfig | None, Sequence[str]], Sequence[Mapping[str, Any]]]

REMOTE_FLAG_HINT: str = (
    "Remote operations must be enabled with 'enabled = true' in the [runner] "
    "table of shipyard.toml."
)


@dataclass(frozen=True, slots=True)
class InitOptions:
    """Per-command initialization switches."""

    load_config: bool = True
    config_optional: bool = False
    app_target_required: bool = False
    app_optional: bool = False
    project_target_required: bool = False
    validate_remote_capability: bool = True

    @property
    def target_mode(self) -> TargetMode:
        return TargetMode(
            app_target_required=self.app_target_required,
            app_optional=self.app_optional,
            project_target_required=self.project_target_required,
        )


def build_command_context(
    flags: CommandFlags,
    args: Sequence[str],
    known_flags: Iterable[str],
    *,
    environ: Mapping[str, str],
    options: InitOptions | None = None,
    storage: ContextStorage | None = None,
    config_loader: ConfigLoader | None = None,
    read_var_files: VarFileReader | None = None,
    connect: Callable[[], ServerClient | None] | None = None,
) -> CommandContext:
    """Interpret one invocation's inputs into a :class:`CommandContext`.

    Raises
    ------
    FlagOrderError
        A recognized flag follows a positional argument.
    InvalidFlagValueError
        ``-app``, ``-project`` or ``-workspace`` holds a ``/``.
    ContextStorageError
        The stored default context could not be read.
    ConfigNotFoundError / ConfigLoadError / VariableFileError
        Configuration or variable files are missing or invalid.
    AmbiguousAppTargetError / MissingAppTargetError
        A single app is required but cannot be determined.
    RemoteNotSupportedError
        Remote execution was requested but is not possible.
    ServerError
        The capability check could not reach the server.
    """
    opts = options or InitOptions()

    args = positional_args(args, known_flags)
    _validate_name_flags(flags)

    workspace = resolve_workspace(flags.workspace, environ, storage)

    def _load() -> ProjectConfig | None:
        return _load_config(config_loader, optional=opts.config_optional)

    resolver = TargetResolver(opts.target_mode, _load, always_load_config=opts.load_config)
    target = resolver.resolve(args, flag_project=flags.project, flag_app=flags.app)

    file_values = read_var_files(target.config, flags.var_files) if read_var_files else ()
    variables = merge_variables(
        env_values=variables_from_env(environ),
        file_values=file_values,
        flag_values=flags.variables,
    )

    if not opts.app_optional:
        _validate_remote_flag(flags, target)

    if target.requires_runner and opts.validate_remote_capability:
        _validate_remote_capability(target.project, connect() if connect else None)

    ctx = CommandContext(
        workspace=workspace,
        project=target.project,
        app=target.app,
        requires_runner=target.requires_runner,
        args=target.args,
        flags=flags,
        config=target.config,
        variables=variables,
    )
    logger.debug(
        "command context: project=%s app=%s workspace=%s requires_runner=%s",
        ctx.project.project if ctx.project else None,
        ctx.app,
        ctx.workspace.workspace,
        ctx.requires_runner,
    )
    return ctx


def _load_config(loader: ConfigLoader | None, *, optional: bool) -> ProjectConfig | None:
    if loader is None:
        if optional:
            return None
        raise ConfigNotFoundError("No project configuration loader is available.")
    return loader.load(optional=optional)


def _validate_remote_flag(flags: CommandFlags, target: ResolvedTarget) -> None:
    if not flags.remote or target.explicit_app:
        return
    if target.config is None or not target.config.runner_enabled:
        raise RemoteNotSupportedError(
            "The -remote flag was specified but remote operations are not "
            "supported for this project.",
            hint=REMOTE_FLAG_HINT,
        )


def _validate_remote_capability(
    project: ProjectRef | None,
    client: ServerClient | None,
) -> None:
    """Check that a positionally targeted project can actually run remotely.

    Skipped when there is no server client; the server rejects the
    operation later in that case.
    """
    if project is None or client is None:
        return
    decision = decide_remote(client.get_project(project.project), client)
    if not decision.remote:
        raise RemoteNotSupportedError(
            f"Project {project.project!r} was targeted directly, which needs a "
            f"remote runner, but {decision.reason}.",
            hint=(
                "Run the command from the project directory without a target, "
                "or configure a git data source and a runner profile for the "
                "project."
            ),
        )


def _validate_name_flags(flags: CommandFlags) -> None:
    names = (("app", flags.app), ("project", flags.project), ("workspace", flags.workspace))
    for flag, value in names:
        if "/" in value:
            raise InvalidFlagValueError(
                f"Invalid value {value!r} for -{flag}: names cannot contain '/'.",
                hint='Pass "project/app" as a positional target, or use -project and -app separately.',
            )
