"""Core / service layer — target resolution, routing and dispatch.

Rules
-----
* No ``print()`` calls.
* No filesystem or network I/O; collaborators arrive as protocols.
* No imports from ``cli`` or ``infra``.
"""

from shipyard.core.context_builder import InitOptions, build_command_context
from shipyard.core.dispatch import (
    AppDispatcher,
    AppResult,
    CancellationToken,
    DispatchOutcome,
    OperationContext,
    OutcomeKind,
    ResultKind,
    reduce_results,
)
from shipyard.core.flag_check import check_flags_after_args, positional_args
from shipyard.core.models import (
    AppRef,
    CommandContext,
    CommandFlags,
    ProjectConfig,
    ProjectDescriptor,
    ProjectRef,
    VariableSet,
    WorkspaceRef,
)
from shipyard.core.remote import RemoteDecision, Routing, decide_remote
from shipyard.core.targets import TargetResolver, parse_target
from shipyard.core.workspace import resolve_workspace

__all__: list[str] = [
    "AppDispatcher",
    "AppRef",
    "AppResult",
    "CancellationToken",
    "CommandContext",
    "CommandFlags",
    "DispatchOutcome",
    "InitOptions",
    "OperationContext",
    "OutcomeKind",
    "ProjectConfig",
    "ProjectDescriptor",
    "ProjectRef",
    "RemoteDecision",
    "ResultKind",
    "Routing",
    "TargetResolver",
    "VariableSet",
    "WorkspaceRef",
    "build_command_context",
    "check_flags_after_args",
    "decide_remote",
    "parse_target",
    "positional_args",
    "reduce_results",
    "resolve_workspace",
]
