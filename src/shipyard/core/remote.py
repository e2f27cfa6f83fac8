"""Decide whether an operation on a project can run on a remote runner.

The checks run in a fixed order and stop at the first one that
determines the answer.  Declining to go remote is not an error: the
operation then runs with a local runner.  Only a failure to list
runner profiles is raised.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from shipyard.core.models import REMOTE_CAPABLE_SOURCES, ProjectDescriptor
from shipyard.core.protocols import RunnerProfileLister

logger = logging.getLogger(__name__)


class Routing(enum.Enum):
    """Where the operations of a dispatch run."""

    UNDECIDED = "undecided"
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True, slots=True)
class RemoteDecision:
    remote: bool
    reason: str

    @property
    def routing(self) -> Routing:
        return Routing.REMOTE if self.remote else Routing.LOCAL


def decide_remote(
    project: ProjectDescriptor,
    profiles: RunnerProfileLister,
) -> RemoteDecision:
    """Return whether *project* can run its operations remotely.

    Raises
    ------
    ServerError
        When the runner profile listing fails.
    """
    decision = _decide(project, profiles)
    logger.debug(
        "project %s: %s (remote=%s)", project.name, decision.reason, decision.remote,
    )
    return decision


def _decide(project: ProjectDescriptor, profiles: RunnerProfileLister) -> RemoteDecision:
    if not project.remote_enabled:
        return RemoteDecision(
            False, "remote operations are disabled for the project",
        )

    if project.data_source is None:
        # Operations that need a source will fail later on.
        return RemoteDecision(False, "project has no data source configured")

    if project.data_source.kind not in REMOTE_CAPABLE_SOURCES:
        return RemoteDecision(
            False,
            f"data source {project.data_source.kind.value!r} cannot be "
            "fetched by a remote runner",
        )

    if project.ondemand_runner:
        return RemoteDecision(
            True, f"project uses runner profile {project.ondemand_runner!r}",
        )

    for profile in profiles.list_ondemand_runner_configs():
        if profile.default:
            return RemoteDecision(
                True, f"default runner profile {profile.name!r} exists",
            )

    # A remote runner could still try without a profile, but it is
    # unlikely to have the tooling or permissions the operation needs.
    return RemoteDecision(
        False, "no runner profile is assigned and no default profile exists",
    )
