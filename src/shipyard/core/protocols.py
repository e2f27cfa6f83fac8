"""Protocols (interfaces) consumed by the core layer.

These define the contracts that infrastructure adapters must satisfy.
Core code depends ONLY on these protocols — never on concrete
implementations — preserving the dependency inversion principle.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from shipyard.core.models import AppRef, AppStatus, ProjectConfig, ProjectDescriptor, RunnerProfile


class ConfigLoader(Protocol):
    """Contract for project configuration loaders."""

    def load(self, *, optional: bool = False) -> ProjectConfig | None:
        """Load the project configuration.

        Returns ``None`` only when *optional* is true and no
        configuration exists.

        Raises
        ------
        ConfigNotFoundError
            When no configuration exists and *optional* is false.
        ConfigLoadError
            When the configuration exists but cannot be parsed.
        """
        ...  # pragma: no cover


class ContextStorage(Protocol):
    """Contract for stored CLI connection contexts."""

    def default_name(self) -> str:
        """Return the default context name, or ``""`` when none is set.

        Raises
        ------
        ContextStorageError
            When the storage cannot be read.
        """
        ...  # pragma: no cover

    def load(self, name: str) -> Any:
        """Load the context called *name*.

        The returned object exposes at least a ``workspace`` attribute
        (``str``, possibly empty).

        Raises
        ------
        ContextStorageError
            When the context is missing or unreadable.
        """
        ...  # pragma: no cover


class RunnerProfileLister(Protocol):
    """Anything able to list on-demand runner profiles."""

    def list_ondemand_runner_configs(self) -> Sequence[RunnerProfile]:
        ...  # pragma: no cover


class ServerClient(RunnerProfileLister, Protocol):
    """Contract for the remote shipyard service.

    Implementations must map transport failures to
    :class:`~shipyard.exceptions.ServerError`.
    """

    def get_project(self, name: str) -> ProjectDescriptor:
        ...  # pragma: no cover

    def get_app_status(
        self,
        app: AppRef,
        workspace: str,
        *,
        runner_id: str | None = None,
    ) -> AppStatus:
        ...  # pragma: no cover

    def local_runner_id(self) -> str | None:
        """Identifier of the active local runner, if one is running."""
        ...  # pragma: no cover
