"""Domain models for shipyard.

All models are **frozen** dataclasses — immutable value objects with no
behaviour beyond data access and construction-time validation.  They
carry zero I/O and zero dependencies on external packages.
"""

from __future__ import annotations

import enum
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from shipyard.settings import DEFAULT_WORKSPACE


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ProjectRef:
    """Identifies a project by name without fetching its descriptor."""

    project: str

    def __post_init__(self) -> None:
        if not self.project:
            raise ValueError("project name must not be empty")

    def app(self, name: str) -> AppRef:
        """Derive the :class:`AppRef` for application *name* in this project."""
        return AppRef(project=self.project, app=name)


@dataclass(frozen=True, slots=True)
class AppRef:
    """Identifies an application by project name and application name."""

    project: str
    app: str

    def __post_init__(self) -> None:
        if not self.project or not self.app:
            raise ValueError("app reference needs both project and app names")

    def __str__(self) -> str:
        return f"{self.project}/{self.app}"


@dataclass(frozen=True, slots=True)
class WorkspaceRef:
    """Identifies a workspace.  Never empty."""

    workspace: str = DEFAULT_WORKSPACE

    def __post_init__(self) -> None:
        if not self.workspace:
            raise ValueError("workspace name must not be empty")


# ---------------------------------------------------------------------------
# Parsed flags
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ConnectionFlags:
    """Manual server connection details supplied through flags."""

    address: str = ""
    tls: bool = True
    tls_skip_verify: bool = False


@dataclass(frozen=True, slots=True)
class CommandFlags:
    """Values of the shared command flags after argparse has run."""

    plain: bool = False
    app: str = ""
    project: str = ""
    workspace: str = ""
    labels: Mapping[str, str] = field(default_factory=dict)
    remote: bool = False
    remote_source: Mapping[str, str] = field(default_factory=dict)
    variables: Mapping[str, str] = field(default_factory=dict)
    var_files: tuple[str, ...] = ()
    connection: ConnectionFlags = field(default_factory=ConnectionFlags)


# ---------------------------------------------------------------------------
# Project configuration (local file)
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ProjectConfig:
    """The project declaration read from the local configuration file."""

    project: str
    apps: tuple[str, ...] = ()
    runner_enabled: bool = False
    path: str | None = None
    """Location of the file the declaration was loaded from."""


# ---------------------------------------------------------------------------
# Variables
# ---------------------------------------------------------------------------

class VariableSource(enum.Enum):
    ENV = "env"
    FILE = "file"
    CLI = "cli"


@dataclass(frozen=True, slots=True)
class Variable:
    name: str
    value: Any
    source: VariableSource


@dataclass(frozen=True, slots=True)
class VariableSet:
    """Ordered name → value assignments; one entry per name."""

    variables: tuple[Variable, ...] = ()

    def __len__(self) -> int:
        return len(self.variables)

    def __iter__(self) -> Iterator[Variable]:
        return iter(self.variables)

    def __bool__(self) -> bool:
        return len(self.variables) > 0

    def get(self, name: str, default: Any = None) -> Any:
        for variable in self.variables:
            if variable.name == name:
                return variable.value
        return default

    def as_dict(self) -> dict[str, Any]:
        return {variable.name: variable.value for variable in self.variables}


# ---------------------------------------------------------------------------
# Command context
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class CommandContext:
    """Everything a command resolved during initialization.

    Built once per invocation and read-only afterwards.
    """

    workspace: WorkspaceRef
    project: ProjectRef | None = None
    app: AppRef | None = None
    requires_runner: bool = False
    """Set when the target came from a positional argument."""
    args: tuple[str, ...] = ()
    """Positional arguments left over after target extraction."""
    flags: CommandFlags = field(default_factory=CommandFlags)
    config: ProjectConfig | None = None
    variables: VariableSet = field(default_factory=VariableSet)

    def __post_init__(self) -> None:
        if self.app is not None and self.project is not None:
            if self.app.project != self.project.project:
                raise ValueError(
                    f"app {self.app} does not belong to project "
                    f"{self.project.project!r}"
                )
        if self.app is not None and self.project is None:
            object.__setattr__(self, "project", ProjectRef(self.app.project))


# ---------------------------------------------------------------------------
# Server-side descriptors
# ---------------------------------------------------------------------------

class DataSourceKind(enum.Enum):
    GIT = "git"
    LOCAL = "local"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str) -> DataSourceKind:
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.UNKNOWN


REMOTE_CAPABLE_SOURCES: frozenset[DataSourceKind] = frozenset({DataSourceKind.GIT})


@dataclass(frozen=True, slots=True)
class DataSource:
    kind: DataSourceKind
    settings: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProjectDescriptor:
    """A project as the server describes it."""

    name: str
    applications: tuple[str, ...] = ()
    remote_enabled: bool = False
    data_source: DataSource | None = None
    ondemand_runner: str | None = None
    """Name of the on-demand runner profile assigned to the project."""


@dataclass(frozen=True, slots=True)
class RunnerProfile:
    """An on-demand runner configuration known to the server."""

    name: str
    plugin_type: str = ""
    default: bool = False


@dataclass(frozen=True, slots=True)
class AppStatus:
    app: AppRef
    workspace: str
    health: str
    message: str = ""


def freeze_mapping(values: Mapping[str, str] | None) -> Mapping[str, str]:
    """Return a read-only copy of *values*."""
    return MappingProxyType(dict(values or {}))
