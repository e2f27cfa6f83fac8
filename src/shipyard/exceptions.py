"""Custom exception hierarchy for shipyard.

All exceptions that cross layer boundaries must inherit from
:class:`ShipyardError`.  Raw third-party exceptions (e.g. from
requests or tomllib) must NEVER propagate beyond the infrastructure
layer — they must be caught and re-raised as a typed subclass defined
here.

Hierarchy
---------
ShipyardError
├── FlagOrderError
├── InvalidFlagValueError
├── AppTargetError
│   ├── AmbiguousAppTargetError
│   └── MissingAppTargetError
├── ConfigLoadError
│   ├── ConfigNotFoundError
│   └── VariableFileError
├── RemoteNotSupportedError
├── ContextStorageError
├── ServerError
│   └── ServerNotConfiguredError
├── UIUnavailableError
├── DispatchError
├── OperationCancelledError
└── AlreadyReportedError
"""

from __future__ import annotations

from collections.abc import Sequence


class ShipyardError(Exception):
    """Base exception for all shipyard errors.

    Every user-visible error condition must map to a subclass of this
    exception so that the CLI error boundary can render a clean message
    without leaking internal stack traces.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Argument shape --------------------------------------------------------

class FlagOrderError(ShipyardError):
    """Raised when a recognized flag appears after a positional argument."""


class InvalidFlagValueError(ShipyardError):
    """Raised when a flag value cannot be interpreted."""


# --- Target resolution -----------------------------------------------------

class AppTargetError(ShipyardError):
    """Raised when a command needs a single app and none can be chosen."""


class AmbiguousAppTargetError(AppTargetError):
    """Raised when several apps are configured and none was selected."""


class MissingAppTargetError(AppTargetError):
    """Raised when no app is configured and none was selected."""


# --- Configuration ---------------------------------------------------------

class ConfigLoadError(ShipyardError):
    """Raised when the project configuration file is unreadable or invalid."""


class ConfigNotFoundError(ConfigLoadError):
    """Raised when a required project configuration file does not exist."""


class VariableFileError(ConfigLoadError):
    """Raised when a variable file cannot be read or parsed."""


# --- Capability ------------------------------------------------------------

class RemoteNotSupportedError(ShipyardError):
    """Raised when remote execution is requested but not possible."""


# --- Collaborator I/O ------------------------------------------------------

class ContextStorageError(ShipyardError):
    """Raised when stored connection contexts cannot be read or written."""


class ServerError(ShipyardError):
    """Raised when a request to the shipyard server fails."""


class ServerNotConfiguredError(ServerError):
    """Raised when a command needs a server but no address is known."""


# --- Environment ----------------------------------------------------------

class UIUnavailableError(ShipyardError):
    """Raised when an optional UI dependency such as Rich is missing."""


# --- Dispatch --------------------------------------------------------------

class DispatchError(ShipyardError):
    """Aggregate of substantive per-app failures collected during dispatch.

    The sentinel :class:`AlreadyReportedError` is never stored here.
    """

    def __init__(self, errors: Sequence[BaseException]) -> None:
        self.errors: tuple[BaseException, ...] = tuple(errors)
        super().__init__(_format_errors(self.errors))


class OperationCancelledError(ShipyardError):
    """Raised (or returned) when dispatch stops because of cancellation."""


class AlreadyReportedError(ShipyardError):
    """Failure whose message was already shown to the user.

    Callers must not print or wrap it again; the process still exits
    non-zero.
    """

    def __init__(self, message: str = "error already reported") -> None:
        super().__init__(message)


def _format_errors(errors: Sequence[BaseException]) -> str:
    if len(errors) == 1:
        return f"1 error occurred:\n\t* {errors[0]}"
    lines = [f"{len(errors)} errors occurred:"]
    lines.extend(f"\t* {err}" for err in errors)
    return "\n".join(lines)
