"""Workspace resolution.

The active workspace comes from, highest precedence first:

1. the ``-workspace`` flag,
2. the ``SHIPYARD_WORKSPACE`` environment variable,
3. the workspace recorded in the stored default context,
4. :data:`~shipyard.settings.DEFAULT_WORKSPACE`.

Resolution always terminates with a non-empty name.  Storage read
failures are not swallowed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from shipyard.core.models import WorkspaceRef
from shipyard.core.protocols import ContextStorage
from shipyard.settings import DEFAULT_WORKSPACE, WORKSPACE_ENV

logger = logging.getLogger(__name__)

# Marker the context storage uses for "explicitly no default context".
NO_DEFAULT_CONTEXT: str = "-"


def resolve_workspace(
    flag_value: str,
    environ: Mapping[str, str],
    storage: ContextStorage | None,
) -> WorkspaceRef:
    """Return the workspace this invocation operates in.

    Raises
    ------
    ContextStorageError
        When the stored default context cannot be read.
    """
    if flag_value:
        logger.debug("workspace from flag: %s", flag_value)
        return WorkspaceRef(flag_value)

    from_env = environ.get(WORKSPACE_ENV, "")
    if from_env:
        logger.debug("workspace from %s: %s", WORKSPACE_ENV, from_env)
        return WorkspaceRef(from_env)

    stored = _stored_workspace(storage)
    if stored:
        logger.debug("workspace from default context: %s", stored)
        return WorkspaceRef(stored)

    return WorkspaceRef(DEFAULT_WORKSPACE)


def _stored_workspace(storage: ContextStorage | None) -> str:
    if storage is None:
        return ""
    name = storage.default_name()
    if not name or name == NO_DEFAULT_CONTEXT:
        return ""
    context = storage.load(name)
    return getattr(context, "workspace", "") or ""
