"""Merge input variable values from their sources into a VariableSet.

Sources are applied lowest precedence first, last writer wins:
``SHIPYARD_VAR_*`` environment variables, then variable files in the
order given, then ``-var`` flags.  The first position a name was seen
at is kept so output stays stable.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from shipyard.core.models import Variable, VariableSet, VariableSource
from shipyard.settings import VARIABLE_ENV_PREFIX


def variables_from_env(environ: Mapping[str, str]) -> dict[str, str]:
    """Return ``{name: value}`` for every ``SHIPYARD_VAR_<name>`` entry."""
    return {
        key[len(VARIABLE_ENV_PREFIX):]: value
        for key, value in environ.items()
        if key.startswith(VARIABLE_ENV_PREFIX) and len(key) > len(VARIABLE_ENV_PREFIX)
    }


def merge_variables(
    *,
    env_values: Mapping[str, Any] | None = None,
    file_values: Iterable[Mapping[str, Any]] = (),
    flag_values: Mapping[str, Any] | None = None,
) -> VariableSet:
    merged: dict[str, Variable] = {}

    def _apply(values: Mapping[str, Any], source: VariableSource) -> None:
        for name, value in values.items():
            merged[name] = Variable(name=name, value=value, source=source)

    _apply(env_values or {}, VariableSource.ENV)
    for values in file_values:
        _apply(values, VariableSource.FILE)
    _apply(flag_values or {}, VariableSource.CLI)
    return VariableSet(tuple(merged.values()))
