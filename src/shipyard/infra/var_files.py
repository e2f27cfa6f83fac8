"""Reading of input variable files.

Variable files are flat JSON objects or TOML documents mapping
variable names to values.  Files named ``*.auto.vars.json`` or
``*.auto.vars.toml`` next to the project configuration are loaded
automatically, in name order, before any ``-var-file`` given on the
command line.
"""

from __future__ import annotations

import json
import tomllib
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from shipyard.core.models import ProjectConfig
from shipyard.exceptions import VariableFileError

AUTO_VAR_PATTERNS: tuple[str, ...] = ("*.auto.vars.json", "*.auto.vars.toml")


def discover_auto_var_files(directory: Path) -> list[Path]:
    found: set[Path] = set()
    for pattern in AUTO_VAR_PATTERNS:
        found.update(directory.glob(pattern))
    return sorted(found)


def read_var_file(path: Path) -> dict[str, Any]:
    """Parse one variable file into ``{name: value}``.

    Raises
    ------
    VariableFileError
        When the file is unreadable, malformed, or not a flat mapping.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise VariableFileError(f"Cannot read variable file {path}: {exc}") from exc

    try:
        if path.suffix == ".json":
            data = json.loads(text)
        elif path.suffix == ".toml":
            data = tomllib.loads(text)
        else:
            raise VariableFileError(
                f"Unsupported variable file type: {path}",
                hint="Use a .json or .toml file.",
            )
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise VariableFileError(f"Invalid variable file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise VariableFileError(f"Variable file {path} must contain an object of name/value pairs.")
    nested = [name for name, value in data.items() if isinstance(value, (dict, list))]
    if nested:
        raise VariableFileError(
            f"Variable file {path} has non-scalar values for: {', '.join(sorted(nested))}",
        )
    return data


def read_var_files(
    config: ProjectConfig | None,
    explicit: Sequence[str],
) -> list[dict[str, Any]]:
    """Read auto-loaded files (when *config* has a path) then *explicit* files."""
    paths: list[Path] = []
    if config is not None and config.path:
        paths.extend(discover_auto_var_files(Path(config.path).parent))
    paths.extend(Path(p).expanduser() for p in explicit)
    return [read_var_file(path) for path in paths]
