"""TOML-backed implementation of :class:`~shipyard.core.protocols.ConfigLoader`.

The project file looks like::

    project = "marketing"

    [runner]
    enabled = true

    [[app]]
    name = "web"

    [[app]]
    name = "worker"

It is searched for from the starting directory upwards.  ``tomllib``
errors never escape this module.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from shipyard.core.models import ProjectConfig
from shipyard.exceptions import ConfigLoadError, ConfigNotFoundError
from shipyard.settings import PROJECT_CONFIG_FILENAME

logger = logging.getLogger(__name__)


def find_config_file(start: Path, filename: str = PROJECT_CONFIG_FILENAME) -> Path | None:
    """Return the nearest *filename* at or above *start*, or ``None``."""
    current = start.resolve()
    for directory in (current, *current.parents):
        candidate = directory / filename
        if candidate.is_file():
            return candidate
    return None


class TomlConfigLoader:
    """Load the project declaration from ``shipyard.toml``.

    Parameters
    ----------
    start:
        Directory the upward search begins at.
    path:
        Explicit configuration file; disables the search.
    """

    def __init__(self, start: Path | None = None, *, path: Path | None = None) -> None:
        self._start = start or Path.cwd()
        self._path = path

    def locate(self) -> Path | None:
        if self._path is not None:
            return self._path if self._path.is_file() else None
        return find_config_file(self._start)

    def load(self, *, optional: bool = False) -> ProjectConfig | None:
        path = self.locate()
        if path is None:
            if optional:
                logger.debug("no %s found; continuing without config", PROJECT_CONFIG_FILENAME)
                return None
            raise ConfigNotFoundError(
                f"No {PROJECT_CONFIG_FILENAME} found in {self._start} or any parent directory.",
                hint="Run the command inside a project directory or pass a project/app target.",
            )

        logger.debug("loading project configuration from %s", path)
        try:
            raw = tomllib.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigLoadError(f"Cannot read {path}: {exc}") from exc
        except tomllib.TOMLDecodeError as exc:
            raise ConfigLoadError(f"Invalid TOML in {path}: {exc}") from exc
        return parse_project_config(raw, path=str(path))


def parse_project_config(raw: dict[str, Any], *, path: str | None = None) -> ProjectConfig:
    """Validate a decoded configuration document."""
    where = path or PROJECT_CONFIG_FILENAME
    project = raw.get("project")
    if not isinstance(project, str) or not project.strip():
        raise ConfigLoadError(f"{where}: 'project' must be a non-empty string.")

    runner = raw.get("runner", {})
    if not isinstance(runner, dict):
        raise ConfigLoadError(f"{where}: [runner] must be a table.")
    enabled = runner.get("enabled", False)
    if not isinstance(enabled, bool):
        raise ConfigLoadError(f"{where}: runner.enabled must be true or false.")

    apps: list[str] = []
    raw_apps = raw.get("app", [])
    if not isinstance(raw_apps, list):
        raise ConfigLoadError(f"{where}: apps must be declared as [[app]] tables.")
    for entry in raw_apps:
        name = entry.get("name") if isinstance(entry, dict) else None
        if not isinstance(name, str) or not name.strip():
            raise ConfigLoadError(f"{where}: every [[app]] needs a non-empty name.")
        if name in apps:
            raise ConfigLoadError(f"{where}: app {name!r} is declared twice.")
        apps.append(name)

    return ProjectConfig(
        project=project.strip(),
        apps=tuple(apps),
        runner_enabled=enabled,
        path=path,
    )
