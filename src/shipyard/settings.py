"""Runtime settings for the shipyard CLI."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from shipyard.version import __version__

DEFAULT_WORKSPACE: str = "default"
WORKSPACE_ENV: str = "SHIPYARD_WORKSPACE"
VARIABLE_ENV_PREFIX: str = "SHIPYARD_VAR_"
LOG_LEVEL_ENV: str = "SHIPYARD_LOG"
SERVER_ADDR_ENV: str = "SHIPYARD_SERVER_ADDR"
SERVER_TOKEN_ENV: str = "SHIPYARD_SERVER_TOKEN"
RUNNER_ID_ENV: str = "SHIPYARD_RUNNER_ID"
PROJECT_CONFIG_FILENAME: str = "shipyard.toml"


@dataclass(frozen=True, slots=True)
class Settings:
    config_home: Path
    context_dir: Path
    log_level: str = "WARNING"
    runner_id: str | None = None
    cli_version: str = __version__


def _default_config_home(environ: Mapping[str, str]) -> Path:
    xdg = environ.get("XDG_CONFIG_HOME", "")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return base / "shipyard"


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    home = _default_config_home(env)
    return Settings(
        config_home=home,
        context_dir=home / "context",
        log_level=env.get(LOG_LEVEL_ENV, "").strip().upper() or "WARNING",
        runner_id=env.get(RUNNER_ID_ENV) or None,
    )
