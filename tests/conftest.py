"""Shared pytest fixtures and configuration for the shipyard test suite.

Guidelines
----------
* No network access in any test; the server client is mocked or given
  a fake ``requests`` session.
* Core tests must be pure — collaborators are mocks.
* Tests must not depend on OS state: config and context directories
  live under ``tmp_path``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from shipyard.cli import console as console_module


@pytest.fixture(autouse=True)
def _reset_cli_state() -> Iterator[None]:
    """Undo process-wide state the CLI layer sets up."""
    yield
    console_module.set_plain(False)
    logger = logging.getLogger("shipyard")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture()
def cli_env(tmp_path: Path) -> dict[str, str]:
    """An isolated environment for invoking :func:`shipyard.cli.app.main`."""
    return {"XDG_CONFIG_HOME": str(tmp_path / "config")}


@pytest.fixture()
def project_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A working directory holding a two-app ``shipyard.toml``."""
    root = tmp_path / "marketing"
    root.mkdir()
    (root / "shipyard.toml").write_text(
        'project = "marketing"\n'
        "\n"
        "[runner]\n"
        "enabled = true\n"
        "\n"
        "[[app]]\n"
        'name = "web"\n'
        "\n"
        "[[app]]\n"
        'name = "worker"\n',
        encoding="utf-8",
    )
    monkeypatch.chdir(root)
    return root
