"""Tests for the ``shipyard doctor`` command (cli/doctor.py).

The environment is isolated under ``tmp_path``; no server is contacted.

Coverage:
* Doctor runs and returns SUCCESS when nothing fails.
* Doctor returns GENERAL_ERROR when a check fails.
* Individual check functions return correct tuples.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

from shipyard.cli import exit_codes
from shipyard.infra.context_storage import FileContextStorage


class TestPythonVersionCheck:
    def test_returns_tuple(self) -> None:
        from shipyard.cli.doctor import _python_version_check

        label, value, status = _python_version_check()
        assert label == "Python"
        assert isinstance(value, str)
        assert "OK" in status or "FAIL" in status


class TestRequestsCheck:
    def test_installed(self) -> None:
        from shipyard.cli.doctor import _requests_check

        label, _, status = _requests_check()
        assert label == "requests"
        assert "OK" in status

    @patch.dict("sys.modules", {"requests": None})
    def test_not_installed(self) -> None:
        from shipyard.cli.doctor import _requests_check

        _, value, status = _requests_check()
        assert value == "NOT INSTALLED"
        assert "FAIL" in status


class TestProjectConfigCheck:
    def test_found(self, project_dir: Path) -> None:
        from shipyard.cli.doctor import _project_config_check

        _, value, status = _project_config_check(project_dir)
        assert value.endswith("shipyard.toml")
        assert "OK" in status


class TestContextCheck:
    def test_no_default(self, tmp_path: Path) -> None:
        from shipyard.cli.doctor import _context_check

        _, value, status = _context_check(FileContextStorage(tmp_path))
        assert value == "none"
        assert "WARN" in status

    def test_dangling_default(self, tmp_path: Path) -> None:
        from shipyard.cli.doctor import _context_check

        (tmp_path / ".default").write_text("gone\n", encoding="utf-8")
        _, _, status = _context_check(FileContextStorage(tmp_path))
        assert "FAIL" in status


class TestServerCheck:
    def test_from_environment(self, tmp_path: Path) -> None:
        from shipyard.cli.doctor import _server_check

        _, value, status = _server_check(
            FileContextStorage(tmp_path), {"SHIPYARD_SERVER_ADDR": "ship:9702"}
        )
        assert "ship:9702" in value
        assert "OK" in status

    def test_from_default_context(self, tmp_path: Path) -> None:
        from shipyard.cli.doctor import _server_check

        (tmp_path / "prod.json").write_text(
            json.dumps({"server": {"address": "prod.example"}}), encoding="utf-8"
        )
        (tmp_path / ".default").write_text("prod", encoding="utf-8")
        _, value, _ = _server_check(FileContextStorage(tmp_path), {})
        assert value == "prod.example"


class TestRunDoctor:
    def test_success(self, tmp_path: Path) -> None:
        from shipyard.cli.doctor import run_doctor

        env = {"XDG_CONFIG_HOME": str(tmp_path)}
        with patch("shipyard.cli.doctor._python_version_check", return_value=("Python", "3.12.0", "[green]OK[/green]")):
            assert run_doctor(env, tmp_path) == exit_codes.SUCCESS

    def test_failure(self, tmp_path: Path) -> None:
        from shipyard.cli.doctor import run_doctor

        env = {"XDG_CONFIG_HOME": str(tmp_path)}
        with patch("shipyard.cli.doctor._python_version_check", return_value=("Python", "3.8.0", "[red]FAIL[/red]")):
            assert run_doctor(env, tmp_path) == exit_codes.GENERAL_ERROR
