"""Tests for CLI routing and command handlers (cli/app.py, cli/flags.py).

Commands run through :func:`main` with an isolated environment; the
server client is patched where a command needs one.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from shipyard.cli import console as console_module
from shipyard.cli import exit_codes
from shipyard.cli.app import _build_parser, main
from shipyard.cli.flags import command_flags, parse_bool, parse_key_value
from shipyard.core.models import (
    AppRef,
    AppStatus,
    DataSource,
    DataSourceKind,
    ProjectDescriptor,
)
from shipyard.exceptions import (
    AlreadyReportedError,
    AmbiguousAppTargetError,
    ContextStorageError,
    DispatchError,
    FlagOrderError,
    RemoteNotSupportedError,
    ServerError,
    ServerNotConfiguredError,
)
from shipyard.infra.context_storage import ContextConfig, FileContextStorage, ServerConfig
from shipyard.settings import load_settings


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse(*argv: str) -> argparse.Namespace:
    return _build_parser().parse_args(list(argv))


def _fake_client(*, statuses: dict[str, AppStatus | Exception] | None = None) -> MagicMock:
    client = MagicMock()
    client.base_url = "https://ship.example"
    client.local_runner_id.return_value = None
    client.get_project.return_value = ProjectDescriptor(
        name="marketing",
        applications=("web", "worker"),
        remote_enabled=True,
        data_source=DataSource(DataSourceKind.GIT),
        ondemand_runner="k8s",
    )

    def _status(app: AppRef, workspace: str, *, runner_id: str | None = None) -> AppStatus:
        result = (statuses or {}).get(app.app)
        if isinstance(result, Exception):
            raise result
        return result or AppStatus(app=app, workspace=workspace, health="ready")

    client.get_app_status.side_effect = _status
    return client


def _write_config(root: Path, *apps: str, runner: bool) -> None:
    lines = ['project = "billing"', "", "[runner]", f"enabled = {'true' if runner else 'false'}"]
    for app in apps:
        lines += ["", "[[app]]", f'name = "{app}"']
    root.mkdir(parents=True, exist_ok=True)
    (root / "shipyard.toml").write_text("\n".join(lines) + "\n", encoding="utf-8")


def _storage(env: dict[str, str]) -> FileContextStorage:
    return FileContextStorage(load_settings(env).context_dir)


# ---------------------------------------------------------------------------
# Flag parsing
# ---------------------------------------------------------------------------

class TestFlagParsing:
    def test_single_hyphen_flags(self) -> None:
        args = _parse("status", "-project", "marketing", "-w", "dev", "-label", "team=growth")
        flags = command_flags(args)
        assert flags.project == "marketing"
        assert flags.workspace == "dev"
        assert dict(flags.labels) == {"team": "growth"}

    def test_double_hyphen_and_equals(self) -> None:
        flags = command_flags(_parse("status", "--var=region=eu", "--var", "size=m"))
        assert dict(flags.variables) == {"region": "eu", "size": "m"}

    def test_positional_stops_parsing(self) -> None:
        args = _parse("status", "marketing/web", "-label", "x=y")
        assert args.args == ["marketing/web", "-label", "x=y"]
        assert dict(command_flags(args).labels) == {}

    def test_connection_flags(self) -> None:
        flags = command_flags(
            _parse("status", "-server-addr", "ship:9702", "-server-tls=false")
        )
        assert flags.connection.address == "ship:9702"
        assert flags.connection.tls is False
        assert flags.connection.tls_skip_verify is False

    def test_remote_check_has_no_operation_flags(self) -> None:
        names = _parse("remote-check")._known_flags
        assert "server-addr" in names
        assert "label" not in names
        assert "project" in names

    def test_help_is_not_a_placement_flag(self) -> None:
        names = _parse("status")._known_flags
        assert "h" not in names
        assert "help" not in names
        assert {"label", "var-file", "server-tls-skip-verify", "a"} <= names

    def test_help_after_positional_is_not_misplaced(
        self, project_dir: Path, cli_env: dict[str, str]
    ) -> None:
        assert main(["context", "show", "-plain", "marketing", "-h"], cli_env) == exit_codes.SUCCESS

    @pytest.mark.parametrize(("raw", "expected"), [("true", True), ("0", False), ("Yes", True)])
    def test_parse_bool(self, raw: str, expected: bool) -> None:
        assert parse_bool(raw) is expected

    def test_parse_bool_rejects(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            parse_bool("maybe")

    def test_parse_key_value_rejects(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            parse_key_value("novalue")


# ---------------------------------------------------------------------------
# context command
# ---------------------------------------------------------------------------

class TestContextCommand:
    def test_flag_after_positional(self, cli_env: dict[str, str]) -> None:
        with pytest.raises(FlagOrderError):
            main(["context", "show", "marketing", "-label", "x=y"], cli_env)

    def test_renders_config_project(
        self,
        project_dir: Path,
        cli_env: dict[str, str],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = main(["context", "show", "-plain", "-workspace", "staging", "-var", "region=eu"], cli_env)
        assert code == exit_codes.SUCCESS
        err = capsys.readouterr().err
        assert "marketing" in err
        assert "staging" in err
        assert "var.region" in err

    def test_workspace_from_default_context(
        self,
        tmp_path: Path,
        project_dir: Path,
        cli_env: dict[str, str],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        context_dir = tmp_path / "config" / "shipyard" / "context"
        context_dir.mkdir(parents=True)
        (context_dir / "prod.json").write_text(json.dumps({"workspace": "live"}), encoding="utf-8")
        (context_dir / ".default").write_text("prod\n", encoding="utf-8")

        assert main(["context", "show", "-plain"], cli_env) == exit_codes.SUCCESS
        assert "live" in capsys.readouterr().err

    def test_remote_flag_accepted_for_app_optional(
        self, project_dir: Path, cli_env: dict[str, str]
    ) -> None:
        assert main(["context", "show", "-plain", "-remote"], cli_env) == exit_codes.SUCCESS

    def test_leading_separator_passes_hyphen_values(
        self, project_dir: Path, cli_env: dict[str, str]
    ) -> None:
        with patch("shipyard.cli.render.render_context") as render:
            assert main(["context", "show", "-plain", "--", "-label"], cli_env) == exit_codes.SUCCESS
        ctx = render.call_args.args[0]
        assert ctx.project.project == "marketing"
        assert ctx.requires_runner is False
        assert ctx.args == ("-label",)

    def test_flag_order_checked_before_default_context(
        self, tmp_path: Path, cli_env: dict[str, str]
    ) -> None:
        context_dir = tmp_path / "config" / "shipyard" / "context"
        context_dir.mkdir(parents=True)
        (context_dir / "prod.json").write_text("{", encoding="utf-8")
        (context_dir / ".default").write_text("prod\n", encoding="utf-8")

        with pytest.raises(FlagOrderError):
            main(["context", "show", "marketing", "-label", "x=y"], cli_env)

    def test_client_closed(self, project_dir: Path, cli_env: dict[str, str]) -> None:
        client = _fake_client()
        with patch("shipyard.cli.app.connect_client", return_value=client) as connect:
            assert main(["context", "show", "-plain"], cli_env) == exit_codes.SUCCESS
        connect.assert_called_once()
        client.close.assert_called_once()

    def test_group_without_subcommand_prints_help(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["context"]) == exit_codes.SUCCESS
        out = capsys.readouterr().out
        assert "create" in out
        assert "use" in out


# ---------------------------------------------------------------------------
# status command
# ---------------------------------------------------------------------------

class TestStatusCommand:
    def test_requires_server(self, project_dir: Path, cli_env: dict[str, str]) -> None:
        with pytest.raises(ServerNotConfiguredError):
            main(["status", "-plain"], cli_env)

    def test_all_config_apps(
        self,
        project_dir: Path,
        cli_env: dict[str, str],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        client = _fake_client()
        with patch("shipyard.cli.app.connect_client", return_value=client):
            assert main(["status", "-plain"], cli_env) == exit_codes.SUCCESS
        assert client.get_app_status.call_count == 2
        err = capsys.readouterr().err
        assert "marketing/web" in err
        assert "marketing/worker" in err

    def test_reported_failure_exits_via_sentinel(
        self,
        project_dir: Path,
        cli_env: dict[str, str],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        client = _fake_client(statuses={"web": ServerError("web is down")})
        with patch("shipyard.cli.app.connect_client", return_value=client):
            with pytest.raises(AlreadyReportedError):
                main(["status", "-plain"], cli_env)
        err = capsys.readouterr().err
        assert "web is down" in err
        assert "marketing/worker" in err
        client.close.assert_called_once()

    def test_unexpected_failure_is_aggregated(
        self, project_dir: Path, cli_env: dict[str, str]
    ) -> None:
        client = _fake_client(statuses={"worker": RuntimeError("bug")})
        with patch("shipyard.cli.app.connect_client", return_value=client):
            with pytest.raises(DispatchError) as exc_info:
                main(["status", "-plain"], cli_env)
        assert len(exc_info.value.errors) == 1

    def test_positional_project_needs_remote_capability(
        self, project_dir: Path, cli_env: dict[str, str]
    ) -> None:
        client = _fake_client()
        client.get_project.return_value = ProjectDescriptor(name="billing")
        with patch("shipyard.cli.app.connect_client", return_value=client):
            with pytest.raises(RemoteNotSupportedError):
                main(["status", "-plain", "billing"], cli_env)
        client.close.assert_called_once()

    def test_project_flag_uses_server_apps(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        cli_env: dict[str, str],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.chdir(tmp_path)
        client = _fake_client()
        with patch("shipyard.cli.app.connect_client", return_value=client):
            assert main(["status", "-plain", "-project", "marketing"], cli_env) == exit_codes.SUCCESS
        assert "Using remote runner" in capsys.readouterr().err
        assert client.get_app_status.call_count == 2


# ---------------------------------------------------------------------------
# remote-check command
# ---------------------------------------------------------------------------

class TestRemoteCheckCommand:
    def test_reports_remote(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        cli_env: dict[str, str],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.chdir(tmp_path)
        client = _fake_client()
        with patch("shipyard.cli.app.connect_client", return_value=client):
            assert main(["remote-check", "-plain", "marketing"], cli_env) == exit_codes.SUCCESS
        err = capsys.readouterr().err
        assert "marketing" in err
        assert "remote" in err


# ---------------------------------------------------------------------------
# doctor command
# ---------------------------------------------------------------------------

class TestDoctorRouting:
    @patch("shipyard.cli.doctor.run_doctor", return_value=0)
    def test_routes_to_doctor(self, mock_doctor: MagicMock) -> None:
        assert main(["doctor"]) == exit_codes.SUCCESS
        mock_doctor.assert_called_once()


# ---------------------------------------------------------------------------
# describe command
# ---------------------------------------------------------------------------

class TestDescribeCommand:
    def test_ambiguous_app(self, project_dir: Path, cli_env: dict[str, str]) -> None:
        with pytest.raises(AmbiguousAppTargetError) as exc_info:
            main(["describe", "-plain"], cli_env)
        assert "-app" in (exc_info.value.hint or "")

    def test_app_flag(
        self,
        project_dir: Path,
        cli_env: dict[str, str],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        client = _fake_client()
        with patch("shipyard.cli.app.connect_client", return_value=client):
            assert main(["describe", "-plain", "-app", "web"], cli_env) == exit_codes.SUCCESS
        assert client.get_app_status.call_args.args[0] == AppRef("marketing", "web")
        err = capsys.readouterr().err
        assert "marketing/web" in err
        assert "ready" in err
        client.close.assert_called_once()

    def test_single_app_selected(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        cli_env: dict[str, str],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        _write_config(tmp_path / "billing", "api", runner=False)
        monkeypatch.chdir(tmp_path / "billing")
        assert main(["describe", "-plain"], cli_env) == exit_codes.SUCCESS
        err = capsys.readouterr().err
        assert "billing" in err
        assert "api" in err

    def test_remote_needs_runner_enabled(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        cli_env: dict[str, str],
    ) -> None:
        _write_config(tmp_path / "billing", "api", runner=False)
        monkeypatch.chdir(tmp_path / "billing")
        with pytest.raises(RemoteNotSupportedError) as exc_info:
            main(["describe", "-plain", "-remote"], cli_env)
        assert "[runner]" in (exc_info.value.hint or "")

    def test_remote_allowed_when_runner_enabled(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        cli_env: dict[str, str],
    ) -> None:
        _write_config(tmp_path / "billing", "api", runner=True)
        monkeypatch.chdir(tmp_path / "billing")
        assert main(["describe", "-plain", "-remote"], cli_env) == exit_codes.SUCCESS

    def test_positional_target_connects_once(
        self, project_dir: Path, cli_env: dict[str, str]
    ) -> None:
        client = _fake_client()
        with patch("shipyard.cli.app.connect_client", return_value=client) as connect:
            assert main(["describe", "-plain", "marketing/worker"], cli_env) == exit_codes.SUCCESS
        connect.assert_called_once()
        client.get_project.assert_called_once_with("marketing")
        assert client.get_app_status.call_args.args[0] == AppRef("marketing", "worker")


# ---------------------------------------------------------------------------
# context create / use / list
# ---------------------------------------------------------------------------

class TestContextManagement:
    def test_create_then_use(self, cli_env: dict[str, str]) -> None:
        code = main(
            ["context", "create", "-server-addr", "ship:9702", "-server-tls=false", "-w", "live", "prod"],
            cli_env,
        )
        assert code == exit_codes.SUCCESS
        assert _storage(cli_env).load("prod") == ContextConfig(
            workspace="live",
            server=ServerConfig(address="ship:9702", tls=False),
        )
        assert _storage(cli_env).default_name() == ""

        assert main(["context", "use", "prod"], cli_env) == exit_codes.SUCCESS
        assert _storage(cli_env).default_name() == "prod"

    def test_token_from_environment(self, cli_env: dict[str, str]) -> None:
        env = {**cli_env, "SHIPYARD_SERVER_TOKEN": "s3cret"}
        main(["context", "create", "-server-addr", "ship:9702", "prod"], env)
        assert _storage(cli_env).load("prod").server.auth_token == "s3cret"

    def test_default_context_feeds_later_commands(
        self,
        project_dir: Path,
        cli_env: dict[str, str],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        main(["context", "create", "-set-default", "-workspace", "live", "prod"], cli_env)
        capsys.readouterr()
        assert main(["context", "show", "-plain"], cli_env) == exit_codes.SUCCESS
        assert "live" in capsys.readouterr().err

    def test_create_refuses_existing(self, cli_env: dict[str, str]) -> None:
        main(["context", "create", "prod"], cli_env)
        with pytest.raises(ContextStorageError, match="already exists") as exc_info:
            main(["context", "create", "prod"], cli_env)
        assert "-force" in (exc_info.value.hint or "")
        assert main(["context", "create", "-force", "-w", "canary", "prod"], cli_env) == exit_codes.SUCCESS
        assert _storage(cli_env).load("prod").workspace == "canary"

    def test_use_unknown_context(self, cli_env: dict[str, str]) -> None:
        with pytest.raises(ContextStorageError, match="does not exist"):
            main(["context", "use", "nope"], cli_env)

    def test_use_dash_clears_default(self, cli_env: dict[str, str]) -> None:
        main(["context", "create", "-set-default", "prod"], cli_env)
        assert main(["context", "use", "-"], cli_env) == exit_codes.SUCCESS
        assert _storage(cli_env).load_default() is None

    def test_list_marks_default(
        self, cli_env: dict[str, str], capsys: pytest.CaptureFixture[str]
    ) -> None:
        main(["context", "create", "dev"], cli_env)
        main(["context", "create", "-set-default", "prod"], cli_env)
        capsys.readouterr()
        console_module.set_plain(True)

        assert main(["context", "list"], cli_env) == exit_codes.SUCCESS
        lines = capsys.readouterr().err.splitlines()
        assert lines == ["  dev", "* prod"]

    def test_list_empty(self, cli_env: dict[str, str], capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["context", "list"], cli_env) == exit_codes.SUCCESS
        assert "No contexts saved" in capsys.readouterr().err
