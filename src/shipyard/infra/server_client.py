"""HTTP implementation of :class:`~shipyard.core.protocols.ServerClient`.

This module is the **only** place in the codebase that imports
``requests``.  Transport failures, HTTP error statuses and malformed
payloads are all re-raised as :class:`~shipyard.exceptions.ServerError`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import requests

from shipyard.core.models import (
    AppRef,
    AppStatus,
    ConnectionFlags,
    DataSource,
    DataSourceKind,
    ProjectDescriptor,
    RunnerProfile,
)
from shipyard.exceptions import ServerError, ServerNotConfiguredError
from shipyard.infra.context_storage import FileContextStorage, ServerConfig
from shipyard.settings import SERVER_ADDR_ENV, SERVER_TOKEN_ENV

logger = logging.getLogger(__name__)

RUNNER_ID_HEADER: str = "X-Shipyard-Runner-Id"
DEFAULT_TIMEOUT: float = 30.0


class HttpServerClient:
    """Talk to the shipyard server's JSON API.

    Parameters
    ----------
    base_url:
        Server address including scheme, e.g. ``https://ship.example:9702``.
    token:
        Bearer token sent with every request; may be empty.
    verify:
        TLS certificate verification, forwarded to ``requests``.
    runner_id:
        Identifier of the active local runner, if any.
    session:
        Injected session, mainly for tests.  Only a session the client
        created itself is closed by :meth:`close`.

    Use the client as a context manager, or call :meth:`close` when done.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str = "",
        verify: bool = True,
        runner_id: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._verify = verify
        self._runner_id = runner_id
        self._timeout = timeout
        self._owns_session = session is None
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self._base_url

    def local_runner_id(self) -> str | None:
        return self._runner_id

    def close(self) -> None:
        """Release the HTTP session if this client created it."""
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> HttpServerClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # API calls
    # ------------------------------------------------------------------

    def get_project(self, name: str) -> ProjectDescriptor:
        payload = self._get(f"/v1/projects/{quote(name, safe='')}")
        project = payload.get("project", payload)
        if not isinstance(project, dict):
            raise ServerError(f"malformed project response for {name!r}")
        return _parse_project(project, fallback_name=name)

    def list_ondemand_runner_configs(self) -> list[RunnerProfile]:
        payload = self._get("/v1/ondemand-runner-configs")
        configs = payload.get("configs", [])
        if not isinstance(configs, list):
            raise ServerError("malformed runner profile listing")
        return [
            RunnerProfile(
                name=str(entry.get("name", "")),
                plugin_type=str(entry.get("plugin_type", "")),
                default=bool(entry.get("default", False)),
            )
            for entry in configs
            if isinstance(entry, dict)
        ]

    def get_app_status(
        self,
        app: AppRef,
        workspace: str,
        *,
        runner_id: str | None = None,
    ) -> AppStatus:
        path = (
            f"/v1/projects/{quote(app.project, safe='')}"
            f"/apps/{quote(app.app, safe='')}/status"
        )
        payload = self._get(path, params={"workspace": workspace}, runner_id=runner_id)
        return AppStatus(
            app=app,
            workspace=str(payload.get("workspace") or workspace),
            health=str(payload.get("health") or "unknown"),
            message=str(payload.get("message") or ""),
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _headers(self, runner_id: str | None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        if runner_id:
            headers[RUNNER_ID_HEADER] = runner_id
        return headers

    def _get(
        self,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        runner_id: str | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        logger.debug("GET %s", url)
        try:
            response = self._session.get(
                url,
                params=dict(params or {}),
                headers=self._headers(runner_id),
                timeout=self._timeout,
                verify=self._verify,
            )
        except requests.RequestException as exc:
            raise ServerError(
                f"Cannot reach the server at {self._base_url}: {exc}",
                hint="Check -server-addr or the address in your default context.",
            ) from exc

        if response.status_code == 404:
            raise ServerError(f"Not found: {path}")
        if response.status_code >= 400:
            raise ServerError(
                f"Server request failed: {response.status_code} {response.text}",
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ServerError(f"Server returned invalid JSON for {path}") from exc
        if not isinstance(payload, dict):
            raise ServerError(f"Server returned an unexpected payload for {path}")
        return payload


def _parse_project(raw: dict[str, Any], *, fallback_name: str) -> ProjectDescriptor:
    apps = raw.get("applications") or []
    names = tuple(
        str(entry.get("name")) if isinstance(entry, dict) else str(entry)
        for entry in apps
    )

    data_source: DataSource | None = None
    raw_source = raw.get("data_source")
    if isinstance(raw_source, dict) and raw_source.get("type"):
        settings = raw_source.get("settings") or {}
        data_source = DataSource(
            kind=DataSourceKind.parse(str(raw_source["type"])),
            settings={str(k): str(v) for k, v in settings.items()} if isinstance(settings, dict) else {},
        )

    runner = raw.get("ondemand_runner")
    if isinstance(runner, dict):
        runner = runner.get("name")

    return ProjectDescriptor(
        name=str(raw.get("name") or fallback_name),
        applications=names,
        remote_enabled=bool(raw.get("remote_enabled", False)),
        data_source=data_source,
        ondemand_runner=str(runner) if runner else None,
    )


# ---------------------------------------------------------------------------
# Construction from flags / stored context / environment
# ---------------------------------------------------------------------------

def _base_url(address: str, tls: bool) -> str:
    if "://" in address:
        return address
    return f"{'https' if tls else 'http'}://{address}"


def connect_client(
    connection: ConnectionFlags,
    storage: FileContextStorage | None,
    environ: Mapping[str, str],
    *,
    runner_id: str | None = None,
    required: bool = False,
) -> HttpServerClient | None:
    """Build a client from flags, else the environment, else the default context.

    Returns ``None`` when no address is known and *required* is false.

    Raises
    ------
    ServerNotConfiguredError
        No address is known and *required* is true.
    ContextStorageError
        The default context could not be read.
    """
    server: ServerConfig | None = None
    if connection.address:
        server = ServerConfig(
            address=connection.address,
            tls=connection.tls,
            tls_skip_verify=connection.tls_skip_verify,
            auth_token=environ.get(SERVER_TOKEN_ENV, ""),
        )
    elif environ.get(SERVER_ADDR_ENV):
        server = ServerConfig(
            address=environ[SERVER_ADDR_ENV],
            auth_token=environ.get(SERVER_TOKEN_ENV, ""),
        )
    elif storage is not None:
        context = storage.load_default()
        if context is not None and context.server.address:
            server = context.server

    if server is None:
        if required:
            raise ServerNotConfiguredError(
                "No shipyard server is configured.",
                hint=(
                    f"Pass -server-addr, set {SERVER_ADDR_ENV}, or run "
                    "'shipyard context create -set-default NAME'."
                ),
            )
        return None

    logger.debug("connecting to %s", server.address)
    return HttpServerClient(
        _base_url(server.address, server.tls),
        token=server.auth_token,
        verify=not server.tls_skip_verify,
        runner_id=runner_id,
    )
