"""File-backed storage of named CLI connection contexts.

Each context is a JSON file ``<name>.json`` inside the context
directory; the default context name is kept in a ``.default`` file.
A default of ``-`` means "explicitly none".  ``OSError`` and JSON
errors are re-raised as :class:`~shipyard.exceptions.ContextStorageError`.
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from shipyard.exceptions import ContextStorageError

_DEFAULT_FILE = ".default"
_NAME_PATTERN = re.compile(r"^[-0-9A-Za-z_.]+$")


@dataclass(frozen=True, slots=True)
class ServerConfig:
    address: str = ""
    tls: bool = True
    tls_skip_verify: bool = False
    auth_token: str = ""


@dataclass(frozen=True, slots=True)
class ContextConfig:
    """A stored connection context."""

    workspace: str = ""
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ContextConfig:
        server = raw.get("server") or {}
        if not isinstance(server, dict):
            raise ContextStorageError("context 'server' entry must be an object")
        return cls(
            workspace=str(raw.get("workspace") or ""),
            server=ServerConfig(
                address=str(server.get("address") or ""),
                tls=bool(server.get("tls", True)),
                tls_skip_verify=bool(server.get("tls_skip_verify", False)),
                auth_token=str(server.get("auth_token") or ""),
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class FileContextStorage:
    """Read and write contexts under *directory*.

    Loaded contexts and the default name are cached for the lifetime of
    the instance; writes through the instance update the cache.
    """

    def __init__(self, directory: Path) -> None:
        self._dir = directory
        self._loaded: dict[str, ContextConfig] = {}
        self._default: str | None = None

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, name: str) -> Path:
        if not _NAME_PATTERN.match(name):
            raise ContextStorageError(f"invalid context name: {name!r}")
        return self._dir / f"{name}.json"

    def list_names(self) -> list[str]:
        if not self._dir.is_dir():
            return []
        try:
            return sorted(p.stem for p in self._dir.glob("*.json"))
        except OSError as exc:
            raise ContextStorageError(f"cannot list contexts in {self._dir}: {exc}") from exc

    def default_name(self) -> str:
        if self._default is not None:
            return self._default
        marker = self._dir / _DEFAULT_FILE
        try:
            self._default = marker.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            self._default = ""
        except OSError as exc:
            raise ContextStorageError(f"cannot read default context: {exc}") from exc
        return self._default

    def load(self, name: str) -> ContextConfig:
        path = self._path(name)
        if name in self._loaded:
            return self._loaded[name]
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ContextStorageError(f"context {name!r} does not exist") from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise ContextStorageError(f"cannot load context {name!r}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ContextStorageError(f"context {name!r} is not a JSON object")
        context = ContextConfig.from_dict(raw)
        self._loaded[name] = context
        return context

    def load_default(self) -> ContextConfig | None:
        name = self.default_name()
        if not name or name == "-":
            return None
        return self.load(name)

    def save(self, name: str, context: ContextConfig) -> None:
        path = self._path(name)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(context.to_dict(), indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            raise ContextStorageError(f"cannot save context {name!r}: {exc}") from exc
        self._loaded[name] = context

    def set_default(self, name: str) -> None:
        if name != "-" and not self._path(name).is_file():
            raise ContextStorageError(f"context {name!r} does not exist")
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            (self._dir / _DEFAULT_FILE).write_text(name + "\n", encoding="utf-8")
        except OSError as exc:
            raise ContextStorageError(f"cannot set default context: {exc}") from exc
        self._default = name
