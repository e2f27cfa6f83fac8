"""Infrastructure layer — external system integration.

This layer wraps all interaction with the filesystem (project
configuration, variable files, stored contexts) and the shipyard
server.  Every raw third-party exception must be caught here and
re-raised as a :class:`~shipyard.exceptions.ShipyardError` subclass.

Rules
-----
* No imports from ``cli``.
* No user-facing output (no ``print()``, no Rich rendering).
* Must expose clean, typed interfaces consumed by the core layer.
"""

from shipyard.infra.config_loader import TomlConfigLoader, find_config_file
from shipyard.infra.context_storage import ContextConfig, FileContextStorage, ServerConfig
from shipyard.infra.server_client import HttpServerClient, connect_client
from shipyard.infra.var_files import read_var_file, read_var_files

__all__: list[str] = [
    "ContextConfig",
    "FileContextStorage",
    "HttpServerClient",
    "ServerConfig",
    "TomlConfigLoader",
    "connect_client",
    "find_config_file",
    "read_var_file",
    "read_var_files",
]
