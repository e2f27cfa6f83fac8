"""shipyard — command execution-context resolver and app dispatcher.

Resolves which project, app and workspace a command targets, decides
whether work is routed to a remote runner, and fans operations out
across apps with aggregated error reporting.
"""

from shipyard.version import __version__

__all__: list[str] = ["__version__"]
