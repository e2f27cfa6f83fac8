"""Allow ``python -m shipyard`` invocation.

This module simply delegates to the CLI error-boundary entry point so
that ``python -m shipyard`` behaves identically to the ``shipyard``
console script.
"""

from __future__ import annotations

from shipyard.cli.app import cli

if __name__ == "__main__":
    cli()
