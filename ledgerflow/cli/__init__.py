"""
ledgerflow.cli
==============

Typer-based command-line interface, installed as the `ledgerflow` console
script. Typer is only imported when the CLI is actually used.

    $ ledgerflow --help
    >>> from ledgerflow.cli import main
    >>> main(["version"])
"""

from __future__ import annotations

from importlib import import_module
from typing import Any, List, Optional

__all__: List[str] = ["main", "app"]

_SUBMODULE = "ledgerflow.cli.main"


def __getattr__(name: str) -> Any:  # PEP 562 lazy attribute access
    if name == "app":
        return import_module(_SUBMODULE).app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI and return the process exit code."""
    return int(import_module(_SUBMODULE).main(argv))
