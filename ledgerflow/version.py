"""
Version helpers for ledgerflow.
We keep a static __version__ (PEP 440) and expose a small structured view of it
that the CLI prints.
"""

from __future__ import annotations

from dataclasses import dataclass
from importlib import metadata
from typing import Optional

# Bump this when publishing
__version__ = "0.3.0"


@dataclass(frozen=True)
class VersionInfo:
    base: str
    installed: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        if not self.installed or self.installed == self.base:
            return self.base
        return f"{self.base} (installed {self.installed})"


def _installed_version() -> Optional[str]:
    try:
        return metadata.version("ledgerflow")
    except metadata.PackageNotFoundError:
        return None


def version_info() -> VersionInfo:
    """Structured version info (source version plus installed dist version, if any)."""
    return VersionInfo(base=__version__, installed=_installed_version())


def version() -> str:
    """Human-friendly string, e.g. '0.3.0'."""
    return str(version_info())


__all__ = ["__version__", "VersionInfo", "version_info", "version"]
