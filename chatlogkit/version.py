"""Version information for the package."""

from __future__ import annotations

import platform
import sys
from importlib import metadata

__all__ = ["get_version", "get_more"]

_DIST = "chatlogkit"


def get_version() -> str:
    """Return the installed version, or ``(dev)`` when not installed."""
    try:
        return metadata.version(_DIST)
    except metadata.PackageNotFoundError:
        return "(dev)"


def _build_info() -> str:
    lines = [f"python\t{platform.python_version()}", f"path\t{_DIST}", f"mod\t{_DIST}\t{get_version()}"]
    try:
        requires = metadata.requires(_DIST) or []
    except metadata.PackageNotFoundError:
        requires = []
    lines.extend(f"dep\t{req}" for req in requires)
    return "\n".join(lines) + "\n"


def get_more(mod: bool) -> str:
    """Return a version line, or the build information when ``mod`` is true."""
    if mod:
        info = _build_info()
        if info:
            return "\t" + info[:-1].replace("\n", "\n\t") + "\n"
    return (
        f"version {get_version()} python{platform.python_version()} "
        f"{sys.platform}/{platform.machine()}\n"
    )