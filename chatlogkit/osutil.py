"""File system helpers."""

from __future__ import annotations

import logging
import os
import re
import sys

__all__ = [
    "find_files_with_patterns",
    "default_work_dir",
    "get_dir_size",
    "byte_count_si",
    "prepare_dir",
]

log = logging.getLogger(__name__)


def find_files_with_patterns(directory: str, pattern: str, recursive: bool) -> list[str]:
    """Return paths of files under ``directory`` whose names match ``pattern``.

    Raises ValueError for a bad pattern, FileNotFoundError / NotADirectoryError
    for a bad directory.
    """
    try:
        regex = re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"invalid regular expression {pattern!r}: {exc}") from exc
    if not os.path.exists(directory):
        raise FileNotFoundError(f"cannot access directory {directory!r}")
    if not os.path.isdir(directory):
        raise NotADirectoryError(f"{directory!r} is not a directory")

    def _raise(exc: OSError) -> None:
        raise exc

    matched: list[str] = []
    for root, dirs, files in os.walk(directory, onerror=_raise):
        dirs.sort()
        if not recursive:
            dirs.clear()
        rel = os.path.relpath(root, directory)
        for name in sorted(files):
            if regex.search(name):
                if rel == ".":
                    matched.append(os.path.join(directory, name))
                else:
                    matched.append(os.path.join(directory, rel, name))
    return sorted(matched)


def default_work_dir(account: str) -> str:
    """Return the default working directory, optionally for one account."""
    if sys.platform.startswith("win"):
        parts = [os.environ.get("USERPROFILE", ""), "Documents", "chatlog"]
    elif sys.platform == "darwin":
        parts = [os.environ.get("HOME", ""), "Documents", "chatlog"]
    else:
        parts = [os.environ.get("HOME", ""), "chatlog"]
    if account:
        parts.append(account)
    return os.path.join(*parts)


def get_dir_size(directory: str) -> str:
    """Return the total size of a directory tree as a human readable string."""
    total = 0
    try:
        total += os.lstat(directory).st_size
    except OSError:
        return byte_count_si(0)
    for root, dirs, files in os.walk(directory):
        for name in dirs + files:
            try:
                total += os.lstat(os.path.join(root, name)).st_size
            except OSError:
                pass
    return byte_count_si(total)


def byte_count_si(count: int) -> str:
    """Format a byte count with SI (powers of 1000) units."""
    unit = 1000
    if count < unit:
        return f"{count} B"
    div, exp = unit, 0
    n = count // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{count / div:.1f} {'kMGTPE'[exp]}B"


def prepare_dir(path: str) -> None:
    """Ensure ``path`` exists as a directory, creating it if needed."""
    if not os.path.exists(path):
        os.makedirs(path, mode=0o755, exist_ok=True)
    elif not os.path.isdir(path):
        log.debug("%s is not a directory", path)
        raise NotADirectoryError(f"{path} is not a directory")