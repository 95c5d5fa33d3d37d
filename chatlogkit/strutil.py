"""Small string and number helpers."""

from __future__ import annotations

import re
from typing import Any

__all__ = [
    "is_normal_string",
    "must_any_to_int",
    "is_numeric",
    "split_int64_to_two_int32",
    "str_to_list",
]

_INT_RE = re.compile(r"^[+-]?[0-9]+$")


def is_normal_string(data: bytes) -> bool:
    """Return True if ``data`` is valid UTF-8 made only of printable characters."""
    try:
        text = bytes(data).decode("utf-8")
    except UnicodeDecodeError:
        return False
    return text.isprintable()


def must_any_to_int(value: Any) -> int:
    """Convert the textual form of ``value`` to an int, or 0 if it is not one."""
    text = str(value)
    if _INT_RE.match(text):
        return int(text)
    return 0


def is_numeric(text: str) -> bool:
    """Return True if ``text`` is non-empty and made only of decimal digits."""
    return len(text) > 0 and all(c.isdecimal() for c in text)


def split_int64_to_two_int32(value: int) -> tuple[int, int]:
    """Split a 64-bit integer into its low 32 bits and the remaining high part."""
    return value & 0xFFFFFFFF, value >> 32


def str_to_list(text: str, sep: str) -> list[str]:
    """Split ``text`` on ``sep``, trimming items and dropping blanks and duplicates."""
    if text == "":
        return []
    seen: dict[str, None] = {}
    for item in text.split(sep):
        item = item.strip()
        if item:
            seen.setdefault(item, None)
    return list(seen)