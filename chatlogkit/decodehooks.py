"""Conversions applied to string configuration values before decoding."""

from __future__ import annotations

import dataclasses
import json
from datetime import timedelta
from typing import Any, get_origin

from chatlogkit.timeparse import _parse_duration

__all__ = [
    "DecodeHookError",
    "string_to_map",
    "string_to_list",
    "string_to_struct",
    "string_to_duration",
    "apply_decode_hooks",
]


class DecodeHookError(ValueError):
    """A string value could not be converted to its target type."""


def string_to_map(data: str) -> dict[str, str]:
    """Parse ``k1=v1,k2=v2`` into a dictionary."""
    if data == "":
        return {}
    result: dict[str, str] = {}
    for pair in data.split(","):
        key, found, value = pair.partition("=")
        if not found:
            raise DecodeHookError(f"invalid key-value pair: {pair}")
        result[key.strip()] = value.strip()
    return result


def string_to_list(data: str) -> Any:
    """Parse a JSON array string; other input is returned unchanged."""
    if data == "":
        return []
    try:
        result = json.loads(data)
    except ValueError:
        return data
    return result if isinstance(result, list) else data


def string_to_struct(data: str) -> Any:
    """Parse a JSON object string; other input is returned unchanged."""
    if data == "":
        return {}
    try:
        result = json.loads(data)
    except ValueError:
        return data
    return result if isinstance(result, dict) else data


def string_to_duration(data: str) -> timedelta:
    """Parse a duration string such as ``1h30m``."""
    try:
        return _parse_duration(data)
    except ValueError as exc:
        raise DecodeHookError(str(exc)) from exc


def _kind(target: Any) -> Any:
    return get_origin(target) or target


def apply_decode_hooks(data: Any, target: Any) -> Any:
    """Convert ``data`` towards ``target`` with the duration, map, struct and list hooks."""
    kind = _kind(target)
    if isinstance(data, str) and kind is timedelta:
        data = string_to_duration(data)
    if isinstance(data, str) and kind is dict:
        data = string_to_map(data)
    if isinstance(data, str) and isinstance(kind, type) and dataclasses.is_dataclass(kind):
        data = string_to_struct(data)
    if isinstance(data, str) and kind is list:
        data = string_to_list(data)
    return data