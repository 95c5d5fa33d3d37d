"""Naming, hashing and parsing of cached temporary file copies.

A cached copy is named ``instanceID_+baseName_+ext_+pathHash_+dataHash.ext``;
the ``_+`` separator keeps underscores in original names unambiguous.
"""

from __future__ import annotations

import os
import struct
import sys
from dataclasses import dataclass

__all__ = [
    "ParsedTempName",
    "xxh64",
    "hash_string",
    "hash_file_content",
    "extract_file_extension",
    "parse_hash_components",
    "is_auxiliary_database_file",
    "extract_base_name",
    "clean_process_name",
    "get_process_name",
    "cache_key",
    "version_key",
    "temp_file_name",
    "parse_temp_name",
]

NAME_SEP = "_+"
MAX_BASE_NAME_LEN = 100
PATH_HASH_LEN = 8
DATA_HASH_LEN = 16
DEFAULT_EXT = "bin"

_MASK64 = 0xFFFFFFFFFFFFFFFF
_P1 = 11400714785092984097
_P2 = 14029467366897019727
_P3 = 1609587929392839161
_P4 = 9650029242287828579
_P5 = 2870177450012600261

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193

_READ_CHUNK = 256 * 1024


def _rotl(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (64 - bits))) & _MASK64


def _round(acc: int, lane: int) -> int:
    acc = (acc + lane * _P2) & _MASK64
    return (_rotl(acc, 31) * _P1) & _MASK64


def _merge(acc: int, value: int) -> int:
    acc ^= _round(0, value)
    return (acc * _P1 + _P4) & _MASK64


class _XXH64:
    """Incremental 64-bit xxHash."""

    def __init__(self, seed: int = 0) -> None:
        seed &= _MASK64
        self._seed = seed
        self._v = [
            (seed + _P1 + _P2) & _MASK64,
            (seed + _P2) & _MASK64,
            seed,
            (seed - _P1) & _MASK64,
        ]
        self._buffer = b""
        self._total = 0

    def update(self, data: bytes) -> None:
        self._total += len(data)
        data = self._buffer + bytes(data)
        stripes = len(data) // 32
        v1, v2, v3, v4 = self._v
        for offset in range(0, stripes * 32, 32):
            a, b, c, d = struct.unpack_from("<4Q", data, offset)
            v1 = _round(v1, a)
            v2 = _round(v2, b)
            v3 = _round(v3, c)
            v4 = _round(v4, d)
        self._v = [v1, v2, v3, v4]
        self._buffer = data[stripes * 32:]

    def intdigest(self) -> int:
        if self._total >= 32:
            v1, v2, v3, v4 = self._v
            h = (_rotl(v1, 1) + _rotl(v2, 7) + _rotl(v3, 12) + _rotl(v4, 18)) & _MASK64
            for v in (v1, v2, v3, v4):
                h = _merge(h, v)
        else:
            h = (self._seed + _P5) & _MASK64
        h = (h + self._total) & _MASK64

        rest = self._buffer
        pos = 0
        while pos + 8 <= len(rest):
            (lane,) = struct.unpack_from("<Q", rest, pos)
            h ^= _round(0, lane)
            h = (_rotl(h, 27) * _P1 + _P4) & _MASK64
            pos += 8
        if pos + 4 <= len(rest):
            (lane,) = struct.unpack_from("<I", rest, pos)
            h ^= (lane * _P1) & _MASK64
            h = (_rotl(h, 23) * _P2 + _P3) & _MASK64
            pos += 4
        for byte in rest[pos:]:
            h ^= (byte * _P5) & _MASK64
            h = (_rotl(h, 11) * _P1) & _MASK64

        h ^= h >> 33
        h = (h * _P2) & _MASK64
        h ^= h >> 29
        h = (h * _P3) & _MASK64
        h ^= h >> 32
        return h


def xxh64(data: bytes, seed: int = 0) -> int:
    """Return the 64-bit xxHash of ``data``."""
    hasher = _XXH64(seed)
    hasher.update(data)
    return hasher.intdigest()


def hash_string(text: str) -> str:
    """Return the 32-bit FNV-1a hash of ``text`` in lower-case hex."""
    h = _FNV32_OFFSET
    for byte in text.encode("utf-8"):
        h ^= byte
        h = (h * _FNV32_PRIME) & 0xFFFFFFFF
    return f"{h:x}"


def hash_file_content(path: str) -> str:
    """Return the xxHash64 of a file's whole content in lower-case hex.

    Raises OSError when the file cannot be read.
    """
    hasher = _XXH64()
    with open(path, "rb") as fh:
        while chunk := fh.read(_READ_CHUNK):
            hasher.update(chunk)
    return f"{hasher.intdigest():x}"


def _split_seps() -> str:
    return os.sep + (os.altsep or "")


def _ext(path: str) -> str:
    """Extension of the last path element, dot included, or ''."""
    seps = _split_seps()
    for index in range(len(path) - 1, -1, -1):
        char = path[index]
        if char in seps:
            break
        if char == ".":
            return path[index:]
    return ""


def _base(path: str) -> str:
    """Last element of ``path``, ignoring trailing separators."""
    if path == "":
        return "."
    seps = _split_seps()
    stripped = path.rstrip(seps)
    if stripped == "":
        return os.sep
    for index in range(len(stripped) - 1, -1, -1):
        if stripped[index] in seps:
            return stripped[index + 1:]
    return stripped


def extract_file_extension(path: str) -> str:
    """Return the extension of ``path`` without its dot, or ``bin`` if it has none."""
    ext = _ext(path)
    if ext.startswith("."):
        ext = ext[1:]
    return ext or DEFAULT_EXT


def parse_hash_components(combined: str) -> tuple[str, str]:
    """Split ``pathHash_dataHash`` into its two parts."""
    parts = combined.split("_")
    if len(parts) >= 2:
        return parts[0], parts[1]
    return parts[0], ""


def is_auxiliary_database_file(expected_ext: str, actual_ext: str) -> bool:
    """Return True for SQLite side files (``db-shm``, ``db-wal``) next to a ``db``."""
    return expected_ext == "db" and actual_ext in ("db-shm", "db-wal")


def extract_base_name(path: str) -> str:
    """Return the file name of ``path`` without directory and extension."""
    file_name = _base(path)
    file_ext = _ext(file_name)
    base = file_name
    if file_ext and len(file_name) > len(file_ext):
        base = file_name[: -len(file_ext)]
    if base == "" or base == file_ext:
        base = "file"
    return base


def clean_process_name(name: str) -> str:
    """Replace every character other than ASCII letters, digits, ``-`` and ``_`` with ``_``."""
    return "".join(
        char if (char.isascii() and char.isalnum()) or char in "-_" else "_" for char in name
    )


def get_process_name() -> str:
    """Return a file-system-safe name of the running program."""
    executable = sys.argv[0] if sys.argv and sys.argv[0] else sys.executable
    if not executable:
        return "unknown"
    base = _base(executable)
    ext = _ext(base)
    if ext:
        base = base[: -len(ext)]
    return clean_process_name(base)


def cache_key(instance_id: str, base_name: str, ext: str, path_hash: str, data_hash: str) -> str:
    """Return the index key of one cached copy."""
    return "_".join((instance_id, base_name, ext, path_hash, data_hash))


def version_key(instance_id: str, base_name: str, ext: str, path_hash: str) -> str:
    """Return the key shared by every version of one original file."""
    return "_".join((instance_id, base_name, ext, path_hash))


def temp_file_name(instance_id: str, original_path: str, data_hash: str) -> str:
    """Return the cache file name for ``original_path`` with content hash ``data_hash``."""
    file_ext = _ext(_base(original_path))
    base = extract_base_name(original_path)[:MAX_BASE_NAME_LEN]
    path_hash = hash_string(original_path)[:PATH_HASH_LEN]
    clean_ext = file_ext[1:] if file_ext.startswith(".") else file_ext
    clean_ext = clean_ext or DEFAULT_EXT
    return NAME_SEP.join(
        (instance_id, base, clean_ext, path_hash, data_hash[:DATA_HASH_LEN])
    ) + file_ext


@dataclass(frozen=True)
class ParsedTempName:
    """The parts encoded in a cache file name."""

    base_name: str
    ext: str
    path_hash: str
    data_hash: str

    @property
    def combined_hash(self) -> str:
        """``pathHash_dataHash`` as used by the index."""
        return f"{self.path_hash}_{self.data_hash}"


def parse_temp_name(instance_id: str, file_name: str) -> ParsedTempName | None:
    """Parse a cache file name that belongs to ``instance_id``.

    Returns None for names of other instances, malformed names, SQLite side
    files and names whose real extension differs from the declared one.
    """
    parts = file_name.split(NAME_SEP)
    if len(parts) < 5 or parts[0] != instance_id:
        return None
    base_name, ext, path_hash = parts[1], parts[2], parts[3]
    data_hash = parts[4].split(".", 1)[0]
    actual_ext = extract_file_extension(file_name)
    if is_auxiliary_database_file(ext, actual_ext) or ext != actual_ext:
        return None
    return ParsedTempName(base_name, ext, path_hash, data_hash)