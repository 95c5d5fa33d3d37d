"""Block decompression helpers."""

from __future__ import annotations

import io

import lz4.block
import zstandard

__all__ = ["lz4_decompress", "zstd_decompress"]


def lz4_decompress(data: bytes) -> bytes:
    """Decompress a raw LZ4 block, assuming a ratio of at most 4.

    Raises ValueError on corrupt input.
    """
    try:
        return lz4.block.decompress(bytes(data), uncompressed_size=len(data) * 4)
    except (lz4.block.LZ4BlockError, ValueError) as exc:
        raise ValueError(f"lz4 decompress failed: {exc}") from exc


def zstd_decompress(data: bytes) -> bytes:
    """Decompress all zstd frames in ``data``.

    Raises ValueError on corrupt input.
    """
    dctx = zstandard.ZstdDecompressor()
    out = bytearray()
    try:
        with dctx.stream_reader(io.BytesIO(bytes(data)), read_across_frames=True) as reader:
            while chunk := reader.read(65536):
                out += chunk
    except zstandard.ZstdError as exc:
        raise ValueError(f"zstd decompress failed: {exc}") from exc
    return bytes(out)