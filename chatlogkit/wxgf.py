"""Extraction of pictures from ``wxgf`` containers of HEVC data.

A ``wxgf`` blob holds one or more length-prefixed Annex-B partitions. A
still image is the largest partition; an animation alternates mask and
colour frames. Conversion to JPEG or GIF is done by the ``ffmpeg`` program,
found through the ``FFMPEG_PATH`` environment variable or on ``PATH``.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass, field

__all__ = [
    "WxgfError",
    "Partition",
    "Partitions",
    "find_data_partition",
    "is_ffmpeg_available",
    "convert_to_jpg",
    "convert_anime_to_gif",
    "wxam_to_pic",
    "WXGF_HEADER",
    "ENV_FFMPEG_PATH",
    "MIN_RATIO",
]

log = logging.getLogger(__name__)

WXGF_HEADER = b"wxgf"
ENV_FFMPEG_PATH = "FFMPEG_PATH"
DEFAULT_FFMPEG = "ffmpeg"
MIN_RATIO = 0.6

_START_CODES = (b"\x00\x00\x00\x01", b"\x00\x00\x01")
_GIF_FILTER = "[0:v][1:v]alphamerge,split[s0][s1];[s0]palettegen[p];[s1][p]paletteuse"


class WxgfError(ValueError):
    """A wxgf blob is malformed or could not be converted."""


@dataclass
class Partition:
    """One length-prefixed data block inside a wxgf blob."""

    offset: int
    size: int
    ratio: float


@dataclass
class Partitions:
    """All partitions found in a blob and the largest of them."""

    partitions: list[Partition] = field(default_factory=list)
    max_ratio: float = 0.0
    max_index: int = 0

    def like_anime(self) -> bool:
        """Return True if the blob looks like an animation rather than a still."""
        return len(self.partitions) > 1 and self.max_ratio < MIN_RATIO


def find_data_partition(data: bytes) -> Partitions:
    """Locate the data partitions of a wxgf blob.

    Raises WxgfError when the header is invalid or no partition is found.
    """
    data = bytes(data)
    if len(data) < 5:
        raise WxgfError("invalid wxgf")
    header_len = data[4]
    if header_len >= len(data):
        raise WxgfError("invalid wxgf")

    for pattern in _START_CODES:
        result = Partitions()
        offset = 0
        while header_len + offset <= len(data):
            start = header_len + offset
            abs_index = data.find(pattern, start)
            if abs_index == -1:
                break
            rel = abs_index - start
            if abs_index < 4:
                offset += rel + 1
                continue
            length = int.from_bytes(data[abs_index - 4:abs_index], "big")
            if length <= 0 or abs_index + length > len(data):
                offset += rel + 1
                continue
            partition = Partition(abs_index, length, length / len(data))
            result.partitions.append(partition)
            if partition.ratio > result.max_ratio:
                result.max_ratio = partition.ratio
                result.max_index = len(result.partitions) - 1
            offset += rel + length
        if result.partitions:
            return result

    raise WxgfError("no partition found")


def _ffmpeg_path() -> str:
    return os.environ.get(ENV_FFMPEG_PATH) or DEFAULT_FFMPEG


def is_ffmpeg_available() -> bool:
    """Return True if the ffmpeg program can be run."""
    try:
        proc = subprocess.run(
            [_ffmpeg_path(), "-version"], capture_output=True, check=False
        )
    except OSError:
        return False
    return proc.returncode == 0


def _ffmpeg_mode() -> bool:
    return bool(os.environ.get(ENV_FFMPEG_PATH)) or is_ffmpeg_available()


def _run_ffmpeg(args: list[str], stdin: bytes | None = None) -> bytes:
    try:
        proc = subprocess.run(
            [_ffmpeg_path(), *args], input=stdin, capture_output=True, check=False
        )
    except OSError as exc:
        raise WxgfError(f"ffmpeg failed: {exc}") from exc
    if proc.returncode != 0:
        stderr = (proc.stderr or b"").decode("utf-8", "replace").strip()
        raise WxgfError(f"ffmpeg failed with exit code {proc.returncode}: {stderr}")
    if not proc.stdout:
        raise WxgfError("ffmpeg output is empty")
    return proc.stdout


def convert_to_jpg(data: bytes) -> bytes:
    """Encode the first frame of an HEVC stream as JPEG with ffmpeg."""
    return _run_ffmpeg(
        ["-i", "-", "-vframes", "1", "-c:v", "mjpeg", "-q:v", "4", "-f", "image2", "-"],
        stdin=bytes(data),
    )


def _write_temp_file(frames: list[bytes]) -> str:
    fd, path = tempfile.mkstemp(prefix="anime-")
    try:
        with os.fdopen(fd, "wb") as fh:
            for frame in frames:
                fh.write(frame)
    except OSError as exc:
        try:
            os.remove(path)
        except OSError:
            pass
        raise WxgfError(f"failed to write anime temp file: {exc}") from exc
    return path


def convert_anime_to_gif(anime_frames: list[bytes], mask_frames: list[bytes]) -> bytes:
    """Merge colour and mask frame streams into a GIF with ffmpeg."""
    anime_path = _write_temp_file(anime_frames)
    try:
        mask_path = _write_temp_file(mask_frames)
        try:
            return _run_ffmpeg(
                ["-i", anime_path, "-i", mask_path, "-filter_complex", _GIF_FILTER, "-f", "gif", "-"]
            )
        finally:
            os.remove(mask_path)
    finally:
        os.remove(anime_path)


def wxam_to_pic(data: bytes) -> tuple[bytes, str]:
    """Convert a wxgf blob to picture bytes and their extension.

    Stills become JPEG, animations GIF. Raises WxgfError on malformed input
    or when ffmpeg is not available.
    """
    data = bytes(data)
    if len(data) < 15 or data[:4] != WXGF_HEADER:
        raise WxgfError("invalid wxgf")

    found = find_data_partition(data)
    if not _ffmpeg_mode():
        raise WxgfError("ffmpeg is required to convert wxgf images")

    if found.like_anime():
        anime_frames: list[bytes] = []
        mask_frames: list[bytes] = []
        for index, part in enumerate(found.partitions):
            chunk = data[part.offset:part.offset + part.size]
            (mask_frames if index % 2 == 0 else anime_frames).append(chunk)
        return convert_anime_to_gif(anime_frames, mask_frames), "gif"

    part = found.partitions[found.max_index]
    return convert_to_jpg(data[part.offset:part.offset + part.size]), "jpg"