"""Decoding of chat application ``.dat`` image files.

Older files are whole-file XOR of a known image format. Version 4 files
carry a header followed by an AES-ECB encrypted head, a plain middle and an
XOR encrypted tail.
"""

from __future__ import annotations

import logging
import os
import struct
from dataclasses import dataclass
from typing import Iterator

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from chatlogkit.wxgf import WXGF_HEADER, wxam_to_pic

__all__ = [
    "ImageFormat",
    "Dat2ImgError",
    "AesKeyValidator",
    "dat_to_image",
    "dat_to_image_v4",
    "calculate_xor_key_v4",
    "scan_and_set_xor_key",
    "set_aes_key",
    "JPG",
    "PNG",
    "GIF",
    "TIFF",
    "BMP",
    "WXGF",
    "FORMATS",
    "V4_FORMAT1_HEADER",
    "V4_FORMAT2_HEADER",
    "V4_FORMAT1_AES_KEY",
    "DEFAULT_V4_FORMAT2_AES_KEY",
    "DEFAULT_V4_XOR_KEY",
    "JPG_TAIL",
]

log = logging.getLogger(__name__)

_BLOCK = 16
_V4_HEADER_LEN = 15


class Dat2ImgError(ValueError):
    """A dat file could not be decoded."""


@dataclass(frozen=True)
class ImageFormat:
    """Magic bytes and file extension of an image format."""

    header: bytes
    ext: str


JPG = ImageFormat(b"\xff\xd8\xff", "jpg")
PNG = ImageFormat(b"\x89PNG", "png")
GIF = ImageFormat(b"GIF8", "gif")
TIFF = ImageFormat(b"II*\x00", "tiff")
BMP = ImageFormat(b"BM", "bmp")
WXGF = ImageFormat(WXGF_HEADER, "wxgf")
FORMATS = (JPG, PNG, GIF, TIFF, BMP, WXGF)

V4_FORMAT1_HEADER = b"\x07\x08V1"
V4_FORMAT2_HEADER = b"\x07\x08V2"
V4_FORMAT1_AES_KEY = b"cfcd208495d565ef"
DEFAULT_V4_FORMAT2_AES_KEY = b"0000000000000000"
DEFAULT_V4_XOR_KEY = 0x37
JPG_TAIL = b"\xff\xd9"


class _V4Keys:
    """Process-wide keys for version 4 files, updated by scanning or configuration."""

    def __init__(self) -> None:
        self.xor_key = DEFAULT_V4_XOR_KEY
        self.format2_aes_key = DEFAULT_V4_FORMAT2_AES_KEY


_keys = _V4Keys()


def _v4_aes_key(header: bytes) -> bytes | None:
    if header == V4_FORMAT1_HEADER:
        return V4_FORMAT1_AES_KEY
    if header == V4_FORMAT2_HEADER:
        return _keys.format2_aes_key
    return None


def _walk_files(root: str) -> Iterator[str]:
    """Yield files under ``root`` in lexical order; raise OSError on unreadable paths."""
    if not os.path.isdir(root):
        os.lstat(root)
        yield root
        return
    for entry in sorted(os.scandir(root), key=lambda e: e.name):
        if entry.is_dir(follow_symlinks=False):
            yield from _walk_files(entry.path)
        else:
            yield entry.path


def dat_to_image(data: bytes) -> tuple[bytes, str]:
    """Decode a dat file to image bytes and their extension."""
    data = bytes(data)
    if len(data) < 4:
        raise Dat2ImgError(f"data length is too short: {len(data)}")

    if len(data) >= 6:
        aes_key = _v4_aes_key(data[:4])
        if aes_key is not None:
            return dat_to_image_v4(data, aes_key)

    for fmt in FORMATS:
        xor_bit = data[0] ^ fmt.header[0]
        if all(d ^ h == xor_bit for d, h in zip(data, fmt.header)):
            return bytes(b ^ xor_bit for b in data), fmt.ext

    raise Dat2ImgError(f"unknown image type: {data[0]:x} {data[1]:x}")


def calculate_xor_key_v4(data: bytes) -> int:
    """Derive the tail XOR key assuming the plain data ends with the JPEG tail.

    Raises Dat2ImgError when the data is too short or the two tail bytes
    disagree.
    """
    if len(data) < 2:
        raise Dat2ImgError("data too short to calculate XOR key")
    tail = bytes(data[-2:])
    first, second = (t ^ j for t, j in zip(tail, JPG_TAIL))
    if first != second:
        raise Dat2ImgError(f"inconsistent XOR key, first byte gives 0x{first:x}")
    return first


def scan_and_set_xor_key(dir_path: str) -> int:
    """Find a version 4 thumbnail (``*_t.dat``) under ``dir_path`` and adopt its XOR key.

    Returns the key now in use. Raises Dat2ImgError when the directory
    cannot be scanned.
    """
    try:
        for path in _walk_files(dir_path):
            if not os.path.basename(path).endswith("_t.dat"):
                continue
            try:
                with open(path, "rb") as fh:
                    data = fh.read()
            except OSError:
                continue
            if len(data) < _V4_HEADER_LEN or data[:4] not in (
                V4_FORMAT1_HEADER,
                V4_FORMAT2_HEADER,
            ):
                continue
            (xor_len,) = struct.unpack_from("<I", data, 10)
            file_data = data[_V4_HEADER_LEN:]
            if xor_len == 0 or xor_len > len(file_data):
                continue
            try:
                key = calculate_xor_key_v4(file_data[len(file_data) - xor_len:])
            except Dat2ImgError:
                continue
            _keys.xor_key = key
            break
    except OSError as exc:
        raise Dat2ImgError(f"error scanning directory: {exc}") from exc
    return _keys.xor_key


def set_aes_key(key: str) -> None:
    """Set the AES key for version 4 format 2 files from a hex string.

    An empty string is ignored; an invalid one is logged and ignored.
    """
    if not key:
        return
    try:
        decoded = bytes.fromhex(key)
    except ValueError:
        log.error("invalid aes key")
        return
    _keys.format2_aes_key = decoded


def _decrypt_aes_ecb(data: bytes, key: bytes) -> bytes:
    if not data:
        return b""
    try:
        cipher = Cipher(algorithms.AES(bytes(key)), modes.ECB())
    except ValueError as exc:
        raise Dat2ImgError(f"AES decrypt error: {exc}") from exc
    if len(data) % _BLOCK:
        raise Dat2ImgError("AES decrypt error: data length is not a multiple of block size")
    decryptor = cipher.decryptor()
    out = decryptor.update(data) + decryptor.finalize()
    padding = out[-1]
    if 0 < padding <= _BLOCK and out[-padding:] == bytes([padding]) * padding:
        return out[:-padding]
    return out


def dat_to_image_v4(data: bytes, aes_key: bytes) -> tuple[bytes, str]:
    """Decode a version 4 dat file with ``aes_key`` to image bytes and extension."""
    data = bytes(data)
    if len(data) < _V4_HEADER_LEN:
        raise Dat2ImgError(f"data length is too short for WeChat v4 format: {len(data)}")

    aes_len, xor_len = struct.unpack_from("<II", data, 6)
    file_data = data[_V4_HEADER_LEN:]
    if xor_len > len(file_data):
        raise Dat2ImgError("XOR encrypted length exceeds data length")

    aes_len0 = min(aes_len // _BLOCK * _BLOCK + _BLOCK, len(file_data))
    decrypted = _decrypt_aes_ecb(file_data[:aes_len0], aes_key)
    result = bytearray(decrypted[:aes_len] if len(decrypted) > aes_len else decrypted)

    middle_end = len(file_data) - xor_len
    if aes_len0 < middle_end:
        result += file_data[aes_len0:middle_end]

    if xor_len > 0 and middle_end < len(file_data):
        key = _keys.xor_key
        result += bytes(b ^ key for b in file_data[middle_end:])

    result = bytes(result)
    image_type = next((fmt for fmt in FORMATS if result.startswith(fmt.header)), None)
    if image_type is WXGF:
        return wxam_to_pic(result)
    if image_type is None:
        raise Dat2ImgError("unknown image type after decryption")
    return result, image_type.ext


class AesKeyValidator:
    """Checks candidate AES keys against one encrypted block of a real image."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.encrypted_data = b""
        try:
            for file_path in _walk_files(path):
                name = os.path.basename(file_path)
                if not name.endswith(".dat") or name.endswith("_t.dat"):
                    continue
                try:
                    with open(file_path, "rb") as fh:
                        data = fh.read()
                except OSError:
                    continue
                if len(data) >= _V4_HEADER_LEN + _BLOCK and data[:4] == V4_FORMAT2_HEADER:
                    self.encrypted_data = data[_V4_HEADER_LEN:_V4_HEADER_LEN + _BLOCK]
                    break
        except OSError:
            pass

    def validate(self, key: bytes) -> bool:
        """Return True if the first 16 bytes of ``key`` decrypt the sample to an image."""
        if len(key) < _BLOCK or len(self.encrypted_data) != _BLOCK:
            return False
        decryptor = Cipher(algorithms.AES(bytes(key[:_BLOCK])), modes.ECB()).decryptor()
        decrypted = decryptor.update(self.encrypted_data) + decryptor.finalize()
        return decrypted.startswith(JPG.header) or decrypted.startswith(WXGF.header)