"""Version information of an installed application."""

from __future__ import annotations

import plistlib
import sys
from dataclasses import asdict, dataclass
from pathlib import Path

__all__ = ["AppInfo", "parse_info_plist", "read_app_info"]

INFO_FILE = "Info.plist"


@dataclass
class AppInfo:
    """Version details of an application binary."""

    file_path: str = ""
    company_name: str = ""
    file_description: str = ""
    version: int = 0
    full_version: str = ""
    legal_copyright: str = ""
    product_name: str = ""
    product_version: str = ""

    def to_dict(self) -> dict:
        """Return the fields as a plain dictionary."""
        return asdict(self)


def _major(full_version: str) -> int:
    head = full_version.split(".")[0]
    try:
        return int(head)
    except ValueError:
        return 0


def parse_info_plist(data: bytes) -> AppInfo:
    """Build an AppInfo from the contents of a bundle's Info.plist."""
    try:
        plist = plistlib.loads(data)
    except (plistlib.InvalidFileException, ValueError) as exc:
        raise ValueError(f"invalid plist: {exc}") from exc
    if not isinstance(plist, dict):
        raise ValueError("plist root is not a dictionary")
    full = str(plist.get("CFBundleShortVersionString", ""))
    return AppInfo(
        full_version=full,
        version=_major(full),
        company_name=str(plist.get("NSHumanReadableCopyright", "")),
    )


def read_app_info(file_path: str) -> AppInfo:
    """Read version details for the executable at ``file_path``.

    On macOS the bundle's Info.plist two levels above the binary is read;
    elsewhere only the path is recorded.
    """
    if sys.platform != "darwin":
        return AppInfo(file_path=file_path)
    plist_path = Path(file_path).parent.parent / INFO_FILE
    info = parse_info_plist(plist_path.read_bytes())
    info.file_path = file_path
    return info