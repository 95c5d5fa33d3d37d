import plistlib
import sys

import pytest

from chatlogkit.appver import AppInfo, parse_info_plist, read_app_info


def _plist(version):
    return plistlib.dumps(
        {"CFBundleShortVersionString": version, "NSHumanReadableCopyright": "Example Co"}
    )


def test_parse_info_plist():
    info = parse_info_plist(_plist("4.0.3"))
    assert info.full_version == "4.0.3"
    assert info.version == 4
    assert info.company_name == "Example Co"


def test_parse_bad_major():
    assert parse_info_plist(_plist("x.1")).version == 0


def test_parse_invalid():
    with pytest.raises(ValueError):
        parse_info_plist(b"not a plist")


def test_read_app_info_darwin(monkeypatch, tmp_path):
    monkeypatch.setattr(sys, "platform", "darwin")
    contents = tmp_path / "App.app" / "Contents"
    (contents / "MacOS").mkdir(parents=True)
    (contents / "Info.plist").write_bytes(_plist("3.8.1"))
    binary = contents / "MacOS" / "App"
    info = read_app_info(str(binary))
    assert info.file_path == str(binary)
    assert info.version == 3
    assert info.to_dict()["full_version"] == "3.8.1"


def test_read_app_info_other(monkeypatch):
    monkeypatch.setattr(sys, "platform", "linux")
    assert read_app_info("/opt/app") == AppInfo(file_path="/opt/app")