import os
import sys

import pytest

from chatlogkit.osutil import (
    byte_count_si,
    default_work_dir,
    find_files_with_patterns,
    get_dir_size,
    prepare_dir,
)


@pytest.fixture
def tree(tmp_path):
    (tmp_path / "a.txt").write_text("a")
    (tmp_path / "b.log").write_text("b")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "c.txt").write_text("c")
    return tmp_path


def test_find_non_recursive(tree):
    found = find_files_with_patterns(str(tree), r"\.txt$", False)
    assert found == [os.path.join(str(tree), "a.txt")]


def test_find_recursive(tree):
    found = find_files_with_patterns(str(tree), r"\.txt$", True)
    assert sorted(found) == sorted(
        [os.path.join(str(tree), "a.txt"), os.path.join(str(tree), "sub", "c.txt")]
    )


def test_find_errors(tree):
    with pytest.raises(ValueError):
        find_files_with_patterns(str(tree), "(", True)
    with pytest.raises(FileNotFoundError):
        find_files_with_patterns(str(tree / "missing"), ".", True)
    with pytest.raises(NotADirectoryError):
        find_files_with_patterns(str(tree / "a.txt"), ".", True)


def test_default_work_dir(monkeypatch, tmp_path):
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setenv("HOME", str(tmp_path))
    assert default_work_dir("acct") == os.path.join(str(tmp_path), "chatlog", "acct")
    assert default_work_dir("") == os.path.join(str(tmp_path), "chatlog")


def test_byte_count_si():
    assert byte_count_si(999) == "999 B"
    assert byte_count_si(1000) == "1.0 kB"
    assert byte_count_si(1500000).endswith("MB")


def test_get_dir_size_missing(tmp_path):
    assert get_dir_size(str(tmp_path / "nope")) == "0 B"


def test_prepare_dir(tmp_path):
    target = tmp_path / "x" / "y"
    prepare_dir(str(target))
    assert target.is_dir()
    prepare_dir(str(target))
    assert target.is_dir()
    f = tmp_path / "file"
    f.write_text("")
    with pytest.raises(NotADirectoryError):
        prepare_dir(str(f))