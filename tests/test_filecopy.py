import os
import time

import pytest

from chatlogkit import filecopy
from chatlogkit.filecopy import FileCopyManager
from chatlogkit.tempnames import parse_temp_name, temp_file_name


def wait_until(condition, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.02)
    return condition()


@pytest.fixture
def cache_dir(tmp_path):
    return str(tmp_path / "cache")


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "src" / "photo.jpg"
    path.parent.mkdir()
    path.write_bytes(b"original content")
    return str(path)


def test_copy_has_same_content_and_parsable_name(cache_dir, source):
    with FileCopyManager("inst", cache_dir) as manager:
        copy = manager.get_temp_copy(source)
        assert os.path.dirname(copy) == cache_dir
        with open(copy, "rb") as fh:
            assert fh.read() == b"original content"
        parsed = parse_temp_name("inst", os.path.basename(copy))
        assert parsed is not None
        assert parsed.base_name == "photo"
        assert parsed.ext == "jpg"
        assert manager.cache_size == 1


def test_repeated_copy_is_reused(cache_dir, source):
    with FileCopyManager("inst", cache_dir) as manager:
        first = manager.get_temp_copy(source)
        second = manager.get_temp_copy(source)
        assert first == second
        assert manager.cache_size == 1


def test_changed_content_gives_new_copy(cache_dir, source):
    with FileCopyManager("inst", cache_dir) as manager:
        first = manager.get_temp_copy(source)
        with open(source, "wb") as fh:
            fh.write(b"changed content!!")
        second = manager.get_temp_copy(source)
        assert second != first
        with open(second, "rb") as fh:
            assert fh.read() == b"changed content!!"


def test_missing_original_raises(cache_dir, tmp_path):
    with FileCopyManager("inst", cache_dir) as manager:
        with pytest.raises(FileNotFoundError):
            manager.get_temp_copy(str(tmp_path / "missing.txt"))


def test_file_without_extension_uses_bin(cache_dir, tmp_path):
    src = tmp_path / "README"
    src.write_bytes(b"data")
    with FileCopyManager("inst", cache_dir) as manager:
        copy = manager.get_temp_copy(str(src))
        assert "_+bin_+" in os.path.basename(copy)
        assert manager.get_temp_copy(str(src)) == copy


def test_new_manager_reuses_existing_copies(cache_dir, source):
    first = FileCopyManager("inst", cache_dir)
    second = None
    try:
        path = first.get_temp_copy(source)
        second = FileCopyManager("inst", cache_dir)
        assert second.cache_size == 1
        assert second.get_temp_copy(source) == path
        other = FileCopyManager("other", cache_dir)
        assert other.cache_size == 0
        other.shutdown()
    finally:
        first.shutdown()
        if second is not None:
            second.shutdown()


def test_index_keeps_only_latest_version(cache_dir):
    os.makedirs(cache_dir)
    old_name = temp_file_name("inst", "/data/photo.jpg", "aaaa")
    new_name = temp_file_name("inst", "/data/photo.jpg", "bbbb")
    old_path = os.path.join(cache_dir, old_name)
    new_path = os.path.join(cache_dir, new_name)
    for path in (old_path, new_path):
        with open(path, "wb") as fh:
            fh.write(b"x")
    now_ns = time.time_ns()
    os.utime(old_path, ns=(now_ns - 10**10, now_ns - 10**10))
    os.utime(new_path, ns=(now_ns, now_ns))

    manager = FileCopyManager("inst", cache_dir)
    try:
        assert manager.cache_size == 1
        assert wait_until(lambda: not os.path.exists(old_path))
        assert os.path.exists(new_path)
    finally:
        manager.shutdown()


def test_enforce_cache_limit_drops_oldest(cache_dir, tmp_path):
    with FileCopyManager("inst", cache_dir) as manager:
        copies = []
        for i in range(5):
            src = tmp_path / f"file{i}.txt"
            src.write_bytes(f"content {i}".encode())
            copies.append(manager.get_temp_copy(str(src)))
            time.sleep(0.01)
        manager.max_entries = 4
        manager.enforce_cache_limit()
        assert manager.cache_size == 4
        assert wait_until(lambda: not os.path.exists(copies[0]))
        assert all(os.path.exists(path) for path in copies[1:])


def test_enforce_cache_limit_under_limit_keeps_all(cache_dir, source):
    with FileCopyManager("inst", cache_dir) as manager:
        copy = manager.get_temp_copy(source)
        manager.enforce_cache_limit()
        assert manager.cache_size == 1
        assert os.path.exists(copy)


def test_cleanup_orphaned_files(cache_dir):
    os.makedirs(cache_dir)
    orphan = os.path.join(cache_dir, "inst_+broken")
    young = os.path.join(cache_dir, "inst_+young")
    foreign = os.path.join(cache_dir, "other_+broken")
    for path in (orphan, young, foreign):
        with open(path, "wb") as fh:
            fh.write(b"x")
    old = time.time() - 2 * filecopy.ORPHAN_FILE_CLEANUP_THRESHOLD
    os.utime(orphan, (old, old))
    os.utime(foreign, (old, old))

    with FileCopyManager("inst", cache_dir) as manager:
        manager.cleanup_orphaned_files()
        assert wait_until(lambda: not os.path.exists(orphan))
        assert os.path.exists(young)
        assert os.path.exists(foreign)


def test_cleanup_unused_keeps_recent_copies(cache_dir, source):
    with FileCopyManager("inst", cache_dir) as manager:
        copy = manager.get_temp_copy(source)
        orphan = os.path.join(cache_dir, "inst_+stale")
        with open(orphan, "wb") as fh:
            fh.write(b"x")
        old = time.time() - 2 * filecopy.ORPHAN_FILE_CLEANUP_THRESHOLD
        os.utime(orphan, (old, old))
        manager.cleanup_unused()
        assert manager.cache_size == 1
        assert os.path.exists(copy)
        assert wait_until(lambda: not os.path.exists(orphan))


def test_shutdown_removes_copies_and_rejects_use(cache_dir, source):
    manager = FileCopyManager("inst", cache_dir)
    copy = manager.get_temp_copy(source)
    manager.shutdown()
    assert not os.path.exists(copy)
    assert manager.cache_size == 0
    with pytest.raises(RuntimeError):
        manager.get_temp_copy(source)


def test_module_level_get_temp_copy_and_shutdown(source):
    instance = f"test{os.getpid()}"
    try:
        copy = filecopy.get_temp_copy(instance, source)
        with open(copy, "rb") as fh:
            assert fh.read() == b"original content"
        assert filecopy.get_temp_copy(instance, source) == copy
    finally:
        filecopy.shutdown()
    assert not os.path.exists(copy)