"""Persistent, per-instance cache of temporary file copies.

Copies live in a shared temporary directory and survive restarts: a new
manager indexes the copies left by an earlier run of the same instance and
reuses them while the original's path and content are unchanged.
"""

from __future__ import annotations

import logging
import os
import queue
import shutil
import tempfile
import threading
import time
from dataclasses import dataclass
from typing import Iterator

from chatlogkit.tempnames import (
    NAME_SEP,
    _ext,
    cache_key,
    extract_base_name,
    extract_file_extension,
    get_process_name,
    hash_file_content,
    hash_string,
    parse_temp_name,
    temp_file_name,
    version_key,
)

__all__ = [
    "FileIndexEntry",
    "FileCopyManager",
    "get_temp_copy",
    "shutdown",
    "CLEANUP_DELAY_AFTER_START",
    "ORPHAN_FILE_CLEANUP_THRESHOLD",
    "MAX_CACHE_ENTRIES",
]

log = logging.getLogger(__name__)

CLEANUP_DELAY_AFTER_START = 60.0
ORPHAN_FILE_CLEANUP_THRESHOLD = 600.0
MAX_CACHE_ENTRIES = 10000

_DELETION_QUEUE_SIZE = 10000
_DELETION_DELAY = 0.01
_COPY_BUFFER = 256 * 1024


@dataclass
class FileIndexEntry:
    """One cached copy and the metadata of the file it was made from."""

    temp_path: str
    original_path: str
    size: int
    mod_time_ns: int
    last_access_ns: int
    path_hash: str
    data_hash: str
    base_name: str
    extension: str


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except OSError:
        pass


def _default_temp_dir() -> str:
    base = tempfile.gettempdir()
    for candidate in (
        os.path.join(base, "filecopy_" + get_process_name()),
        os.path.join(base, "filecopy"),
    ):
        try:
            os.makedirs(candidate, mode=0o755, exist_ok=True)
            return candidate
        except OSError:
            continue
    return base


class FileCopyManager:
    """Creates, reuses and cleans up temporary copies for one instance id."""

    def __init__(self, instance_id: str, temp_dir: str | None = None) -> None:
        self.instance_id = instance_id
        if temp_dir is None:
            temp_dir = _default_temp_dir()
        else:
            os.makedirs(temp_dir, mode=0o755, exist_ok=True)
        self.temp_dir = temp_dir
        self.max_entries = MAX_CACHE_ENTRIES
        self.start_time_ns = time.time_ns()
        self.last_access_ns = self.start_time_ns
        self._prefix = instance_id + NAME_SEP
        self._index: dict[str, FileIndexEntry] = {}
        self._lock = threading.RLock()
        self._deletions: queue.Queue[str | None] = queue.Queue(maxsize=_DELETION_QUEUE_SIZE)
        self._closed = False

        self._build_index()

        self._worker = threading.Thread(
            target=self._deletion_worker, name=f"filecopy-delete-{instance_id}", daemon=True
        )
        self._worker.start()
        self._timer = threading.Timer(CLEANUP_DELAY_AFTER_START, self.cleanup_unused)
        self._timer.daemon = True
        self._timer.start()

    def __enter__(self) -> FileCopyManager:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    @property
    def cache_size(self) -> int:
        """Number of copies currently in the index."""
        with self._lock:
            return len(self._index)

    # -- deletion ---------------------------------------------------------

    def _enqueue(self, path: str) -> None:
        try:
            self._deletions.put_nowait(path)
        except queue.Full:
            _remove_quietly(path)

    def _schedule_deletion(self, path: str) -> None:
        if self._closed:
            _remove_quietly(path)
        else:
            self._enqueue(path)

    def _deletion_worker(self) -> None:
        while True:
            path = self._deletions.get()
            if path is None:
                return
            self._process_deletion(path)

    @staticmethod
    def _process_deletion(path: str) -> None:
        # Files still being written and renamed are left alone.
        if ".tmp." in path:
            return
        time.sleep(_DELETION_DELAY)
        _remove_quietly(path)

    # -- index ------------------------------------------------------------

    def _scan(self) -> Iterator[os.DirEntry]:
        try:
            entries = sorted(os.scandir(self.temp_dir), key=lambda e: e.name)
        except OSError:
            return
        for entry in entries:
            try:
                if entry.is_dir():
                    continue
            except OSError:
                continue
            if entry.name.startswith(self._prefix):
                yield entry

    def _build_index(self) -> None:
        groups: dict[str, list[tuple[str, object, os.stat_result]]] = {}
        for entry in self._scan():
            parsed = parse_temp_name(self.instance_id, entry.name)
            if parsed is None:
                continue
            try:
                st = os.stat(entry.path)
            except OSError:
                continue
            key = version_key(self.instance_id, parsed.base_name, parsed.ext, parsed.path_hash)
            groups.setdefault(key, []).append((entry.path, parsed, st))

        for candidates in groups.values():
            latest = max(candidates, key=lambda c: c[2].st_mtime_ns)
            path, parsed, st = latest
            key = cache_key(
                self.instance_id, parsed.base_name, parsed.ext, parsed.path_hash, parsed.data_hash
            )
            self._index[key] = FileIndexEntry(
                temp_path=path,
                original_path="",
                size=st.st_size,
                mod_time_ns=st.st_mtime_ns,
                last_access_ns=time.time_ns(),
                path_hash=parsed.path_hash,
                data_hash=parsed.data_hash,
                base_name=parsed.base_name,
                extension=_ext(path),
            )
            for candidate in candidates:
                if candidate is not latest:
                    self._enqueue(candidate[0])

    # -- copies -----------------------------------------------------------

    def get_temp_copy(self, original_path: str) -> str:
        """Return the path of a temporary copy of ``original_path``.

        An indexed copy is reused while it exists and its size matches;
        otherwise a fresh copy is written atomically. Raises
        FileNotFoundError when the original cannot be found and OSError
        when copying fails.
        """
        if self._closed:
            raise RuntimeError("file copy manager is shut down")
        try:
            st = os.stat(original_path)
        except OSError as exc:
            raise FileNotFoundError(f"original file does not exist: {exc}") from exc

        now = time.time_ns()
        self.last_access_ns = now
        size = st.st_size
        path_hash = hash_string(original_path)
        try:
            data_hash = hash_file_content(original_path)
        except OSError:
            data_hash = f"{size + st.st_mtime_ns:x}"[:16]

        base_name = extract_base_name(original_path)
        ext = extract_file_extension(original_path)
        key = cache_key(self.instance_id, base_name, ext, path_hash, data_hash)

        old_temp_path: str | None = None
        with self._lock:
            entry = self._index.get(key)
            if entry is not None:
                exists = os.path.exists(entry.temp_path)
                if exists and entry.size == size:
                    entry.last_access_ns = now
                    entry.original_path = original_path
                    return entry.temp_path
                del self._index[key]
                if exists:
                    old_temp_path = entry.temp_path

        temp_path = os.path.join(
            self.temp_dir, temp_file_name(self.instance_id, original_path, data_hash)
        )
        self._atomic_copy(original_path, temp_path)

        with self._lock:
            self._index[key] = FileIndexEntry(
                temp_path=temp_path,
                original_path=original_path,
                size=size,
                mod_time_ns=st.st_mtime_ns,
                last_access_ns=now,
                path_hash=path_hash,
                data_hash=data_hash,
                base_name=base_name,
                extension=_ext(original_path),
            )
            over_limit = len(self._index) > self.max_entries

        if over_limit:
            threading.Thread(target=self.enforce_cache_limit, daemon=True).start()

        if old_temp_path is not None and old_temp_path != temp_path:
            self._schedule_deletion(old_temp_path)

        return temp_path

    @staticmethod
    def _atomic_copy(src: str, dst: str) -> None:
        tmp = f"{dst}.tmp.{time.time_ns()}"
        try:
            src_fh = open(src, "rb")
        except OSError as exc:
            raise OSError(f"failed to open source file: {exc}") from exc
        with src_fh:
            try:
                with open(tmp, "wb") as dst_fh:
                    shutil.copyfileobj(src_fh, dst_fh, _COPY_BUFFER)
                    dst_fh.flush()
                    os.fsync(dst_fh.fileno())
                os.replace(tmp, dst)
            except OSError as exc:
                _remove_quietly(tmp)
                raise OSError(f"failed to copy file contents: {exc}") from exc

    # -- cleanup ----------------------------------------------------------

    def cleanup_unused(self) -> None:
        """Drop copies not accessed since the manager started, then orphans."""
        if self._closed:
            return
        with self._lock:
            stale = [
                (key, entry)
                for key, entry in self._index.items()
                if entry.last_access_ns <= self.start_time_ns
            ]
            for key, entry in stale:
                try:
                    self._deletions.put_nowait(entry.temp_path)
                except queue.Full:
                    continue
                del self._index[key]
        self.cleanup_orphaned_files()

    def enforce_cache_limit(self) -> None:
        """Drop the least recently used quarter of copies when over the limit."""
        with self._lock:
            if len(self._index) <= self.max_entries:
                return
            ordered = sorted(self._index.items(), key=lambda kv: kv[1].last_access_ns)
            victims = ordered[: max(1, len(ordered) // 4)]
            for key, _ in victims:
                del self._index[key]
        for _, entry in victims:
            self._schedule_deletion(entry.temp_path)

    def cleanup_orphaned_files(self) -> None:
        """Delete this instance's unindexed files older than the orphan threshold."""
        with self._lock:
            indexed = {entry.temp_path for entry in self._index.values()}
        now = time.time()
        for entry in self._scan():
            if entry.path in indexed:
                continue
            try:
                mtime = entry.stat().st_mtime
            except OSError:
                continue
            if now - mtime > ORPHAN_FILE_CLEANUP_THRESHOLD:
                self._schedule_deletion(entry.path)

    def shutdown(self) -> None:
        """Delete every cached copy and stop the background work."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            entries = list(self._index.values())
            self._index.clear()
        self._timer.cancel()
        for entry in entries:
            self._enqueue(entry.temp_path)
        self._deletions.put(None)
        self._worker.join()


_managers: dict[str, FileCopyManager] = {}
_managers_lock = threading.Lock()


def _get_manager(instance_id: str) -> FileCopyManager:
    with _managers_lock:
        manager = _managers.get(instance_id)
        if manager is None:
            manager = FileCopyManager(instance_id)
            _managers[instance_id] = manager
        return manager


def get_temp_copy(instance_id: str, original_path: str) -> str:
    """Return a temporary copy of ``original_path`` cached for ``instance_id``."""
    return _get_manager(instance_id).get_temp_copy(original_path)


def shutdown() -> None:
    """Shut down every shared manager and forget them."""
    with _managers_lock:
        managers = list(_managers.values())
        _managers.clear()
    for manager in managers:
        manager.shutdown()