from __future__ import annotations

import json
import logging
import os
import shutil
import threading
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from filelock import FileLock

from app.application.interfaces.cache_store import ICacheStore
from app.application.interfaces.utils import IClock
from app.application.results import CacheEntry
from app.core.config import settings

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = "cache_info.json"


class SystemClock(IClock):
    def now(self) -> float:
        return time.time()


def cache_file_name(name: str) -> str:
    """Deterministic, path-safe archive file name for a sticker set name."""
    return f"{quote(name, safe='')}.zip"


class JsonCacheStore(ICacheStore):
    """Durable sticker-set cache: one zip per set plus a JSON index.

    Layout::

        {cache_dir}/cache_info.json   {name: {"timestamp": ..., "metadata": {...}}}
        {cache_dir}/{name}.zip

    The index on disk is the source of truth: it is reloaded on construction,
    re-read by writers under the lock and by readers whenever the file was
    replaced by another process. Writers are serialized (thread lock +
    cross-process file lock) and always replace the whole index file via
    rename. Readers never lock: they look at
    the last committed snapshot, which is swapped in one assignment, so they
    see either the old or the new entry for a key.
    """

    def __init__(
        self,
        cache_dir: Optional[str | Path] = None,
        *,
        max_age: Optional[float] = None,
        clock: Optional[IClock] = None,
    ) -> None:
        self.cache_dir = Path(cache_dir or settings.cache_dir)
        self.index_path = self.cache_dir / INDEX_FILE_NAME
        self.max_age = (
            settings.cache_max_age_seconds if max_age is None else float(max_age)
        )
        self.clock = clock or SystemClock()
        self._write_lock = threading.Lock()
        self._file_lock = FileLock(str(self.index_path) + ".lock", timeout=10)
        self._index: Dict[str, Dict[str, Any]] = {}
        self._index_stamp: Optional[tuple] = None
        self._load()

    # ----- Persistence -----
    def _load(self) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        if not self.index_path.exists():
            self._index = {}
            with self._write_lock, self._file_lock:
                self._write_index({})
            logger.info("Cache index not found, created %s", self.index_path)
            return
        self._index = self._read_index()
        self._index_stamp = self._disk_stamp()
        logger.info("Loaded cache index with %d entries", len(self._index))

    def _disk_stamp(self) -> Optional[tuple]:
        try:
            st = self.index_path.stat()
            return (st.st_ino, st.st_mtime_ns, st.st_size)
        except OSError:
            return None

    def _snapshot(self) -> Dict[str, Any]:
        """Committed index, reloaded when another process replaced the file."""
        stamp = self._disk_stamp()
        if stamp is not None and stamp != self._index_stamp:
            self._index = self._read_index()
            self._index_stamp = stamp
        return self._index

    def _read_index(self) -> Dict[str, Any]:
        """Current index on disk; an unreadable index reads as empty."""
        try:
            with open(self.index_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.error("Failed to load cache index %s: %s", self.index_path, e)
            return {}
        if not isinstance(data, dict):
            logger.error("Cache index %s is not a mapping; ignoring it", self.index_path)
            return {}
        return data

    def _refresh_locked(self) -> Dict[str, Any]:
        """Pick up entries committed by other processes; callers hold the write locks."""
        self._index = self._read_index()
        self._index_stamp = self._disk_stamp()
        return dict(self._index)

    def _write_index(self, index: Dict[str, Any]) -> None:
        tmp_path = self.index_path.with_name(
            f".{INDEX_FILE_NAME}.{uuid.uuid4().hex[:8]}.tmp"
        )
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(index, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.index_path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)

    def _commit(self, index: Dict[str, Any]) -> None:
        """Persist then publish; callers hold the write locks."""
        self._write_index(index)
        self._index = index
        self._index_stamp = self._disk_stamp()

    # ----- Queries -----
    def archive_path_for(self, name: str) -> Path:
        return self.cache_dir / cache_file_name(name)

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def path(self, name: str) -> Optional[Path]:
        entry = self.get(name)
        return entry.archive_path if entry is not None else None

    def get(self, name: str) -> Optional[CacheEntry]:
        record = self._snapshot().get(name)
        if record is None:
            return None
        if not self.archive_path_for(name).is_file():
            # dangling record: the archive was removed behind our back
            return None
        return self._entry(name, record)

    def entries(self) -> List[CacheEntry]:
        snapshot = self._snapshot()
        found = []
        for name, record in snapshot.items():
            if not self.archive_path_for(name).is_file():
                continue
            entry = self._entry(name, record)
            if entry is not None:
                found.append(entry)
        return found

    def _entry(self, name: str, record: Any) -> Optional[CacheEntry]:
        """Parse one index record; a malformed record reads as a miss."""
        try:
            metadata = record.get("metadata") or {}
            return CacheEntry(
                name=name,
                archive_path=self.archive_path_for(name),
                timestamp=float(record["timestamp"]),
                metadata=dict(metadata),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring malformed cache record %s: %s", name, e)
            return None

    # ----- Mutations -----
    def put(
        self,
        name: str,
        archive_path: str | Path,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> CacheEntry:
        if not name:
            raise ValueError("Cache key must be non-empty")
        source = Path(archive_path)
        target = self.archive_path_for(name)
        tmp_target = target.with_name(f".{target.name}.{uuid.uuid4().hex[:8]}.tmp")

        try:
            # the slow copy happens outside the lock; only the rename is serialized
            shutil.copyfile(source, tmp_target)
            with self._write_lock, self._file_lock:
                index = self._refresh_locked()
                os.replace(tmp_target, target)
                record = {
                    "timestamp": self.clock.now(),
                    "metadata": dict(metadata or {}),
                }
                index[name] = record
                self._commit(index)
        finally:
            if tmp_target.exists():
                tmp_target.unlink(missing_ok=True)

        logger.info("Sticker set %s added to cache", name)
        return self._entry(name, record)

    def evict(self, name: str) -> bool:
        with self._write_lock, self._file_lock:
            self._refresh_locked()
            return self._evict_locked(name)

    def _evict_locked(self, name: str) -> bool:
        archive = self.archive_path_for(name)
        known = name in self._index
        if archive.exists():
            archive.unlink(missing_ok=True)
        if not known:
            return False
        index = dict(self._index)
        del index[name]
        self._commit(index)
        logger.info("Sticker set %s removed from cache", name)
        return True

    def sweep(
        self, max_age: Optional[float] = None, *, now: Optional[float] = None
    ) -> int:
        """Evict entries older than ``max_age`` seconds; returns how many."""
        limit = self.max_age if max_age is None else float(max_age)
        current = self.clock.now() if now is None else float(now)
        logger.info("Sweeping cache entries older than %.1f days", limit / 86400)

        evicted = 0
        with self._write_lock, self._file_lock:
            self._refresh_locked()
            for name, record in list(self._index.items()):
                try:
                    timestamp = float(record["timestamp"])
                    if current - timestamp > limit:
                        logger.info("Cache entry %s expired", name)
                        if self._evict_locked(name):
                            evicted += 1
                except (KeyError, TypeError, ValueError, OSError) as e:
                    logger.warning("Skipping bad cache entry %s: %s", name, e)

        logger.info("Swept %d expired cache entries", evicted)
        return evicted
