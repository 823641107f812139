"""Persistent cache for baseline file listings."""

from __future__ import annotations

import json
import os
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, List, Optional

_CACHE_VERSION = 1


class BaselineIndexCache:
    """Stores baseline file listings keyed by root path and directory mtime.

    A listing is fresh while the newest ``st_mtime_ns`` among the root and
    its subdirectories is unchanged, so files added or removed at any depth
    invalidate it. Edits to existing files do not.

    One instance is passed explicitly into each engine run. Reads and writes
    are serialised through an internal lock so a cache shared across
    sequential runs in one process stays consistent.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._entries: Dict[str, Dict[str, object]] = {}
        self._dirty = False
        self._lock = threading.Lock()
        if self._path is not None:
            self._load(self._path)

    def get(self, key: str, *, mtime_ns: int) -> Optional[List[str]]:
        with self._lock:
            entry = self._entries.get(key)
            if not entry or entry.get("mtime_ns") != mtime_ns:
                return None
            files = entry.get("files")
            if not isinstance(files, list):
                return None
            return [item for item in files if isinstance(item, str)]

    def store(self, key: str, *, mtime_ns: int, files: List[str]) -> None:
        with self._lock:
            self._entries[key] = {
                "mtime_ns": mtime_ns,
                "files": list(files),
                "updated_at": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            }
            self._dirty = True

    def list_files(self, root: Path) -> List[str]:
        """Return POSIX-relative regular files under ``root``, reusing the cache when fresh."""
        key = root.resolve().as_posix()
        mtime_ns = _tree_mtime_ns(root)
        cached = self.get(key, mtime_ns=mtime_ns)
        if cached is not None:
            return cached
        files = _walk_files(root)
        self.store(key, mtime_ns=mtime_ns, files=files)
        return files

    def persist(self) -> None:
        with self._lock:
            if not self._dirty or self._path is None:
                return
            payload = {
                "version": _CACHE_VERSION,
                "entries": self._entries,
            }
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8"
            )
            self._dirty = False

    # ------------------------------------------------------------------
    # Internal helpers

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError):
            return
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return
        entries = data.get("entries")
        if not isinstance(entries, dict):
            return
        valid_entries: Dict[str, Dict[str, object]] = {}
        for key, raw in entries.items():
            if not isinstance(key, str) or not isinstance(raw, dict):
                continue
            if not isinstance(raw.get("mtime_ns"), int) or not isinstance(raw.get("files"), list):
                continue
            valid_entries[key] = raw
        self._entries = valid_entries
        self._dirty = False


def _subdirs(current: Path, dirnames: List[str]) -> List[str]:
    return sorted(name for name in dirnames if name != ".git" and not (current / name).is_symlink())


def _tree_mtime_ns(root: Path) -> int:
    newest = root.stat().st_mtime_ns
    for dirpath, dirnames, _ in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = _subdirs(current, dirnames)
        for name in dirnames:
            try:
                newest = max(newest, (current / name).stat().st_mtime_ns)
            except OSError:
                continue
    return newest


def _walk_files(root: Path) -> List[str]:
    files: List[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = _subdirs(current, dirnames)
        for filename in sorted(filenames):
            path = current / filename
            if path.is_symlink() or not path.is_file():
                continue
            files.append(path.relative_to(root).as_posix())
    return files


__all__ = ["BaselineIndexCache"]
