"""Single-writer lock for theme output directories."""

from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator

from .logging import get_logger

LOCK_FILENAME = ".factory-lock"

_REGISTRY_LOCK = threading.Lock()
_HELD: Dict[str, threading.Lock] = {}

_logger = get_logger("locking")


class OutputLockedError(RuntimeError):
    """Raised when another build already targets the output directory."""


@contextmanager
def output_lock(output_root: Path) -> Iterator[Path]:
    """Hold exclusive write access to ``output_root`` for the duration of a build.

    The in-process mutex serialises threads; the lock file serialises
    processes. A lock file left behind by a dead process is reclaimed.
    """

    root = Path(output_root).resolve()
    key = str(root)
    with _REGISTRY_LOCK:
        mutex = _HELD.setdefault(key, threading.Lock())
    if not mutex.acquire(blocking=False):
        raise OutputLockedError(f"Another build is already writing to {root}")

    lock_path = root / LOCK_FILENAME
    try:
        root.mkdir(parents=True, exist_ok=True)
        _acquire_lock_file(lock_path)
    except BaseException:
        mutex.release()
        raise

    try:
        yield root
    finally:
        try:
            lock_path.unlink(missing_ok=True)
        finally:
            mutex.release()


def _acquire_lock_file(lock_path: Path) -> None:
    for _ in range(2):
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            if _lock_is_stale(lock_path):
                _logger.warning("Reclaiming stale build lock at %s", lock_path)
                lock_path.unlink(missing_ok=True)
                continue
            raise OutputLockedError(f"Build lock held by another process: {lock_path}") from None
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(str(os.getpid()))
        return
    raise OutputLockedError(f"Could not acquire build lock: {lock_path}")


def _lock_is_stale(lock_path: Path) -> bool:
    try:
        pid = int(lock_path.read_text(encoding="utf-8").strip() or "0")
    except (OSError, ValueError):
        return True
    if pid <= 0:
        return True
    if pid == os.getpid():
        # Only reachable after a crash inside this process released the mutex.
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return True
    except PermissionError:
        return False
    except OSError:
        return False
    return False


__all__ = ["LOCK_FILENAME", "OutputLockedError", "output_lock"]
