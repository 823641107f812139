"""Prototype input scanning and checksums."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Iterator

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".cache",
    ".factory-cache",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}


def compute_input_checksum(input_root: Path) -> str:
    """Hash every prototype file (relative path plus bytes) in sorted order."""
    root = Path(input_root).expanduser().resolve()
    if not root.exists():
        raise FileNotFoundError(f"Input path not found: {input_root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Input path is not a directory: {input_root}")

    digest = hashlib.sha256()
    for path in sorted(_iter_files(root), key=lambda item: item.relative_to(root).as_posix()):
        digest.update(path.relative_to(root).as_posix().encode("utf-8"))
        digest.update(b"\0")
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(1024 * 1024), b""):
                digest.update(chunk)
        digest.update(b"\0")
    return digest.hexdigest()


def _iter_files(root: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        dirnames[:] = [
            name
            for name in dirnames
            if name not in _EXCLUDED_DIRS and not (current_dir / name).is_symlink()
        ]
        for filename in filenames:
            if filename in _EXCLUDED_FILES:
                continue
            path = current_dir / filename
            if path.is_symlink() or not path.is_file():
                continue
            yield path


__all__ = ["compute_input_checksum"]
