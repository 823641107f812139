"""Output-root containment guards used by every write site."""

from __future__ import annotations

import json
import os
import shutil
from pathlib import Path
from typing import Any

PathLike = str | os.PathLike[str]


class ContainmentError(ValueError):
    """Raised when a write would land outside the output root."""


def ensure_inside(root: PathLike, target: PathLike) -> Path:
    """Return the absolute destination for ``target`` after checking containment.

    ``target`` may be absolute or relative to ``root``. Parent traversal that
    escapes the root is rejected, as is any existing symlink between the root
    and the destination (including the destination itself).
    """

    base = Path(root).resolve()
    candidate = Path(target)
    if not candidate.is_absolute():
        candidate = base / candidate
    normalised = Path(os.path.normpath(candidate))
    if not _is_relative_to(normalised, base) or normalised == base:
        raise ContainmentError(f"Refusing to write outside output: {candidate}")

    current = normalised
    while current != base:
        if current.is_symlink():
            raise ContainmentError(f"Refusing to write through symlink: {current}")
        current = current.parent

    if not _is_relative_to(normalised.resolve(), base):
        raise ContainmentError(f"Refusing to write outside output: {candidate}")
    return normalised


def write_text(root: PathLike, target: PathLike, text: str) -> Path:
    destination = ensure_inside(root, target)
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(text, encoding="utf-8")
    return destination


def write_bytes(root: PathLike, target: PathLike, data: bytes) -> Path:
    destination = ensure_inside(root, target)
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(data)
    return destination


def write_json(root: PathLike, target: PathLike, payload: Any) -> Path:
    return write_text(root, target, json.dumps(payload, indent=2) + "\n")


def copy_file(root: PathLike, source: PathLike, target: PathLike) -> Path:
    """Copy file bytes from ``source`` into ``target`` under ``root``."""
    destination = ensure_inside(root, target)
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, destination)
    return destination


def ensure_dir(root: PathLike, target: PathLike) -> Path:
    destination = ensure_inside(root, target)
    destination.mkdir(parents=True, exist_ok=True)
    return destination


def _is_relative_to(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
    except ValueError:
        return False
    return True


__all__ = [
    "ContainmentError",
    "copy_file",
    "ensure_dir",
    "ensure_inside",
    "write_bytes",
    "write_json",
    "write_text",
]
