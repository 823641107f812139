"""Helpers for supplementing thin theme files with baseline content."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

ENRICH_THRESHOLDS: Dict[str, int] = {
    ".twig": 600,
    ".html": 600,
    ".json": 80,
    ".css": 120,
    ".js": 120,
}


def is_thin(path: Path, thresholds: Dict[str, int] | None = None) -> bool:
    """Return True for an existing file that is empty or below its extension's byte threshold."""
    limits = ENRICH_THRESHOLDS if thresholds is None else thresholds
    try:
        if not path.is_file():
            return False
        size = path.stat().st_size
    except OSError:
        return False
    if size == 0:
        return True
    threshold = limits.get(path.suffix.lower())
    return bool(threshold) and size < threshold


def deep_merge(target: Any, source: Any) -> Any:
    """Merge ``source`` into ``target`` without overriding what the target already says.

    Arrays are unioned in first-seen order, objects are merged key by key,
    and scalars keep the target value unless the target is absent (None).
    """

    if isinstance(target, list) and isinstance(source, list):
        merged: List[Any] = list(target)
        for item in source:
            if item not in merged:
                merged.append(item)
        return merged
    if isinstance(target, dict) and isinstance(source, dict):
        result = dict(target)
        for key, value in source.items():
            result[key] = deep_merge(result[key], value) if key in result else value
        return result
    return source if target is None else target


__all__ = ["ENRICH_THRESHOLDS", "deep_merge", "is_thin"]
