"""Removal of partial templates that no page includes."""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Set

from ..graph.directives import parse_directives
from ..logging import get_logger
from ..paths import ensure_inside

ARCHIVE_DIR = ".orphaned_partials"

_logger = get_logger("adapter.prune")


@dataclass
class PruneResult:
    removed: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)


def prune_partials(
    theme_root: Path,
    *,
    archive: bool = True,
    dry_run: bool = False,
    force: bool = False,
) -> PruneResult:
    """Archive (or delete with ``force``) partials unreferenced by any page or partial."""
    theme_root = Path(theme_root)
    partials_dir = theme_root / "partials"
    result = PruneResult()
    if not partials_dir.is_dir():
        return result

    used = _referenced_partials(theme_root)
    for path in sorted(partials_dir.rglob("*.twig")):
        rel = path.relative_to(partials_dir).as_posix()
        if rel in used:
            result.kept.append(rel)
            continue
        result.removed.append(rel)
        if dry_run:
            continue
        source = ensure_inside(theme_root, path)
        if archive and not force:
            destination = ensure_inside(theme_root, Path(ARCHIVE_DIR) / rel)
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source), str(destination))
        else:
            source.unlink()
    if result.removed:
        _logger.info("Pruned %d orphaned partials from %s", len(result.removed), theme_root)
    return result


def _referenced_partials(theme_root: Path) -> Set[str]:
    used: Set[str] = set()
    for folder in ("layout", "pages", "partials"):
        base = theme_root / folder
        if not base.is_dir():
            continue
        for template in base.rglob("*.twig"):
            try:
                content = template.read_text(encoding="utf-8")
            except OSError:
                continue
            for include in parse_directives(content).includes:
                if include.startswith("partials/"):
                    used.add(include[len("partials/"):])
    return used


__all__ = ["ARCHIVE_DIR", "PruneResult", "prune_partials"]
