"""Build manifest generation for finished theme trees."""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from . import __version__
from .logging import get_logger
from .paths import write_json
from .postproc.markers import JSON_SOURCE_KEY, SourceMarker, strip_timestamps
from .validators.structure import ValidationReport

MANIFEST_FILENAME = "manifest.json"
CHECKSUM_DIRS = ("layout", "pages", "partials", "assets")


@dataclass
class BuildManifest:
    """Machine-readable summary of one build."""

    theme: str
    version: str
    timestamp: str
    pages: int
    components: int
    assets: int
    checksum: str
    input_checksum: Optional[str] = None
    elapsed_sec: Optional[float] = None
    warnings: List[str] = field(default_factory=list)
    failed_files: List[str] = field(default_factory=list)
    page_order: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "theme": self.theme,
            "version": self.version,
            "timestamp": self.timestamp,
            "pages": self.pages,
            "components": self.components,
            "assets": self.assets,
            "checksum": self.checksum,
            "inputChecksum": self.input_checksum,
            "elapsedSec": self.elapsed_sec,
            "warnings": list(self.warnings),
            "failedFiles": list(self.failed_files),
            "pageOrder": list(self.page_order),
        }


class BuildManifestGenerator:
    """Hashes the structural files of a theme and records build metrics."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._marker = SourceMarker()
        self.logger = get_logger("manifest")

    def compute_checksum(self, theme_root: Path) -> str:
        """MD5 over sorted relative paths and their timestamp-free contents."""
        theme_root = Path(theme_root)
        digest = hashlib.md5()
        for rel, path in sorted(_iter_structural_files(theme_root)):
            digest.update(rel.encode("utf-8"))
            digest.update(b"\0")
            digest.update(self._stable_bytes(path))
            digest.update(b"\0")
        return digest.hexdigest()

    def generate(
        self,
        theme_root: Path,
        *,
        theme: str | None = None,
        validation: ValidationReport | None = None,
        warnings: Iterable[str] = (),
        page_order: Sequence[str] = (),
        input_checksum: str | None = None,
        elapsed_sec: float | None = None,
    ) -> BuildManifest:
        theme_root = Path(theme_root)
        collected = list(warnings)
        failed: List[str] = []
        if validation is not None:
            collected.extend(issue.describe() for issue in validation.issues)
            failed = validation.failed_files()
        return BuildManifest(
            theme=theme or theme_root.name,
            version=__version__,
            timestamp=self._clock().isoformat().replace("+00:00", "Z"),
            pages=_count(theme_root / "pages", ".twig"),
            components=_count(theme_root / "layout", ".twig") + _count(theme_root / "partials", ".twig"),
            assets=_count(theme_root / "assets"),
            checksum=self.compute_checksum(theme_root),
            input_checksum=input_checksum,
            elapsed_sec=round(elapsed_sec, 3) if elapsed_sec is not None else None,
            warnings=collected,
            failed_files=failed,
            page_order=list(page_order),
        )

    def write(self, manifest: BuildManifest, theme_root: Path) -> Optional[Path]:
        """Best-effort write of `manifest.json`; failures are logged, not raised."""
        try:
            return write_json(theme_root, MANIFEST_FILENAME, manifest.to_dict())
        except OSError as exc:
            self.logger.warning("Failed to write build manifest for %s: %s", manifest.theme, exc)
            return None

    def _stable_bytes(self, path: Path) -> bytes:
        data = path.read_bytes()
        ext = path.suffix.lower()
        if not self._marker.handles(ext):
            return data
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            return data
        if ext in SourceMarker.JSON_EXTS:
            return _stable_json(text).encode("utf-8")
        return strip_timestamps(text).encode("utf-8")


def _stable_json(text: str) -> str:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return text
    if isinstance(data, dict) and isinstance(data.get(JSON_SOURCE_KEY), dict):
        source = dict(data[JSON_SOURCE_KEY])
        source.pop("timestamp", None)
        data[JSON_SOURCE_KEY] = source
    return json.dumps(data, sort_keys=True, ensure_ascii=False)


def _iter_structural_files(theme_root: Path) -> Iterator[tuple[str, Path]]:
    for folder in CHECKSUM_DIRS:
        base = theme_root / folder
        if not base.is_dir():
            continue
        for dirpath, dirnames, filenames in os.walk(base):
            current = Path(dirpath)
            dirnames[:] = [name for name in dirnames if not (current / name).is_symlink()]
            for filename in filenames:
                path = current / filename
                if path.is_file() and not path.is_symlink():
                    yield path.relative_to(theme_root).as_posix(), path


def _count(base: Path, suffix: str | None = None) -> int:
    if not base.is_dir():
        return 0
    return sum(
        1
        for path in base.rglob("*")
        if path.is_file() and (suffix is None or path.name.endswith(suffix))
    )


__all__ = ["BuildManifest", "BuildManifestGenerator", "CHECKSUM_DIRS", "MANIFEST_FILENAME"]
