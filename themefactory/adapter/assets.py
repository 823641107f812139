"""Content-addressed normalization of asset references in page markup."""

from __future__ import annotations

import hashlib
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Set, Tuple

from ..logging import get_logger
from ..models import AssetReference
from ..paths import write_bytes

_ATTR_PATTERN = re.compile(r"""\b(src|href)=["']([^"']+)["']""", re.IGNORECASE)
_CSS_URL_PATTERN = re.compile(r"""url\((['"]?)([^)'"]+)\1\)""", re.IGNORECASE)
_SCHEME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")

NORMALIZED_DIR = "normalized"
HASH_LENGTH = 8


@dataclass(frozen=True)
class NormalizedAsset:
    """A source file mapped to its content-addressed output location."""

    source: str
    target: str
    digest: str
    size: int


@dataclass
class NormalizedPage:
    """Markup after asset rewriting plus what was (and was not) resolved."""

    html: str
    assets: List[NormalizedAsset] = field(default_factory=list)
    unresolved: List[AssetReference] = field(default_factory=list)


def content_hash(data: bytes) -> str:
    """Short content hash used in normalized asset file names."""
    return hashlib.md5(data).hexdigest()[:HASH_LENGTH]


def normalized_name(rel_path: str, digest: str) -> str:
    """Return ``normalized/<rel-without-ext>.<digest><ext>`` for an input-relative path."""
    base, ext = posixpath.splitext(rel_path)
    return f"{NORMALIZED_DIR}/{base}.{digest}{ext}"


def extract_references(html: str) -> List[AssetReference]:
    """Return candidate local references from src/href attributes and CSS url()."""
    refs: List[AssetReference] = []
    seen: Set[Tuple[str, str]] = set()
    for match in _ATTR_PATTERN.finditer(html):
        _collect(refs, seen, match.group(1).lower(), match.group(2))
    for match in _CSS_URL_PATTERN.finditer(html):
        _collect(refs, seen, "url", match.group(2).strip())
    return refs


def _collect(refs: List[AssetReference], seen: Set[Tuple[str, str]], attr: str, url: str) -> None:
    if _is_external(url):
        return
    key = (attr, url)
    if key in seen:
        return
    seen.add(key)
    refs.append(AssetReference(attr=attr, url=url))


def _is_external(url: str) -> bool:
    if not url or url.startswith(("#", "//", "assets/")):
        return True
    if "{{" in url or "{%" in url:
        return True
    return bool(_SCHEME_PATTERN.match(url))


class AssetNormalizer:
    """Rewrites relative asset references to content-addressed copies.

    A single instance spans one build so the same bytes referenced from
    several pages are written once.
    """

    def __init__(self, input_root: Path, output_root: Path, *, assets_dir: str = "assets") -> None:
        self.input_root = Path(input_root).resolve()
        self.output_root = Path(output_root)
        self.assets_dir = assets_dir
        self.logger = get_logger("adapter.assets")
        self._copied: Set[Tuple[str, str]] = set()
        self._assets: Dict[str, NormalizedAsset] = {}

    @property
    def assets(self) -> List[NormalizedAsset]:
        """Every distinct normalized asset produced so far, ordered by target."""
        return [self._assets[key] for key in sorted(self._assets)]

    def normalize(self, html: str, page_dir: str) -> NormalizedPage:
        """Rewrite references in ``html`` for a page living in ``page_dir`` (input-relative)."""
        result = NormalizedPage(html=html)
        out = html
        for ref in extract_references(html):
            asset = self._resolve(ref, page_dir)
            if asset is None:
                result.unresolved.append(ref)
                continue
            result.assets.append(asset)
            out = _replace_reference(out, ref, f"{self.assets_dir}/{asset.target}{_suffix_of(ref.url)}")
        result.html = out
        return result

    def _resolve(self, ref: AssetReference, page_dir: str) -> NormalizedAsset | None:
        path_part = re.split(r"[?#]", ref.url, maxsplit=1)[0]
        if not path_part:
            return None
        if path_part.startswith("/"):
            candidate = self.input_root / path_part.lstrip("/")
        else:
            candidate = self.input_root / page_dir / path_part
        try:
            resolved = candidate.resolve()
            rel = resolved.relative_to(self.input_root).as_posix()
        except (OSError, ValueError):
            self.logger.debug("Asset %s resolves outside the input root; left untouched", ref.url)
            return None
        try:
            if not resolved.is_file():
                self.logger.debug("Asset %s not found; left untouched", ref.url)
                return None
            data = resolved.read_bytes()
        except OSError as exc:
            self.logger.debug("Asset %s unreadable (%s); left untouched", ref.url, exc)
            return None

        digest = content_hash(data)
        target = normalized_name(rel, digest)
        key = (target, digest)
        if key not in self._copied:
            destination = self.output_root / self.assets_dir / target
            if not destination.exists():
                write_bytes(self.output_root, destination, data)
            self._copied.add(key)
        asset = NormalizedAsset(source=rel, target=target, digest=digest, size=len(data))
        self._assets[target] = asset
        return asset


def _suffix_of(url: str) -> str:
    match = re.search(r"[?#]", url)
    return url[match.start():] if match else ""


def _replace_reference(html: str, ref: AssetReference, new_value: str) -> str:
    escaped = re.escape(ref.url)
    if ref.attr == "url":
        pattern = re.compile(rf"""url\((['"]?){escaped}\1\)""", re.IGNORECASE)
        return pattern.sub(lambda m: f"url({m.group(1)}{new_value}{m.group(1)})", html)
    pattern = re.compile(rf"""\b({re.escape(ref.attr)})=(["']){escaped}\2""", re.IGNORECASE)
    return pattern.sub(lambda m: f'{m.group(1)}="{new_value}"', html)


__all__ = [
    "AssetNormalizer",
    "NormalizedAsset",
    "NormalizedPage",
    "content_hash",
    "extract_references",
    "normalized_name",
]
