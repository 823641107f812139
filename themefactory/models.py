"""Core data models shared across themefactory components."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional


@dataclass(frozen=True)
class Page:
    """One prototype page as produced by the upstream parser."""

    rel: str
    html: str


@dataclass(frozen=True)
class ComponentFragment:
    """A detected markup fragment keyed by its structural signature."""

    signature: str
    html: Optional[str] = None


@dataclass(frozen=True)
class LayoutEntry:
    """Component inventory for a single page."""

    page: str
    components: List[ComponentFragment] = field(default_factory=list)


@dataclass(frozen=True)
class InlineScript:
    """Inline script body extracted from a page."""

    code: str


@dataclass
class ParsedSource:
    """Normalized view of a static prototype, read-only for the core."""

    input_path: Path
    pages: List[Page] = field(default_factory=list)
    layout_map: List[LayoutEntry] = field(default_factory=list)
    js_map: Dict[str, List[InlineScript]] = field(default_factory=dict)
    unchanged: FrozenSet[str] = frozenset()

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ParsedSource":
        """Build a ParsedSource from the parser's JSON shape (camelCase keys)."""
        input_path = payload.get("inputPath")
        if not isinstance(input_path, (str, Path)):
            raise ValueError("ParsedSource payload requires an 'inputPath'")

        pages = [
            Page(rel=str(item["rel"]), html=str(item.get("html", "")))
            for item in payload.get("pages") or []
            if isinstance(item, Mapping) and item.get("rel")
        ]

        layout_map: List[LayoutEntry] = []
        for entry in payload.get("layoutMap") or []:
            if not isinstance(entry, Mapping):
                continue
            components = [
                ComponentFragment(
                    signature=str(component.get("signature", "")),
                    html=component.get("html") if isinstance(component.get("html"), str) else None,
                )
                for component in entry.get("components") or []
                if isinstance(component, Mapping)
            ]
            layout_map.append(LayoutEntry(page=str(entry.get("page", "")), components=components))

        js_map: Dict[str, List[InlineScript]] = {}
        raw_js = payload.get("jsMap") or {}
        if isinstance(raw_js, Mapping):
            for rel, items in raw_js.items():
                scripts = [
                    InlineScript(code=str(item.get("code", "")))
                    for item in items or []
                    if isinstance(item, Mapping)
                ]
                js_map[str(rel)] = scripts

        unchanged = frozenset(str(rel) for rel in payload.get("unchanged") or [])
        return cls(
            input_path=Path(input_path),
            pages=pages,
            layout_map=layout_map,
            js_map=js_map,
            unchanged=unchanged,
        )


@dataclass(frozen=True)
class AssetReference:
    """A `src`/`href`/`url()` value found in page markup."""

    attr: str
    url: str
