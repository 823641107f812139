"""Helper utilities for constructing throwaway prototypes and baselines in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence, Tuple

from themefactory.config import FactoryConfig
from themefactory.models import ComponentFragment, InlineScript, LayoutEntry, Page, ParsedSource


class PrototypeBuilder:
    """Writes prototype and baseline files under a workspace and builds ParsedSource values."""

    def __init__(self, tmp_path: Path) -> None:
        self.workspace = tmp_path / "workspace"
        self.root = self.workspace / "prototype"
        self.root.mkdir(parents=True)

    def write(self, files: Mapping[str, str | bytes]) -> None:
        """Write `path -> contents` entries into the prototype."""
        _write_tree(self.root, files)

    def baseline(self, name: str, files: Mapping[str, str | bytes]) -> Path:
        """Create `.baselines/theme-<name>` in the workspace with the given files."""
        root = self.workspace / ".baselines" / f"theme-{name}"
        root.mkdir(parents=True, exist_ok=True)
        _write_tree(root, files)
        return root

    def parsed(
        self,
        pages: Optional[Mapping[str, str]] = None,
        *,
        layout_map: Optional[Mapping[str, Sequence[Tuple[str, Optional[str]]]]] = None,
        js_map: Optional[Mapping[str, Iterable[str]]] = None,
        unchanged: Iterable[str] = (),
    ) -> ParsedSource:
        """Return a ParsedSource; pages default to every `.html` file in the prototype."""
        if pages is None:
            pages = {
                path.relative_to(self.root).as_posix(): path.read_text(encoding="utf-8")
                for path in sorted(self.root.rglob("*.html"))
            }
        return ParsedSource(
            input_path=self.root,
            pages=[Page(rel=rel, html=html) for rel, html in pages.items()],
            layout_map=[
                LayoutEntry(
                    page=page,
                    components=[ComponentFragment(signature=sig, html=html) for sig, html in items],
                )
                for page, items in (layout_map or {}).items()
            ],
            js_map={
                rel: [InlineScript(code=code) for code in codes]
                for rel, codes in (js_map or {}).items()
            },
            unchanged=frozenset(unchanged),
        )

    def config(self) -> FactoryConfig:
        """Return a default configuration rooted at the workspace."""
        return FactoryConfig(root=self.workspace)


def _write_tree(root: Path, files: Mapping[str, str | bytes]) -> None:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")


__all__ = ["PrototypeBuilder"]
