"""Adapt parsed prototype pages into a layout-extending template theme."""

from __future__ import annotations

import os
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Sequence

from ..config import AdapterConfig
from ..logging import get_logger
from ..models import ParsedSource
from ..paths import copy_file, ensure_dir, write_text
from .assets import AssetNormalizer, NormalizedAsset
from .partials import FragmentMatch, HoistMiss, PartialHoister

LAYOUT_PATH = "layout/default.twig"
THEME_DIRS = ("layout", "pages", "partials", "assets")

_LAYOUT_TEMPLATE = """{{# themefactory default layout #}}
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8"/>
  <title>{{% block title %}}Theme{{% endblock %}}</title>
{head}</head>
<body>
{body}</body>
</html>
"""

_PAGE_TEMPLATE = """{{% extends "{layout}" %}}
{{% block content %}}
{html}
{{% endblock %}}
"""


@dataclass
class PageOutcome:
    """What happened to one prototype page."""

    rel: str
    template: str
    matches: List[FragmentMatch] = field(default_factory=list)


@dataclass
class AdaptResult:
    """Summary of files written by the template adapter."""

    written: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    pages: List[PageOutcome] = field(default_factory=list)
    partials: List[str] = field(default_factory=list)
    assets: List[NormalizedAsset] = field(default_factory=list)
    copied_assets: List[str] = field(default_factory=list)
    scripts: List[str] = field(default_factory=list)
    misses: List[HoistMiss] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def render_layout(hooks: Sequence[str] = ()) -> str:
    """Return the default layout shell, optionally with named hook blocks."""
    if not hooks:
        return _LAYOUT_TEMPLATE.format(head="", body="  {% block content %}{% endblock %}\n")
    blocks = "".join(f"  {{% block {hook} %}}{{% endblock %}}\n" for hook in hooks)
    return _LAYOUT_TEMPLATE.format(
        head="  {% block head %}{% endblock %}\n",
        body=f"  {{% block content %}}{{% endblock %}}\n{blocks}  {{% block scripts %}}{{% endblock %}}\n",
    )


def page_template_path(rel: str) -> str:
    """Map an input page path to its `pages/` template path."""
    posix = PurePosixPath(rel.replace("\\", "/"))
    return f"pages/{posix.with_suffix('.twig').as_posix()}"


def wrap_page(html: str, layout: str = LAYOUT_PATH) -> str:
    return _PAGE_TEMPLATE.format(layout=layout, html=html)


class TemplateAdapter:
    """Drives asset normalization, hoisting, and page wrapping for one theme."""

    def __init__(self, config: AdapterConfig | None = None) -> None:
        self.config = config or AdapterConfig()
        self.logger = get_logger("adapter")

    def adapt(self, parsed: ParsedSource, output_root: Path) -> AdaptResult:
        output_root = Path(output_root)
        for name in THEME_DIRS:
            ensure_dir(output_root, name)

        result = AdaptResult()
        write_text(output_root, LAYOUT_PATH, render_layout(self.config.layout_hooks))

        hoister = PartialHoister(structural=self.config.structural_matching)
        normalizer = AssetNormalizer(parsed.input_path, output_root)
        plan = None
        if self.config.partialize:
            # Fragments must carry the same rewritten asset paths as the pages they replace.
            plan = hoister.rewrite(
                hoister.plan(parsed.layout_map),
                lambda candidate: normalizer.normalize(candidate.html, _page_dir(candidate.origin)).html,
            )

        for page in parsed.pages:
            template_rel = page_template_path(page.rel)
            if self.config.lock_unchanged and page.rel in parsed.unchanged:
                result.skipped.append(page.rel)
                self.logger.debug("Skipping unchanged page %s", page.rel)
                continue
            normalized = normalizer.normalize(page.html, _page_dir(page.rel))
            for ref in normalized.unresolved:
                result.warnings.append(f"{page.rel}: unresolved asset reference '{ref.url}'")

            html = normalized.html
            outcome = PageOutcome(rel=page.rel, template=template_rel)
            if plan is not None and plan.candidates:
                html, outcome.matches = hoister.apply(html, plan)
                misses = hoister.misses(page.rel, outcome.matches, plan)
                for miss in misses:
                    result.warnings.append(
                        f"{page.rel}: fragment '{miss.signature}' not found verbatim; left inline"
                    )
                result.misses.extend(misses)

            write_text(output_root, template_rel, wrap_page(html))
            result.written.append(template_rel)
            result.pages.append(outcome)

        result.assets = normalizer.assets
        result.copied_assets = self._copy_input_assets(parsed.input_path, output_root)
        result.scripts = self._write_scripts(parsed, output_root)

        if plan is not None:
            result.partials = hoister.write_partials(plan, output_root)
            for signature in plan.without_markup:
                result.warnings.append(f"shared component '{signature}' has no markup; not hoisted")

        self.logger.info(
            "Adapted %d pages (%d skipped, %d partials, %d normalized assets)",
            len(result.written),
            len(result.skipped),
            len(result.partials),
            len(result.assets),
        )
        return result

    def _copy_input_assets(self, input_root: Path, output_root: Path) -> List[str]:
        source_root = Path(input_root) / "assets"
        if not source_root.is_dir() or source_root.is_symlink():
            return []
        limit = self.config.max_asset_bytes
        copied: List[str] = []
        for dirpath, dirnames, filenames in os.walk(source_root):
            current = Path(dirpath)
            dirnames[:] = sorted(name for name in dirnames if not (current / name).is_symlink())
            for filename in sorted(filenames):
                source = current / filename
                try:
                    stat_result = source.lstat()
                except OSError:
                    continue
                if source.is_symlink() or not source.is_file():
                    continue
                if limit and stat_result.st_size > limit:
                    self.logger.debug("Skipping oversized asset %s (%d bytes)", source, stat_result.st_size)
                    continue
                rel = source.relative_to(source_root).as_posix()
                copy_file(output_root, source, Path("assets") / rel)
                copied.append(f"assets/{rel}")
        return copied

    def _write_scripts(self, parsed: ParsedSource, output_root: Path) -> List[str]:
        written: List[str] = []
        for rel, scripts in sorted(parsed.js_map.items()):
            stem = re.sub(r"[\\/]", "_", rel)
            for index, script in enumerate(scripts):
                target = f"assets/js/{stem}-{index}.js"
                write_text(output_root, target, f"/* extracted */\n{script.code}")
                written.append(target)
        return written


def _page_dir(rel: str) -> str:
    return posixpath.dirname(rel.replace("\\", "/"))


__all__ = [
    "AdaptResult",
    "LAYOUT_PATH",
    "PageOutcome",
    "TemplateAdapter",
    "page_template_path",
    "render_layout",
    "wrap_page",
]
