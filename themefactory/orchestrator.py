"""Pipeline orchestration for theme builds."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .adapter import AdaptResult, PruneResult, TemplateAdapter, prune_partials
from .baseline import BaselineCompletionEngine, BaselineResult
from .config import FactoryConfig
from .graph import DependencyGraph, DependencyGraphBuilder
from .locking import output_lock
from .logging import build_log, get_logger
from .manifest import BuildManifest, BuildManifestGenerator
from .models import ParsedSource
from .paths import ensure_inside
from .scanner import compute_input_checksum
from .stores import BaselineIndexCache
from .validators import ValidationReport, validate_theme

BUILD_LOG_PATH = "reports/build.log"


@dataclass
class BuildResult:
    """Everything one build produced, stage by stage."""

    theme: str
    output_root: Path
    adapt: AdaptResult
    graph: DependencyGraph
    validation: ValidationReport
    manifest: BuildManifest
    baseline: Optional[BaselineResult] = None
    prune: Optional[PruneResult] = None
    manifest_path: Optional[Path] = None
    log_path: Optional[Path] = None
    warnings: List[str] = field(default_factory=list)


class ThemeFactory:
    """Coordinates adaptation, graph checks, baseline completion, and manifests."""

    def __init__(
        self,
        config: FactoryConfig,
        *,
        adapter: TemplateAdapter | None = None,
        graph_builder: DependencyGraphBuilder | None = None,
        baseline_engine: BaselineCompletionEngine | None = None,
        manifest_generator: BuildManifestGenerator | None = None,
        cache: BaselineIndexCache | None = None,
    ) -> None:
        self.config = config
        self.adapter = adapter or TemplateAdapter(config.adapter)
        self.graph_builder = graph_builder or DependencyGraphBuilder()
        self._baseline_engine = baseline_engine
        self._cache = cache
        self.manifest_generator = manifest_generator or BuildManifestGenerator()
        self.logger = get_logger("orchestrator")

    def output_path(self, theme: str) -> Path:
        return self.config.output_root() / theme

    def build(
        self,
        parsed: ParsedSource,
        theme: str,
        *,
        input_checksum: str | None = None,
    ) -> BuildResult:
        """Run every stage against ``output/<theme>`` while holding its lock."""
        output_root = self.output_path(theme)
        started = time.monotonic()
        self.logger.info("Building theme %s into %s", theme, output_root)

        with output_lock(output_root), build_log(ensure_inside(output_root, BUILD_LOG_PATH)) as log_path:
            adapt = self.adapter.adapt(parsed, output_root)
            warnings: List[str] = list(adapt.warnings)

            graph = self._scan_graph(output_root)

            baseline: Optional[BaselineResult] = None
            if self.config.baseline.names:
                baseline = self.baseline_engine.complete(
                    output_root, theme=theme, input_path=parsed.input_path
                )
                warnings.extend(baseline.warnings)
                graph = self._scan_graph(output_root)

            self.graph_builder.write_cache(graph, output_root)
            self.graph_builder.write_report(graph, output_root, theme)

            prune: Optional[PruneResult] = None
            if self.config.prune_partials:
                prune = prune_partials(output_root)
                if prune.removed:
                    graph = self._scan_graph(output_root)

            validation = validate_theme(output_root, graph)

            if input_checksum is None and parsed.input_path.is_dir():
                input_checksum = compute_input_checksum(parsed.input_path)
            manifest = self.manifest_generator.generate(
                output_root,
                theme=theme,
                validation=validation,
                warnings=warnings,
                page_order=_page_order(parsed),
                input_checksum=input_checksum,
                elapsed_sec=time.monotonic() - started,
            )
            manifest_path = self.manifest_generator.write(manifest, output_root)

        self.logger.info(
            "Built %s: %d pages, %d components, %d assets (%d warnings)",
            theme,
            manifest.pages,
            manifest.components,
            manifest.assets,
            len(manifest.warnings),
        )
        return BuildResult(
            theme=theme,
            output_root=output_root,
            adapt=adapt,
            graph=graph,
            validation=validation,
            manifest=manifest,
            baseline=baseline,
            prune=prune,
            manifest_path=manifest_path,
            log_path=log_path,
            warnings=warnings,
        )

    @property
    def baseline_engine(self) -> BaselineCompletionEngine:
        if self._baseline_engine is None:
            self._baseline_engine = BaselineCompletionEngine(self.config, cache=self._cache)
        return self._baseline_engine

    def _scan_graph(self, output_root: Path) -> DependencyGraph:
        graph = self.graph_builder.build(output_root)
        if graph.is_acyclic():
            return graph
        if self.config.graph.allow_cycles:
            self.logger.warning("Continuing with template cycles: %s", graph.detect_cycles())
            return graph
        self.graph_builder.write_cache(graph, output_root)
        graph.require_acyclic()
        return graph


def _page_order(parsed: ParsedSource) -> List[str]:
    order = [entry.page for entry in parsed.layout_map if entry.page]
    return order or [page.rel for page in parsed.pages]


__all__ = ["BUILD_LOG_PATH", "BuildResult", "ThemeFactory"]
