"""Template dependency graph: construction, cycle detection, ordering."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Literal, Sequence, Set, Tuple

from ..logging import get_logger
from ..paths import write_json, write_text
from .directives import DirectiveParser, RegexDirectiveParser

EdgeType = Literal["extends", "include"]

SCAN_DIRS = ("layout", "pages", "partials")
GRAPH_CACHE_PATH = ".factory-cache/graph.json"
REPORT_PATH = "reports/template-dependencies.md"


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    type: EdgeType

    def to_dict(self) -> Dict[str, str]:
        return {"from": self.source, "to": self.target, "type": self.type}


class TemplateCycleError(RuntimeError):
    """Raised when templates extend or include each other in a loop."""

    def __init__(self, cycles: Iterable[Sequence[str]]) -> None:
        self.cycles: Tuple[Tuple[str, ...], ...] = tuple(tuple(cycle) for cycle in cycles)
        preview = "; ".join(" -> ".join(cycle) for cycle in self.cycles[:3])
        suffix = "" if len(self.cycles) <= 3 else f" (+{len(self.cycles) - 3} more)"
        super().__init__(f"Template dependency cycle(s) detected: {preview}{suffix}")


@dataclass
class DependencyGraph:
    """Directed graph of template relations; edges point from dependent to dependency."""

    nodes: Set[str] = field(default_factory=set)
    edges: List[Edge] = field(default_factory=list)
    missing: Set[str] = field(default_factory=set)

    def dependencies(self, node: str) -> List[str]:
        seen: List[str] = []
        for edge in self.edges:
            if edge.source == node and edge.target not in seen:
                seen.append(edge.target)
        return seen

    def _adjacency(self) -> Dict[str, List[str]]:
        adjacency: Dict[str, List[str]] = {node: [] for node in sorted(self.nodes)}
        for edge in self.edges:
            targets = adjacency.setdefault(edge.source, [])
            if edge.target not in targets:
                targets.append(edge.target)
            adjacency.setdefault(edge.target, [])
        for targets in adjacency.values():
            targets.sort()
        return adjacency

    def detect_cycles(self) -> List[List[str]]:
        """Return cycles as closed paths, e.g. ``[A, B, A]``."""
        adjacency = self._adjacency()
        visiting: Set[str] = set()
        visited: Set[str] = set()
        cycles: List[List[str]] = []

        for start in adjacency:
            if start in visited:
                continue
            stack: List[str] = [start]
            iterators: List[Iterator[str]] = [iter(adjacency[start])]
            visiting.add(start)
            while iterators:
                node = stack[-1]
                child = next(iterators[-1], None)
                if child is None:
                    iterators.pop()
                    stack.pop()
                    visiting.discard(node)
                    visited.add(node)
                    continue
                if child in visiting:
                    index = stack.index(child)
                    cycles.append(stack[index:] + [child])
                    continue
                if child in visited:
                    continue
                visiting.add(child)
                stack.append(child)
                iterators.append(iter(adjacency[child]))
        return cycles

    def topological_order(self) -> List[str]:
        """Kahn ordering; a result shorter than ``nodes`` signals a cycle."""
        adjacency = self._adjacency()
        in_degree: Dict[str, int] = {node: 0 for node in adjacency}
        for targets in adjacency.values():
            for target in targets:
                in_degree[target] += 1
        queue = deque(node for node, degree in in_degree.items() if degree == 0)
        order: List[str] = []
        while queue:
            node = queue.popleft()
            order.append(node)
            for target in adjacency[node]:
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    queue.append(target)
        return order

    def dependencies_first(self) -> List[str]:
        """Order in which each template's dependencies come before it."""
        return list(reversed(self.topological_order()))

    def is_acyclic(self) -> bool:
        return len(self.topological_order()) == len(self._adjacency())

    def require_acyclic(self) -> None:
        if not self.is_acyclic():
            raise TemplateCycleError(self.detect_cycles())

    def to_dict(self) -> Dict[str, object]:
        return {
            "nodes": sorted(self.nodes),
            "edges": [edge.to_dict() for edge in self.edges],
            "topoOrder": self.topological_order(),
            "cycles": self.detect_cycles(),
            "missing": sorted(self.missing),
        }


class DependencyGraphBuilder:
    """Builds the template graph by re-reading emitted files from disk."""

    def __init__(self, parser: DirectiveParser | None = None) -> None:
        self.parser = parser or RegexDirectiveParser()
        self.logger = get_logger("graph")

    def build(self, theme_root: Path) -> DependencyGraph:
        theme_root = Path(theme_root)
        graph = DependencyGraph()
        for rel, path in self._iter_templates(theme_root):
            graph.nodes.add(rel)
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                self.logger.warning("Could not read template %s: %s", rel, exc)
                continue
            directives = self.parser.parse(text)
            if directives.extends:
                graph.edges.append(Edge(source=rel, target=directives.extends, type="extends"))
            for include in directives.includes:
                graph.edges.append(Edge(source=rel, target=include, type="include"))

        for edge in graph.edges:
            if edge.target not in graph.nodes:
                graph.missing.add(edge.target)
        graph.nodes.update(graph.missing)

        cycles = graph.detect_cycles()
        if cycles:
            self.logger.warning("Detected %d template cycle(s) under %s", len(cycles), theme_root)
        self.logger.debug(
            "Template graph: %d nodes, %d edges, %d missing",
            len(graph.nodes),
            len(graph.edges),
            len(graph.missing),
        )
        return graph

    def write_cache(self, graph: DependencyGraph, theme_root: Path) -> Path:
        return write_json(theme_root, GRAPH_CACHE_PATH, graph.to_dict())

    def render_report(self, graph: DependencyGraph, theme: str) -> str:
        cycles = graph.detect_cycles()
        lines = [
            f"# Template Dependency Graph: {theme}",
            "",
            f"Files scanned: {len(graph.nodes - graph.missing)}",
            f"Edges: {len(graph.edges)}",
            "",
            "## Cycles detected",
        ]
        if cycles:
            lines.extend(f"{index}. {' -> '.join(cycle)}" for index, cycle in enumerate(cycles, 1))
        else:
            lines.append("- None")
        if graph.missing:
            lines.extend(["", "## Missing targets"])
            lines.extend(f"- `{target}`" for target in sorted(graph.missing))
        order = graph.topological_order()
        lines.extend(["", "## Topological order (first 25)"])
        lines.extend(f"- {node}" for node in order[:25])
        return "\n".join(lines) + "\n"

    def write_report(self, graph: DependencyGraph, theme_root: Path, theme: str) -> Path:
        return write_text(theme_root, REPORT_PATH, self.render_report(graph, theme))

    @staticmethod
    def _iter_templates(theme_root: Path) -> Iterator[Tuple[str, Path]]:
        for folder in SCAN_DIRS:
            base = theme_root / folder
            if not base.is_dir():
                continue
            for path in sorted(base.rglob("*.twig")):
                if path.is_file() and not path.is_symlink():
                    yield path.relative_to(theme_root).as_posix(), path


__all__ = [
    "DependencyGraph",
    "DependencyGraphBuilder",
    "Edge",
    "GRAPH_CACHE_PATH",
    "TemplateCycleError",
]
