"""Structural checks over a generated theme tree."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from ..graph.builder import DependencyGraph
from ..logging import get_logger
from ..paths import write_json

REPORT_FILENAME = "report.json"

IssueLevel = Literal["critical", "warning"]

_EXTENDS_PATTERN = re.compile(r"""\{%-?\s*extends\s+["']layout/default\.twig["']\s*-?%\}""")
_CONTENT_BLOCK_PATTERN = re.compile(r"\{%-?\s*block\s+content\s*-?%\}")
_ENDBLOCK_PATTERN = re.compile(r"\{%-?\s*endblock\b")

_logger = get_logger("validators.structure")


@dataclass
class ValidationIssue:
    """A single structural problem found in the theme output."""

    level: IssueLevel
    type: str
    file: Optional[str] = None
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"level": self.level, "type": self.type}
        if self.file is not None:
            payload["file"] = self.file
        if self.detail is not None:
            payload["detail"] = self.detail
        return payload

    def describe(self) -> str:
        parts = [f"{self.level}:{self.type}"]
        if self.file:
            parts.append(self.file)
        if self.detail:
            parts.append(self.detail)
        return " ".join(parts)


@dataclass
class ValidationReport:
    issues: List[ValidationIssue] = field(default_factory=list)
    pages: int = 0
    path: Optional[Path] = None

    @property
    def status(self) -> str:
        return "warn" if self.issues else "ok"

    @property
    def critical(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.level == "critical"]

    def failed_files(self) -> List[str]:
        return sorted({issue.file for issue in self.critical if issue.file})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "issues": [issue.to_dict() for issue in self.issues],
            "stats": {"pages": self.pages},
        }


def validate_theme(theme_root: Path, graph: DependencyGraph | None = None) -> ValidationReport:
    """Check layout/page structure and template wiring, then write `report.json`."""
    theme_root = Path(theme_root)
    report = ValidationReport()
    layout_dir = theme_root / "layout"
    pages_dir = theme_root / "pages"

    if not layout_dir.is_dir():
        report.issues.append(ValidationIssue(level="critical", type="missing-dir", file="layout"))
    if not pages_dir.is_dir():
        report.issues.append(ValidationIssue(level="critical", type="missing-dir", file="pages"))
    else:
        pages = sorted(path for path in pages_dir.rglob("*.twig") if path.is_file())
        report.pages = len(pages)
        if not pages:
            report.issues.append(ValidationIssue(level="critical", type="no-pages"))
        for path in pages:
            rel = path.relative_to(theme_root).as_posix()
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                report.issues.append(
                    ValidationIssue(level="critical", type="unreadable", file=rel, detail=str(exc))
                )
                continue
            if not _EXTENDS_PATTERN.search(text):
                report.issues.append(ValidationIssue(level="warning", type="missing-extends", file=rel))
            if not _CONTENT_BLOCK_PATTERN.search(text) or not _ENDBLOCK_PATTERN.search(text):
                report.issues.append(
                    ValidationIssue(level="warning", type="missing-content-block", file=rel)
                )

    if graph is not None:
        for edge in graph.edges:
            if edge.target in graph.missing:
                report.issues.append(
                    ValidationIssue(
                        level="warning",
                        type=f"missing-{edge.type}",
                        file=edge.source,
                        detail=edge.target,
                    )
                )
        for cycle in graph.detect_cycles():
            report.issues.append(
                ValidationIssue(level="warning", type="cycle", file=cycle[0], detail=" -> ".join(cycle))
            )

    report.path = write_json(theme_root, REPORT_FILENAME, report.to_dict())
    if report.issues:
        _logger.info(
            "Validation found %d issue(s) (%d critical)", len(report.issues), len(report.critical)
        )
    return report


__all__ = ["REPORT_FILENAME", "ValidationIssue", "ValidationReport", "validate_theme"]
