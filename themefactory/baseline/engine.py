"""Baseline completion: fill, enrich, or force-sync a theme from fallback sources."""

from __future__ import annotations

import json
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set

from ..config import FactoryConfig
from ..logging import get_logger
from ..paths import copy_file, ensure_inside, write_json, write_text
from ..postproc.markers import JSON_SOURCE_KEY, SourceInfo, SourceMarker
from ..stores.baseline_index import BaselineIndexCache
from .merge import deep_merge, is_thin
from .sources import (
    COPY_GROUPS,
    BaselineResolver,
    CopyGroup,
    baseline_commit,
    load_source_config,
)

MANIFEST_PATH = "reports/baseline-summary.json"
DIFF_REPORT_PATH = "reports/baseline-diff.md"
_SKIPPED_PREVIEW = 200

Approver = Callable[[str, "CopyPlan"], bool]


@dataclass(frozen=True)
class CopyAction:
    """One baseline file mapped onto its destination in the theme output."""

    rel: str
    source: Path
    destination: Path
    group: str
    source_rel: str
    output_root: Path


@dataclass
class CopyPlan:
    to_copy: List[CopyAction] = field(default_factory=list)
    to_enrich: List[CopyAction] = field(default_factory=list)
    to_force: List[CopyAction] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.to_copy or self.to_enrich or self.to_force)

    @property
    def size(self) -> int:
        return len(self.to_copy) + len(self.to_enrich) + len(self.to_force)


@dataclass(frozen=True)
class BaselineLogEntry:
    """Snapshot of one run that changed the output tree."""

    timestamp: str
    baseline: str
    baseline_commit: Optional[str]
    theme: str
    added: List[str]
    skipped: List[str]
    enriched: List[str]
    forced: List[str]
    duration: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "baseline": self.baseline,
            "baselineCommit": self.baseline_commit,
            "theme": self.theme,
            "added": list(self.added),
            "skipped": list(self.skipped),
            "enriched": list(self.enriched),
            "forced": list(self.forced),
            "duration": self.duration,
        }


@dataclass
class BaselineManifest:
    baseline_name: Optional[str] = None
    baseline_root: Optional[str] = None
    baseline_commit: Optional[str] = None
    copied: List[str] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=dict)
    timestamp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "baselineName": self.baseline_name,
            "baselineRoot": self.baseline_root,
            "baselineCommit": self.baseline_commit,
            "copied": list(self.copied),
            "stats": dict(self.stats),
            "timestamp": self.timestamp,
        }

    @classmethod
    def load(cls, path: Path) -> Optional["BaselineManifest"]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return None
        if not isinstance(data, dict):
            return None
        copied = data.get("copied")
        stats = data.get("stats")
        return cls(
            baseline_name=data.get("baselineName"),
            baseline_root=data.get("baselineRoot"),
            baseline_commit=data.get("baselineCommit"),
            copied=[item for item in copied if isinstance(item, str)] if isinstance(copied, list) else [],
            stats=dict(stats) if isinstance(stats, dict) else {},
            timestamp=data.get("timestamp"),
        )


@dataclass
class BaselineResult:
    mode: str
    baseline_present: bool = False
    manifest: BaselineManifest = field(default_factory=BaselineManifest)
    added: List[str] = field(default_factory=list)
    enriched: List[str] = field(default_factory=list)
    forced: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=dict)
    baselines_used: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    log_entry: Optional[BaselineLogEntry] = None
    log_path: Optional[Path] = None
    diff_path: Optional[Path] = None
    manifest_path: Optional[Path] = None

    @property
    def changed(self) -> bool:
        return bool(self.added or self.enriched or self.forced)


class BaselineCompletionEngine:
    """Reconciles a theme output tree against an ordered chain of baselines."""

    def __init__(
        self,
        config: FactoryConfig,
        *,
        cache: BaselineIndexCache | None = None,
        approve: Approver | None = None,
        runner: Callable[..., str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.settings = config.baseline
        self.cache = cache if cache is not None else BaselineIndexCache(config.baseline_cache_path())
        self.resolver = BaselineResolver(
            config.baselines_dir(),
            workspace_root=config.root,
            roots=self.settings.roots,
        )
        self.marker = SourceMarker()
        self._approve = approve or _prompt_approval
        self._runner = runner
        self._clock = clock or (lambda: datetime.now(UTC))
        self.logger = get_logger("baseline")

    def complete(
        self,
        output_root: Path,
        *,
        theme: str | None = None,
        input_path: Path | None = None,
        source_config_path: Path | None = None,
    ) -> BaselineResult:
        output_root = Path(output_root)
        mode = self.settings.mode
        result = BaselineResult(mode=mode)
        theme_name = theme or output_root.name
        queue: List[str] = list(self.settings.names)
        skipped: Set[str] = set()
        claimed: Set[str] = set()
        stats: Counter[str] = Counter()
        primary: Optional[str] = None
        first_present: Optional[str] = None
        log_entry: Optional[BaselineLogEntry] = None

        index = 0
        while index < len(queue):
            name = queue[index]
            index += 1
            root = self.resolver.resolve(name)
            if not root.is_dir():
                message = f"Baseline '{name}' unavailable at {root}; skipping"
                self.logger.warning(message)
                result.warnings.append(message)
                continue
            result.baseline_present = True
            first_present = first_present or name

            source_config = load_source_config(
                root, explicit_path=source_config_path, input_path=input_path
            )
            fallback = source_config.fallback_theme
            if fallback and fallback not in queue:
                queue.append(fallback)

            plan = self.plan(root, output_root, source_config.enabled_groups(), mode, claimed=claimed)
            skipped.update(plan.skipped)
            if not plan.has_changes:
                self.logger.debug("Baseline %s has nothing to add", name)
                continue
            if not self.settings.auto_approve and not self._approve(name, plan):
                self.logger.info("Baseline fill from %s declined", name)
                break

            started = time.monotonic()
            timestamp = _isoformat(self._clock())
            for action in plan.to_copy:
                if mode == "force":
                    copy_file(action.output_root, action.source, action.destination)
                else:
                    self.copy_with_metadata(action, name, timestamp)
                result.added.append(action.rel)
                stats[action.group] += 1
            for action in plan.to_force:
                copy_file(action.output_root, action.source, action.destination)
                result.forced.append(action.rel)
                stats[action.group] += 1
            for action in plan.to_enrich:
                if self.enrich_file(action, name, timestamp, warnings=result.warnings):
                    result.enriched.append(action.rel)

            primary = primary or name
            result.baselines_used.append(name)
            log_entry = BaselineLogEntry(
                timestamp=timestamp,
                baseline=name,
                baseline_commit=baseline_commit(root, self._runner),
                theme=theme_name,
                added=sorted(result.added),
                skipped=sorted(skipped - set(result.added) - set(result.forced)),
                enriched=list(result.enriched),
                forced=list(result.forced),
                duration=f"{time.monotonic() - started:.2f}s",
            )

        result.skipped = sorted(skipped - set(result.added) - set(result.forced) - set(result.enriched))
        result.stats = dict(stats)

        manifest_path = output_root / MANIFEST_PATH
        previous = BaselineManifest.load(manifest_path)
        effective = primary or (previous.baseline_name if previous else None) or first_present
        if effective is None and queue:
            effective = queue[-1]
        copied: List[str] = list(previous.copied) if previous else []
        for rel in [*result.added, *result.forced]:
            if rel not in copied:
                copied.append(rel)
        if primary is not None:
            root_text: Optional[str] = str(self.resolver.resolve(primary))
        elif previous and previous.baseline_root:
            root_text = previous.baseline_root
        else:
            root_text = str(self.resolver.resolve(first_present)) if first_present else None
        result.manifest = BaselineManifest(
            baseline_name=effective,
            baseline_root=root_text,
            baseline_commit=(log_entry.baseline_commit if log_entry else None)
            or (previous.baseline_commit if previous else None),
            copied=copied,
            stats=dict(stats),
            timestamp=_isoformat(self._clock()),
        )
        result.manifest_path = write_json(output_root, MANIFEST_PATH, result.manifest.to_dict())

        if log_entry is not None and result.changed:
            result.log_entry = log_entry
            result.log_path = self._write_log(log_entry)
            expected = self.settings.expected_ref
            if expected and log_entry.baseline_commit and log_entry.baseline_commit != expected:
                message = (
                    f"Baseline {log_entry.baseline}@{log_entry.baseline_commit} "
                    f"differs from expected {expected}"
                )
                self.logger.warning(message)
                result.warnings.append(message)

        if self.settings.diff:
            report = self.render_diff(result, theme_name, timestamp=result.manifest.timestamp)
            result.diff_path = write_text(output_root, DIFF_REPORT_PATH, report)

        self.cache.persist()
        self.logger.info(
            "Baseline %s: %d added, %d enriched, %d forced, %d skipped",
            mode,
            len(result.added),
            len(result.enriched),
            len(result.forced),
            len(result.skipped),
        )
        return result

    def plan(
        self,
        baseline_root: Path,
        output_root: Path,
        groups: List[CopyGroup] | None = None,
        mode: str | None = None,
        *,
        claimed: Set[str] | None = None,
    ) -> CopyPlan:
        """Classify every baseline file as copy, enrich, force, or skip.

        Destinations already in ``claimed`` belong to an earlier baseline of the
        chain and are left out; every destination planned here is added to it.
        """
        mode = mode or self.settings.mode
        plan = CopyPlan()
        claimed = set() if claimed is None else claimed
        for group in COPY_GROUPS if groups is None else groups:
            src_root = baseline_root / group.src
            if not src_root.is_dir():
                continue
            for rel in self.cache.list_files(src_root):
                if not group.accepts(rel):
                    continue
                dest_rel = f"{group.dest}/{rel}"
                if dest_rel in claimed:
                    continue
                claimed.add(dest_rel)
                action = CopyAction(
                    rel=dest_rel,
                    source=src_root / rel,
                    destination=ensure_inside(output_root, dest_rel),
                    group=group.key,
                    source_rel=f"{group.src}/{rel}",
                    output_root=output_root,
                )
                if not action.destination.exists():
                    plan.to_copy.append(action)
                elif mode == "force":
                    plan.to_force.append(action)
                elif mode == "enrich" and is_thin(action.destination):
                    plan.to_enrich.append(action)
                else:
                    plan.skipped.append(dest_rel)
        return plan

    def copy_with_metadata(self, action: CopyAction, baseline: str, timestamp: str) -> Path:
        """Copy a missing file, embedding a filled-from marker where the type allows."""
        ext = action.destination.suffix.lower()
        if self.marker.handles(ext):
            try:
                content = action.source.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                return copy_file(action.output_root, action.source, action.destination)
            info = SourceInfo(baseline=baseline, rel=action.source_rel, timestamp=timestamp)
            return write_text(action.output_root, action.destination, self.marker.inject(content, ext, info))
        return copy_file(action.output_root, action.source, action.destination)

    def enrich_file(
        self,
        action: CopyAction,
        baseline: str,
        timestamp: str,
        *,
        warnings: List[str] | None = None,
    ) -> bool:
        """Supplement a thin file; returns False when nothing changed."""
        ext = action.destination.suffix.lower()
        if not self.marker.handles(ext):
            if action.destination.stat().st_size == 0:
                copy_file(action.output_root, action.source, action.destination)
                return True
            return False
        try:
            current = action.destination.read_text(encoding="utf-8")
            incoming = action.source.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            message = f"Skipping enrich of {action.rel}: {exc}"
            self.logger.warning(message)
            if warnings is not None:
                warnings.append(message)
            return False
        info = SourceInfo(baseline=baseline, rel=action.source_rel, timestamp=timestamp)

        if ext in SourceMarker.JSON_EXTS:
            target = _load_json_object(current)
            if SourceMarker.has_json_source(target, baseline, action.source_rel):
                return False
            merged = deep_merge(target, _load_json_object(incoming))
            if merged == target:
                return False
            merged[JSON_SOURCE_KEY] = SourceMarker.json_source(info)
            payload = json.dumps(merged, indent=2, ensure_ascii=False) + "\n"
            write_text(action.output_root, action.destination, payload)
            return True

        if self.marker.has_supplement(current, baseline, action.source_rel) or self.marker.has_filled(
            current, baseline, action.source_rel
        ):
            return False
        if not incoming.strip():
            return False
        supplement = self.marker.supplement(ext, info)
        body = current.rstrip()
        enriched = f"{body}\n\n{supplement}\n{incoming}" if body else f"{supplement}\n{incoming}"
        write_text(action.output_root, action.destination, enriched)
        self.logger.debug("Enriched %s from %s", action.rel, baseline)
        return True

    def render_diff(self, result: BaselineResult, theme: str, *, timestamp: str | None = None) -> str:
        used = ", ".join(f"`{name}`" for name in result.baselines_used) or "_none_"
        lines = [
            f"# Baseline Diff: {theme}",
            "",
            f"- Baselines: {used}",
            f"- Mode: {result.mode}",
            f"- Timestamp: {timestamp or ''}",
            f"- Added files: {len(result.added)}",
            f"- Enriched files: {len(result.enriched)}",
            f"- Forced files: {len(result.forced)}",
            f"- Skipped files: {len(result.skipped)}",
            "",
        ]
        histogram = _histogram([*result.added, *result.forced])
        if histogram:
            lines.append("## Changed by directory")
            lines.extend(f"- {bucket}: {count}" for bucket, count in histogram.items())
            lines.append("")
        for title, items in (
            ("Added Files", result.added),
            ("Enriched Files", result.enriched),
            ("Forced Files", result.forced),
        ):
            lines.append(f"## {title}")
            if items:
                lines.extend(f"- `{rel}`" for rel in items)
            else:
                lines.append("_None_")
            lines.append("")
        lines.append("## Skipped (already present)")
        if result.skipped:
            lines.extend(f"- `{rel}`" for rel in result.skipped[:_SKIPPED_PREVIEW])
            extra = len(result.skipped) - _SKIPPED_PREVIEW
            if extra > 0:
                lines.append(f"- ...and {extra} more")
        else:
            lines.append("_None_")
        return "\n".join(lines) + "\n"

    def _write_log(self, entry: BaselineLogEntry) -> Path:
        log_dir = self.config.baseline_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        safe_timestamp = entry.timestamp.replace(":", "-")
        path = log_dir / f"{entry.theme}-{safe_timestamp}.json"
        path.write_text(json.dumps(entry.to_dict(), indent=2) + "\n", encoding="utf-8")
        return path


def _load_json_object(text: str) -> Dict[str, Any]:
    if not text.strip():
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def _histogram(paths: List[str]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for rel in paths:
        bucket = rel.split("/", 1)[0] or "."
        counts[bucket] = counts.get(bucket, 0) + 1
    return counts


def _isoformat(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


def _prompt_approval(name: str, plan: CopyPlan) -> bool:
    try:
        answer = input(f"Missing or thin {plan.size} files covered by {name}. Fill now? (Y/n) ")
    except EOFError:
        return False
    return answer.strip().lower() not in {"n", "no"}


__all__ = [
    "BaselineCompletionEngine",
    "BaselineLogEntry",
    "BaselineManifest",
    "BaselineResult",
    "CopyAction",
    "CopyPlan",
    "DIFF_REPORT_PATH",
    "MANIFEST_PATH",
]
