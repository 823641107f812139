"""Baseline completion from fallback theme sources."""

from .engine import (
    BaselineCompletionEngine,
    BaselineLogEntry,
    BaselineManifest,
    BaselineResult,
    CopyAction,
    CopyPlan,
)
from .merge import ENRICH_THRESHOLDS, deep_merge, is_thin
from .sources import (
    COPY_GROUPS,
    BaselineResolver,
    BaselineSourceConfig,
    CopyGroup,
    baseline_commit,
    load_source_config,
)

__all__ = [
    "BaselineCompletionEngine",
    "BaselineLogEntry",
    "BaselineManifest",
    "BaselineResolver",
    "BaselineResult",
    "BaselineSourceConfig",
    "COPY_GROUPS",
    "CopyAction",
    "CopyGroup",
    "CopyPlan",
    "ENRICH_THRESHOLDS",
    "baseline_commit",
    "deep_merge",
    "is_thin",
    "load_source_config",
]
