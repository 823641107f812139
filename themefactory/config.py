"""Configuration loading for themefactory (.themefactory.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

CONFIG_FILENAME = ".themefactory.yml"
BASELINE_MODES = ("fill", "enrich", "force")
DEFAULT_BASELINE_MODE = "enrich"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class AdapterConfig:
    """Template adaptation switches."""

    lock_unchanged: bool = False
    partialize: bool = False
    structural_matching: bool = False
    max_asset_bytes: int = 0
    layout_hooks: List[str] = field(default_factory=list)


@dataclass
class BaselineConfig:
    """Baseline completion settings."""

    names: List[str] = field(default_factory=list)
    mode: str = DEFAULT_BASELINE_MODE
    diff: bool = False
    baselines_dir: Optional[Path] = None
    roots: Dict[str, Path] = field(default_factory=dict)
    log_dir: Optional[Path] = None
    cache_path: Optional[Path] = None
    auto_approve: bool = False
    expected_ref: Optional[str] = None


@dataclass
class GraphConfig:
    """Dependency graph policy."""

    allow_cycles: bool = False


@dataclass
class FactoryConfig:
    """Represents the high-level settings defined in .themefactory.yml."""

    root: Path
    output_dir: Optional[Path] = None
    adapter: AdapterConfig = field(default_factory=AdapterConfig)
    baseline: BaselineConfig = field(default_factory=BaselineConfig)
    graph: GraphConfig = field(default_factory=GraphConfig)
    prune_partials: bool = False

    def output_root(self) -> Path:
        return self.output_dir or (self.root / "output")

    def baselines_dir(self) -> Path:
        return self.baseline.baselines_dir or (self.root / ".baselines")

    def baseline_log_dir(self) -> Path:
        return self.baseline.log_dir or (self.root / "logs" / "baseline")

    def baseline_cache_path(self) -> Path:
        return self.baseline.cache_path or (self.root / ".cache" / "baseline-index.json")


def load_config(config_path: Path) -> FactoryConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return FactoryConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    adapter_data = _as_dict(data.get("adapter"))
    adapter = AdapterConfig()
    if adapter_data:
        adapter.lock_unchanged = _as_bool(adapter_data.get("lock_unchanged")) or False
        adapter.partialize = _as_bool(adapter_data.get("partialize")) or False
        adapter.structural_matching = _as_bool(adapter_data.get("structural_matching")) or False
        adapter.max_asset_bytes = max(_as_int(adapter_data.get("max_asset_bytes")) or 0, 0)
        adapter.layout_hooks = _as_str_list(adapter_data.get("layout_hooks"))

    baseline_data = _as_dict(data.get("baseline"))
    baseline = BaselineConfig()
    if baseline_data:
        baseline.names = _as_str_list(baseline_data.get("names"))
        mode = _as_str(baseline_data.get("mode"))
        if mode is not None:
            baseline.mode = _validate_mode(mode)
        baseline.diff = _as_bool(baseline_data.get("diff")) or False
        baseline.baselines_dir = _as_path(root, baseline_data.get("baselines_dir"))
        baseline.roots = {
            str(name): path
            for name, raw in _as_dict(baseline_data.get("roots")).items()
            if (path := _as_path(root, raw)) is not None
        }
        baseline.log_dir = _as_path(root, baseline_data.get("log_dir"))
        baseline.cache_path = _as_path(root, baseline_data.get("cache_path"))
        baseline.auto_approve = _as_bool(baseline_data.get("auto_approve")) or False
        baseline.expected_ref = _as_str(baseline_data.get("expected_ref"))

    graph_data = _as_dict(data.get("graph"))
    graph = GraphConfig(allow_cycles=_as_bool(graph_data.get("allow_cycles")) or False)

    return FactoryConfig(
        root=root,
        output_dir=_as_path(root, data.get("output_dir")),
        adapter=adapter,
        baseline=baseline,
        graph=graph,
        prune_partials=_as_bool(data.get("prune_partials")) or False,
    )


def apply_env_overrides(config: FactoryConfig, environ: Mapping[str, str]) -> FactoryConfig:
    """Apply THEMEFACTORY_* environment overrides in place and return the config."""
    names = environ.get("THEMEFACTORY_BASELINE")
    if names:
        config.baseline.names = parse_baseline_list(names)
    mode = environ.get("THEMEFACTORY_BASELINE_MODE")
    if mode:
        config.baseline.mode = _validate_mode(mode)
    baselines_dir = environ.get("THEMEFACTORY_BASELINES_DIR")
    if baselines_dir:
        config.baseline.baselines_dir = _as_path(config.root, baselines_dir)
    expected_ref = environ.get("THEMEFACTORY_BASELINE_REF")
    if expected_ref:
        config.baseline.expected_ref = expected_ref
    if (environ.get("CI") or "").strip().lower() == "true":
        config.baseline.auto_approve = True
    return config


def parse_baseline_list(raw: str) -> List[str]:
    """Split a comma-separated baseline list, dropping blanks and duplicates."""
    seen: List[str] = []
    for part in raw.split(","):
        name = part.strip()
        if name and name not in seen:
            seen.append(name)
    return seen


def _validate_mode(mode: str) -> str:
    lowered = mode.strip().lower()
    if lowered not in BASELINE_MODES:
        allowed = ", ".join(BASELINE_MODES)
        raise ConfigError(f"Unknown baseline mode '{mode}' (expected one of: {allowed})")
    return lowered


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_path(root: Path, value: Any) -> Optional[Path]:
    text = _as_str(value)
    if not text:
        return None
    path = Path(text).expanduser()
    return path if path.is_absolute() else (root / path)


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return parse_baseline_list(value) if "," in value else [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "AdapterConfig",
    "BASELINE_MODES",
    "BaselineConfig",
    "ConfigError",
    "FactoryConfig",
    "GraphConfig",
    "apply_env_overrides",
    "load_config",
    "parse_baseline_list",
]
