"""Baseline theme source resolution and per-baseline copy rules."""

from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..logging import get_logger

SOURCE_CONFIG_FILENAME = "baseline.config.json"

_logger = get_logger("baseline.sources")


@dataclass(frozen=True)
class CopyGroup:
    """Maps a directory inside a baseline onto a directory of the theme output."""

    key: str
    enabled_key: str
    src: str
    dest: str
    suffixes: Tuple[str, ...] = ()

    def accepts(self, name: str) -> bool:
        return not self.suffixes or name.lower().endswith(self.suffixes)


COPY_GROUPS: Tuple[CopyGroup, ...] = (
    CopyGroup("layouts", "useLayouts", "src/views/layouts", "layout", (".twig",)),
    CopyGroup("pages", "usePages", "src/views/pages", "pages", (".twig",)),
    CopyGroup("components", "useComponents", "src/views/components", "partials", (".twig",)),
    CopyGroup("locales", "useLocales", "src/locales", "locales", (".json",)),
    CopyGroup("public", "useAssets", "public", "assets"),
    CopyGroup("assets", "useAssets", "src/assets", "assets"),
)


@dataclass(frozen=True)
class BaselineSourceConfig:
    """Contents of a `baseline.config.json` file."""

    use_layouts: bool = True
    use_pages: bool = True
    use_components: bool = True
    use_locales: bool = True
    use_assets: bool = True
    fallback_theme: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BaselineSourceConfig":
        fallback = data.get("fallbackTheme")
        return cls(
            use_layouts=data.get("useLayouts") is not False,
            use_pages=data.get("usePages") is not False,
            use_components=data.get("useComponents") is not False,
            use_locales=data.get("useLocales") is not False,
            use_assets=data.get("useAssets") is not False,
            fallback_theme=str(fallback) if isinstance(fallback, str) and fallback.strip() else None,
        )

    def enabled_groups(self, groups: Sequence[CopyGroup] = COPY_GROUPS) -> List[CopyGroup]:
        flags = {
            "useLayouts": self.use_layouts,
            "usePages": self.use_pages,
            "useComponents": self.use_components,
            "useLocales": self.use_locales,
            "useAssets": self.use_assets,
        }
        return [group for group in groups if flags.get(group.enabled_key, True)]


def load_source_config(
    baseline_root: Path,
    *,
    explicit_path: Path | None = None,
    input_path: Path | None = None,
) -> BaselineSourceConfig:
    """Return copy rules from the first existing candidate config file."""
    candidates: Iterable[Optional[Path]] = (
        explicit_path,
        input_path / SOURCE_CONFIG_FILENAME if input_path is not None else None,
        baseline_root / SOURCE_CONFIG_FILENAME,
    )
    for candidate in candidates:
        if candidate is None or not candidate.is_file():
            continue
        try:
            data = json.loads(candidate.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            _logger.warning("Ignoring unreadable baseline config %s: %s", candidate, exc)
            return BaselineSourceConfig()
        if isinstance(data, dict):
            return BaselineSourceConfig.from_mapping(data)
        return BaselineSourceConfig()
    return BaselineSourceConfig()


class BaselineResolver:
    """Resolves baseline names to directories."""

    def __init__(
        self,
        baselines_dir: Path,
        *,
        workspace_root: Path,
        roots: Mapping[str, Path] | None = None,
    ) -> None:
        self.baselines_dir = Path(baselines_dir)
        self.workspace_root = Path(workspace_root)
        self.roots = dict(roots or {})

    def resolve(self, name: str) -> Path:
        if name in self.roots:
            return self.roots[name]
        candidate = Path(name).expanduser()
        if candidate.is_absolute():
            return candidate
        if name.startswith("."):
            return (self.workspace_root / candidate).resolve()
        folder = name if name.startswith("theme-") else f"theme-{name}"
        return self.baselines_dir / folder


def baseline_commit(root: Path, runner: Callable[..., str] | None = None) -> Optional[str]:
    """Best-effort short revision of the baseline checkout."""
    run = runner or _default_runner
    try:
        output = run(["git", "rev-parse", "--short", "HEAD"], cwd=root, capture_output=True)
    except Exception:
        return None
    revision = output.strip()
    return revision or None


def _default_runner(
    args: Iterable[str],
    *,
    cwd: Path,
    capture_output: bool = False,
) -> str:
    completed = subprocess.run(
        list(args),
        cwd=str(cwd),
        check=True,
        text=True,
        capture_output=capture_output,
    )
    return completed.stdout if capture_output else ""


__all__ = [
    "BaselineResolver",
    "BaselineSourceConfig",
    "COPY_GROUPS",
    "CopyGroup",
    "SOURCE_CONFIG_FILENAME",
    "baseline_commit",
    "load_source_config",
]
