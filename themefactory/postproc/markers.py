"""Baseline source markers for copied and enriched theme files."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass

JSON_SOURCE_KEY = "_baselineSource"

_TIMESTAMP_PATTERN = re.compile(
    r"(?P<prefix>(?:Filled from|Baseline supplement from) .+?) on \S+(?P<suffix> #\}| \*/| -->)"
)


@dataclass(frozen=True)
class SourceInfo:
    """Provenance recorded inside a file taken from a baseline."""

    baseline: str
    rel: str
    timestamp: str


class SourceMarker:
    """Formats and detects provenance markers per file type."""

    FILLED_FMT = "Filled from {baseline}/{rel} on {timestamp}"
    SUPPLEMENT_FMT = "Baseline supplement from {baseline}:{rel}"

    TEMPLATE_EXTS = frozenset({".twig"})
    MARKUP_EXTS = frozenset({".html", ".htm"})
    CODE_EXTS = frozenset({".css", ".scss", ".js"})
    JSON_EXTS = frozenset({".json"})

    def handles(self, ext: str) -> bool:
        """Return True when files of this extension carry an embedded marker."""
        ext = ext.lower()
        return ext in self.TEMPLATE_EXTS | self.MARKUP_EXTS | self.CODE_EXTS | self.JSON_EXTS

    def comment(self, ext: str, text: str) -> str:
        ext = ext.lower()
        if ext in self.TEMPLATE_EXTS:
            return f"{{# {text} #}}"
        if ext in self.CODE_EXTS:
            return f"/* {text} */"
        return f"<!-- {text} -->"

    def inject(self, content: str, ext: str, info: SourceInfo) -> str:
        """Prepend a filled-from marker, or embed `_baselineSource` for JSON."""
        ext = ext.lower()
        if ext in self.JSON_EXTS:
            try:
                data = json.loads(content or "{}")
            except json.JSONDecodeError:
                return content
            if not isinstance(data, dict):
                return content
            data[JSON_SOURCE_KEY] = self.json_source(info)
            return json.dumps(data, indent=2, ensure_ascii=False) + "\n"
        if not self.handles(ext):
            return content
        text = self.FILLED_FMT.format(baseline=info.baseline, rel=info.rel, timestamp=info.timestamp)
        return f"{self.comment(ext, text)}\n{content}"

    def supplement(self, ext: str, info: SourceInfo) -> str:
        """Return the marker line placed before appended baseline content."""
        text = self.SUPPLEMENT_FMT.format(baseline=info.baseline, rel=info.rel)
        return self.comment(ext, f"{text} on {info.timestamp}")

    def has_supplement(self, content: str, baseline: str, rel: str) -> bool:
        return self.SUPPLEMENT_FMT.format(baseline=baseline, rel=rel) in content

    def has_filled(self, content: str, baseline: str, rel: str) -> bool:
        return f"Filled from {baseline}/{rel} on " in content

    @staticmethod
    def json_source(info: SourceInfo) -> dict:
        return {"baseline": info.baseline, "file": info.rel, "timestamp": info.timestamp}

    @staticmethod
    def has_json_source(data: object, baseline: str, rel: str) -> bool:
        if not isinstance(data, dict):
            return False
        source = data.get(JSON_SOURCE_KEY)
        return (
            isinstance(source, dict)
            and source.get("baseline") == baseline
            and source.get("file") == rel
        )


def strip_timestamps(text: str) -> str:
    """Drop marker timestamps so content hashes ignore wall-clock time."""
    return _TIMESTAMP_PATTERN.sub(r"\g<prefix>\g<suffix>", text)


__all__ = ["JSON_SOURCE_KEY", "SourceInfo", "SourceMarker", "strip_timestamps"]
