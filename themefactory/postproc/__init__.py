"""Post-processing helpers for generated theme files."""

from .markers import JSON_SOURCE_KEY, SourceInfo, SourceMarker, strip_timestamps

__all__ = ["JSON_SOURCE_KEY", "SourceInfo", "SourceMarker", "strip_timestamps"]
