"""Tests for baseline merge helpers."""

from __future__ import annotations

from pathlib import Path

from themefactory.baseline import deep_merge, is_thin


def test_deep_merge_keeps_target_scalars() -> None:
    target = {"title": "Mine", "meta": {"lang": "ar"}, "tags": ["a", "c"], "empty": None}
    source = {"title": "Theirs", "meta": {"lang": "en", "dir": "rtl"}, "tags": ["a", "b"], "empty": 1, "new": True}

    merged = deep_merge(target, source)

    assert merged == {
        "title": "Mine",
        "meta": {"lang": "ar", "dir": "rtl"},
        "tags": ["a", "c", "b"],
        "empty": 1,
        "new": True,
    }
    assert target["tags"] == ["a", "c"]


def test_deep_merge_mismatched_types_keep_target() -> None:
    assert deep_merge({"a": [1]}, {"a": {"b": 2}}) == {"a": [1]}
    assert deep_merge(None, {"b": 2}) == {"b": 2}


def test_is_thin_uses_extension_thresholds(tmp_path: Path) -> None:
    cases = {
        "short.twig": ("x" * 599, True),
        "long.twig": ("x" * 600, False),
        "short.json": ("{}", True),
        "short.css": ("a{}", True),
        "long.js": ("x" * 120, False),
        "empty.png": ("", True),
        "data.png": ("x" * 10, False),
    }
    for name, (text, expected) in cases.items():
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        assert is_thin(path) is expected, name

    assert is_thin(tmp_path / "missing.twig") is False
