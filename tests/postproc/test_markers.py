"""Tests for baseline source markers."""

from __future__ import annotations

import json

from themefactory.postproc import SourceInfo, SourceMarker, strip_timestamps

INFO = SourceInfo(baseline="raed", rel="src/views/pages/index.twig", timestamp="2024-05-01T12:30:00Z")


def test_inject_uses_comment_style_per_extension() -> None:
    marker = SourceMarker()

    assert marker.inject("body", ".twig", INFO).startswith(
        "{# Filled from raed/src/views/pages/index.twig on 2024-05-01T12:30:00Z #}\n"
    )
    assert marker.inject("a{}", ".css", INFO).startswith("/* Filled from raed/")
    assert marker.inject("<p/>", ".html", INFO).startswith("<!-- Filled from raed/")
    assert marker.inject("\x89PNG", ".png", INFO) == "\x89PNG"


def test_inject_json_embeds_source_field() -> None:
    data = json.loads(SourceMarker().inject('{"a": 1}', ".json", INFO))

    assert data == {
        "a": 1,
        "_baselineSource": {
            "baseline": "raed",
            "file": "src/views/pages/index.twig",
            "timestamp": "2024-05-01T12:30:00Z",
        },
    }
    assert SourceMarker.has_json_source(data, "raed", "src/views/pages/index.twig")
    assert not SourceMarker.has_json_source(data, "other", "src/views/pages/index.twig")


def test_supplement_and_filled_detection() -> None:
    marker = SourceMarker()
    supplement = marker.supplement(".twig", INFO)
    filled = marker.inject("body", ".twig", INFO)

    assert marker.has_supplement(supplement, "raed", "src/views/pages/index.twig")
    assert not marker.has_supplement(supplement, "raed", "src/views/pages/other.twig")
    assert marker.has_filled(filled, "raed", "src/views/pages/index.twig")


def test_strip_timestamps_removes_wall_clock() -> None:
    marker = SourceMarker()
    later = SourceInfo(baseline=INFO.baseline, rel=INFO.rel, timestamp="2025-01-01T00:00:00Z")

    for ext in (".twig", ".css", ".html"):
        first = marker.inject("body", ext, INFO) + marker.supplement(ext, INFO)
        second = marker.inject("body", ext, later) + marker.supplement(ext, later)
        assert first != second
        assert strip_timestamps(first) == strip_timestamps(second)
