"""Tests for ParsedSource construction."""

from __future__ import annotations

from pathlib import Path

import pytest

from themefactory.models import ParsedSource


def test_from_dict_reads_parser_payload() -> None:
    parsed = ParsedSource.from_dict(
        {
            "inputPath": "/tmp/proto",
            "pages": [{"rel": "index.html", "html": "<p/>"}, {"html": "no rel"}],
            "layoutMap": [
                {"page": "index.html", "components": [{"signature": "footer-v1", "html": "<footer/>"}]}
            ],
            "jsMap": {"index.html": [{"code": "run()"}]},
            "unchanged": ["about.html"],
        }
    )

    assert parsed.input_path == Path("/tmp/proto")
    assert [page.rel for page in parsed.pages] == ["index.html"]
    assert parsed.layout_map[0].components[0].signature == "footer-v1"
    assert parsed.js_map["index.html"][0].code == "run()"
    assert parsed.unchanged == frozenset({"about.html"})


def test_from_dict_requires_input_path() -> None:
    with pytest.raises(ValueError):
        ParsedSource.from_dict({"pages": []})
