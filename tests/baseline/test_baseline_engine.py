"""Tests for the baseline completion engine."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterable

import pytest

from themefactory.baseline import BaselineCompletionEngine
from themefactory.baseline.engine import DIFF_REPORT_PATH, MANIFEST_PATH
from themefactory.config import FactoryConfig
from themefactory.stores import BaselineIndexCache

BASELINE_FILES = {
    "src/views/layouts/master.twig": "<html>{% block content %}{% endblock %}</html>\n",
    "src/views/pages/index.twig": '{% extends "layouts/master.twig" %}\n',
    "src/views/components/header.twig": "<header>Shop</header>\n",
    "src/locales/en.json": '{"hello": "Hello", "bye": "Bye", "tags": ["a", "b"]}',
    "public/logo.svg": "<svg/>",
}


def _runner(args: Iterable[str], *, cwd: Path, capture_output: bool = False) -> str:
    return "abc1234\n"


def _engine(config: FactoryConfig, **kwargs) -> BaselineCompletionEngine:
    kwargs.setdefault("cache", BaselineIndexCache())
    kwargs.setdefault("runner", _runner)
    return BaselineCompletionEngine(config, **kwargs)


@pytest.fixture
def setup(prototype):
    prototype.baseline("raed", BASELINE_FILES)
    config = prototype.config()
    config.baseline.names = ["raed"]
    config.baseline.auto_approve = True
    output = prototype.workspace / "output" / "demo"
    output.mkdir(parents=True)
    return config, output


def test_fill_copies_missing_files_with_markers(setup) -> None:
    config, output = setup
    config.baseline.mode = "fill"

    result = _engine(config).complete(output)

    assert result.baseline_present
    assert result.added == [
        "layout/master.twig",
        "pages/index.twig",
        "partials/header.twig",
        "locales/en.json",
        "assets/logo.svg",
    ]
    layout = (output / "layout" / "master.twig").read_text(encoding="utf-8")
    assert layout.startswith("{# Filled from raed/src/views/layouts/master.twig on ")
    locale = json.loads((output / "locales" / "en.json").read_text(encoding="utf-8"))
    assert locale["_baselineSource"]["baseline"] == "raed"
    assert locale["_baselineSource"]["file"] == "src/locales/en.json"
    assert (output / "assets" / "logo.svg").read_text(encoding="utf-8") == "<svg/>"
    assert result.stats == {"layouts": 1, "pages": 1, "components": 1, "locales": 1, "public": 1}


def test_fill_twice_is_idempotent(setup) -> None:
    config, output = setup
    config.baseline.mode = "fill"
    engine = _engine(config)

    first = engine.complete(output)
    second = engine.complete(output)

    assert first.added
    assert second.added == []
    assert second.manifest.copied == first.manifest.copied
    assert second.log_entry is None
    assert "layout/master.twig" in second.skipped


def test_fill_never_touches_existing_files(setup) -> None:
    config, output = setup
    config.baseline.mode = "fill"
    page = output / "pages" / "index.twig"
    page.parent.mkdir(parents=True)
    page.write_text("tiny", encoding="utf-8")

    result = _engine(config).complete(output)

    assert page.read_text(encoding="utf-8") == "tiny"
    assert "pages/index.twig" in result.skipped
    assert result.enriched == []


def test_enrich_appends_marker_once(setup) -> None:
    config, output = setup
    page = output / "pages" / "index.twig"
    page.parent.mkdir(parents=True)
    page.write_text('{% extends "layout/default.twig" %}\n', encoding="utf-8")
    engine = _engine(config)

    first = engine.complete(output)
    after_first = page.read_text(encoding="utf-8")
    second = engine.complete(output)

    assert first.enriched == ["pages/index.twig"]
    assert after_first.count("Baseline supplement from raed:src/views/pages/index.twig") == 1
    assert after_first.startswith('{% extends "layout/default.twig" %}')
    assert second.enriched == []
    assert page.read_text(encoding="utf-8") == after_first


def test_enrich_merges_thin_json(setup) -> None:
    config, output = setup
    locale = output / "locales" / "en.json"
    locale.parent.mkdir(parents=True)
    locale.write_text('{"hello": "Hi", "tags": ["a"]}', encoding="utf-8")

    result = _engine(config).complete(output)

    data = json.loads(locale.read_text(encoding="utf-8"))
    assert "locales/en.json" in result.enriched
    assert data["hello"] == "Hi"
    assert data["bye"] == "Bye"
    assert data["tags"] == ["a", "b"]
    assert data["_baselineSource"]["baseline"] == "raed"


def test_enrich_treats_malformed_json_as_empty(setup) -> None:
    config, output = setup
    locale = output / "locales" / "en.json"
    locale.parent.mkdir(parents=True)
    locale.write_text("{not json", encoding="utf-8")

    result = _engine(config).complete(output)

    data = json.loads(locale.read_text(encoding="utf-8"))
    assert "locales/en.json" in result.enriched
    assert data["hello"] == "Hello"


def test_large_files_are_not_enriched(setup) -> None:
    config, output = setup
    page = output / "pages" / "index.twig"
    page.parent.mkdir(parents=True)
    body = "x" * 700
    page.write_text(body, encoding="utf-8")

    result = _engine(config).complete(output)

    assert page.read_text(encoding="utf-8") == body
    assert "pages/index.twig" in result.skipped


def test_force_rewrites_byte_for_byte(setup, prototype) -> None:
    config, output = setup
    config.baseline.mode = "force"
    page = output / "pages" / "index.twig"
    page.parent.mkdir(parents=True)
    page.write_text("custom content " * 100, encoding="utf-8")

    result = _engine(config).complete(output)

    source = prototype.workspace / ".baselines" / "theme-raed" / "src/views/pages/index.twig"
    assert page.read_bytes() == source.read_bytes()
    assert result.forced == ["pages/index.twig"]
    assert "pages/index.twig" in result.manifest.copied


def test_unavailable_baseline_is_skipped(setup) -> None:
    config, output = setup
    config.baseline.names = ["ghost", "raed"]

    result = _engine(config).complete(output)

    assert any("ghost" in warning for warning in result.warnings)
    assert result.baselines_used == ["raed"]
    assert result.added


def test_no_available_baseline(setup) -> None:
    config, output = setup
    config.baseline.names = ["ghost"]

    result = _engine(config).complete(output)

    assert not result.baseline_present
    assert result.added == []
    assert result.manifest.baseline_name == "ghost"


def test_fallback_chain_is_followed(prototype) -> None:
    prototype.baseline(
        "primary",
        {
            "baseline.config.json": json.dumps({"usePages": False, "fallbackTheme": "secondary"}),
            "src/views/layouts/master.twig": "<html/>",
            "src/views/pages/ignored.twig": "<p/>",
        },
    )
    prototype.baseline("secondary", {"src/views/pages/index.twig": "<p/>"})
    config = prototype.config()
    config.baseline.names = ["primary"]
    config.baseline.auto_approve = True
    config.baseline.mode = "fill"
    output = prototype.workspace / "output" / "demo"

    result = _engine(config).complete(output)

    assert result.baselines_used == ["primary", "secondary"]
    assert sorted(result.added) == ["layout/master.twig", "pages/index.twig"]
    assert result.manifest.baseline_name == "primary"


def test_declined_approval_writes_nothing(setup) -> None:
    config, output = setup
    config.baseline.auto_approve = False
    asked = []

    def decline(name, plan) -> bool:
        asked.append((name, plan.size))
        return False

    result = _engine(config, approve=decline).complete(output)

    assert asked == [("raed", 5)]
    assert result.added == []
    assert not (output / "layout" / "master.twig").exists()


def test_log_entry_and_drift_warning(setup, tmp_path: Path) -> None:
    config, output = setup
    config.baseline.log_dir = tmp_path / "logs"
    config.baseline.expected_ref = "def5678"

    def clock() -> datetime:
        return datetime(2024, 5, 1, 12, 30, tzinfo=UTC)

    result = _engine(config, clock=clock).complete(output, theme="demo")

    assert result.log_path == tmp_path / "logs" / "demo-2024-05-01T12-30-00Z.json"
    entry = json.loads(result.log_path.read_text(encoding="utf-8"))
    assert entry["baselineCommit"] == "abc1234"
    assert entry["added"] == sorted(result.added)
    assert any("differs from expected def5678" in warning for warning in result.warnings)
    assert result.manifest.baseline_commit == "abc1234"


def test_manifest_copied_list_never_shrinks(setup) -> None:
    config, output = setup
    config.baseline.mode = "fill"
    manifest_path = output / MANIFEST_PATH
    manifest_path.parent.mkdir(parents=True)
    manifest_path.write_text(json.dumps({"baselineName": "raed", "copied": ["legacy/old.twig"]}), encoding="utf-8")

    result = _engine(config).complete(output)

    stored = json.loads(manifest_path.read_text(encoding="utf-8"))
    assert stored["copied"][0] == "legacy/old.twig"
    assert set(result.added) <= set(stored["copied"])
    assert stored["baselineName"] == "raed"


def test_diff_report_lists_changes(setup) -> None:
    config, output = setup
    config.baseline.diff = True
    page = output / "pages" / "index.twig"
    page.parent.mkdir(parents=True)
    page.write_text("thin", encoding="utf-8")

    result = _engine(config).complete(output, theme="demo")

    assert result.diff_path is not None
    report = (output / DIFF_REPORT_PATH).read_text(encoding="utf-8")
    assert report.startswith("# Baseline Diff: demo")
    assert "## Changed by directory" in report
    assert "- `layout/master.twig`" in report
    assert "## Enriched Files\n- `pages/index.twig`" in report
    assert "## Forced Files\n_None_" in report


def test_force_copies_missing_files_without_marker(setup, prototype) -> None:
    config, output = setup
    config.baseline.mode = "force"
    source = prototype.workspace / ".baselines" / "theme-raed" / "src/views/layouts/master.twig"
    layout = output / "layout" / "master.twig"

    first = _engine(config).complete(output)
    written = layout.read_bytes()
    second = _engine(config).complete(output)

    assert "layout/master.twig" in first.added
    assert written == source.read_bytes()
    assert layout.read_bytes() == written
    assert "layout/master.twig" in second.forced


def _chain(prototype, mode: str, primary: dict, secondary: dict) -> tuple[FactoryConfig, Path]:
    prototype.baseline(
        "primary", {"baseline.config.json": json.dumps({"fallbackTheme": "secondary"}), **primary}
    )
    prototype.baseline("secondary", secondary)
    config = prototype.config()
    config.baseline.names = ["primary"]
    config.baseline.auto_approve = True
    config.baseline.mode = mode
    output = prototype.workspace / "output" / "demo"
    output.mkdir(parents=True)
    return config, output


def test_fallback_does_not_override_primary_in_force_mode(prototype) -> None:
    config, output = _chain(
        prototype,
        "force",
        {"src/views/layouts/master.twig": "PRIMARY\n"},
        {"src/views/layouts/master.twig": "SECONDARY\n", "src/views/pages/extra.twig": "EXTRA\n"},
    )
    (output / "layout").mkdir()
    (output / "layout" / "master.twig").write_text("OLD\n", encoding="utf-8")

    result = _engine(config).complete(output)

    assert (output / "layout" / "master.twig").read_text(encoding="utf-8") == "PRIMARY\n"
    assert (output / "pages" / "extra.twig").read_text(encoding="utf-8") == "EXTRA\n"
    assert result.forced == ["layout/master.twig"]
    assert result.added == ["pages/extra.twig"]


def test_fallback_does_not_enrich_what_primary_provided(prototype) -> None:
    config, output = _chain(
        prototype,
        "enrich",
        {
            "src/views/layouts/master.twig": "<html/>\n",
            "src/views/components/header.twig": "<header>primary</header>\n",
        },
        {
            "src/views/layouts/master.twig": "<html>secondary</html>\n",
            "src/views/components/header.twig": "<header>secondary</header>\n",
        },
    )
    (output / "partials").mkdir()
    (output / "partials" / "header.twig").write_text("<header/>\n", encoding="utf-8")

    result = _engine(config).complete(output)

    layout = (output / "layout" / "master.twig").read_text(encoding="utf-8")
    header = (output / "partials" / "header.twig").read_text(encoding="utf-8")
    assert "secondary" not in layout
    assert "primary" in header and "secondary" not in header
    assert result.added == ["layout/master.twig"]
    assert result.enriched == ["partials/header.twig"]
    assert result.baselines_used == ["primary"]
