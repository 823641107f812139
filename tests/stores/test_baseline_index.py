"""Tests for the baseline file-index cache."""

from __future__ import annotations

import os
from pathlib import Path

from themefactory.stores import BaselineIndexCache


def _tree(root: Path) -> Path:
    for rel in ("views/a.twig", "views/b.twig", ".git/HEAD", "top.txt"):
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(rel, encoding="utf-8")
    return root


def test_list_files_skips_git_and_sorts(tmp_path: Path) -> None:
    root = _tree(tmp_path / "baseline")

    files = BaselineIndexCache().list_files(root)

    assert files == ["top.txt", "views/a.twig", "views/b.twig"]


def test_list_files_reuses_entry_until_mtime_changes(tmp_path: Path) -> None:
    root = _tree(tmp_path / "baseline")
    cache = BaselineIndexCache()
    cache.list_files(root)

    (root / "late.txt").write_text("late", encoding="utf-8")
    os.utime(root / "views", ns=(0, 0))
    stat_result = root.stat()
    key = root.resolve().as_posix()
    os.utime(root, ns=(stat_result.st_atime_ns, stat_result.st_mtime_ns))
    cache.store(key, mtime_ns=stat_result.st_mtime_ns, files=["cached.txt"])

    assert cache.list_files(root) == ["cached.txt"]

    os.utime(root, ns=(stat_result.st_atime_ns, stat_result.st_mtime_ns + 1_000_000_000))
    assert "late.txt" in cache.list_files(root)


def test_get_rejects_stale_mtime() -> None:
    cache = BaselineIndexCache()
    cache.store("root", mtime_ns=1, files=["a"])

    assert cache.get("root", mtime_ns=1) == ["a"]
    assert cache.get("root", mtime_ns=2) is None


def test_persist_round_trip(tmp_path: Path) -> None:
    cache_path = tmp_path / "cache" / "baseline-index.json"
    cache = BaselineIndexCache(cache_path)
    cache.store("root", mtime_ns=42, files=["x.twig"])
    cache.persist()

    reloaded = BaselineIndexCache(cache_path)

    assert reloaded.get("root", mtime_ns=42) == ["x.twig"]


def test_corrupt_cache_file_is_ignored(tmp_path: Path) -> None:
    cache_path = tmp_path / "baseline-index.json"
    cache_path.write_text("{broken", encoding="utf-8")

    cache = BaselineIndexCache(cache_path)

    assert cache.get("root", mtime_ns=1) is None


def test_file_added_in_nested_directory_refreshes_listing(tmp_path: Path) -> None:
    root = _tree(tmp_path / "baseline")
    cache = BaselineIndexCache()
    assert cache.list_files(root) == ["top.txt", "views/a.twig", "views/b.twig"]
    root_stat = root.stat()
    views_stat = (root / "views").stat()

    nested = root / "views" / "product"
    nested.mkdir()
    os.utime(root / "views", ns=(views_stat.st_atime_ns, views_stat.st_mtime_ns))
    (nested / "x.twig").write_text("x", encoding="utf-8")
    os.utime(nested, ns=(root_stat.st_atime_ns, root_stat.st_mtime_ns + 1_000_000_000))

    assert root.stat().st_mtime_ns == root_stat.st_mtime_ns
    assert "views/product/x.twig" in cache.list_files(root)
