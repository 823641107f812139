"""Tests for the output-directory build lock."""

from __future__ import annotations

from pathlib import Path

import pytest

from themefactory.locking import LOCK_FILENAME, OutputLockedError, output_lock


def test_lock_is_exclusive_and_released(tmp_path: Path) -> None:
    root = tmp_path / "out"

    with output_lock(root) as held:
        assert (held / LOCK_FILENAME).is_file()
        with pytest.raises(OutputLockedError):
            with output_lock(root):
                pass

    assert not (root / LOCK_FILENAME).exists()
    with output_lock(root):
        pass


def test_lock_released_after_error(tmp_path: Path) -> None:
    root = tmp_path / "out"

    with pytest.raises(RuntimeError):
        with output_lock(root):
            raise RuntimeError("boom")

    assert not (root / LOCK_FILENAME).exists()


def test_stale_lock_file_is_reclaimed(tmp_path: Path) -> None:
    root = tmp_path / "out"
    root.mkdir()
    (root / LOCK_FILENAME).write_text("not-a-pid", encoding="utf-8")

    with output_lock(root):
        assert (root / LOCK_FILENAME).read_text(encoding="utf-8").isdigit()


def test_different_outputs_lock_independently(tmp_path: Path) -> None:
    with output_lock(tmp_path / "a"):
        with output_lock(tmp_path / "b"):
            pass
