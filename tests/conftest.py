from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.prototype_builder import PrototypeBuilder


@pytest.fixture
def prototype(tmp_path: Path) -> PrototypeBuilder:
    """Provide a reusable prototype builder rooted at the pytest tmp_path."""
    return PrototypeBuilder(tmp_path)
