from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.notes_tree import NotesTree


@pytest.fixture
def notes(tmp_path: Path) -> NotesTree:
    """Provide a reusable source tree rooted at the pytest tmp_path."""
    return NotesTree(tmp_path)
