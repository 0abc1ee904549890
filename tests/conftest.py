from __future__ import annotations

import pytest

from campus_connect.db.store import DocumentStore


@pytest.fixture
def store(tmp_path) -> DocumentStore:
    return DocumentStore(tmp_path / "campus_connect.db")
