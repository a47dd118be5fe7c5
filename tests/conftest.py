from datetime import UTC, datetime

import pytest

from seedling.application.progress.service import ProgressService
from seedling.infrastructure.adapters.memory_store import InMemoryChunkStore


@pytest.fixture
def now():
    """A fixed review time with no sub-second part (SQLite round-trips epoch floats)."""
    return datetime(2026, 3, 14, 9, 0, 0, tzinfo=UTC)


@pytest.fixture
def store():
    return InMemoryChunkStore()


@pytest.fixture
def service(store):
    return ProgressService(store, workers=4)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config/db files
    monkeypatch.setenv("HOME", str(home))
    for var in ("SEEDLING_BACKEND", "SEEDLING_DATABASE_PATH", "SEEDLING_WORKERS"):
        monkeypatch.delenv(var, raising=False)
    return home
