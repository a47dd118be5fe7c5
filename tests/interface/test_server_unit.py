from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from seedling.application.progress.service import ProgressService
from seedling.consts import VERSION
from seedling.domain.progress.models import ChunkRecord, ChunkStatus
from seedling.domain.progress.ports import ChunkStoreError
from seedling.infrastructure.adapters.memory_store import InMemoryChunkStore
from seedling.server import app, get_service

client = TestClient(app)


@pytest.fixture
def memory_store():
    store = InMemoryChunkStore()
    app.dependency_overrides[get_service] = lambda: ProgressService(store)
    yield store
    app.dependency_overrides.clear()


@pytest.fixture
def broken_service():
    service = MagicMock()
    service.get_topic_health = AsyncMock(side_effect=ChunkStoreError("offline"))
    service.describe_topic = AsyncMock(side_effect=ChunkStoreError("offline"))
    app.dependency_overrides[get_service] = lambda: service
    yield service
    app.dependency_overrides.clear()


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_get_version():
    response = client.get("/version")
    assert response.status_code == 200
    assert response.json() == {"version": VERSION}


def test_submit_session(memory_store):
    response = client.post(
        "/learners/kid-1/sessions",
        json={"chunk_ids": ["perro", "gato"], "quality_rating": 3, "topic_id": "animals"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["updated"] == 2
    assert data["failed"] == 0
    assert data["created"] == ["perro", "gato"]
    assert ("kid-1", "perro") in memory_store._records


@pytest.mark.parametrize(
    "body",
    [
        {"chunk_ids": ["a"], "quality_rating": 5},
        {"chunk_ids": [], "quality_rating": 3},
        {"quality_rating": 3},
    ],
)
def test_submit_session_validation(memory_store, body):
    response = client.post("/learners/kid-1/sessions", json=body)
    assert response.status_code == 422


def test_topic_health_and_snapshot(memory_store):
    memory_store._records[("kid-1", "a")] = ChunkRecord(
        learner_id="kid-1", chunk_id="a", topic_id="animals", status=ChunkStatus.ACQUIRED
    )
    memory_store._records[("kid-1", "b")] = ChunkRecord(
        learner_id="kid-1", chunk_id="b", topic_id="animals", status=ChunkStatus.LEARNING
    )

    health = client.get("/learners/kid-1/topics/animals/health").json()
    assert health == {"topic_id": "animals", "health": 80, "category": "healthy"}

    snapshot = client.get("/learners/kid-1/topics/animals", params={"currency": 45}).json()
    assert snapshot["chunk_count"] == 2
    assert snapshot["growth_stage"] == 3
    assert snapshot["growth_label"] == "Young Tree"
    assert snapshot["currency_to_next_stage"] == 25


def test_store_failure_maps_to_503(broken_service):
    response = client.get("/learners/kid-1/topics/animals/health")
    assert response.status_code == 503
    assert "offline" in response.json()["detail"]

    assert client.get("/learners/kid-1/topics/animals").status_code == 503


def test_due_and_fragile_chunks(memory_store):
    now = datetime.now(UTC)
    memory_store._records[("kid-1", "old")] = ChunkRecord(
        learner_id="kid-1",
        chunk_id="old",
        status=ChunkStatus.LEARNING,
        interval=1,
        last_reviewed=now - timedelta(days=3),
    )
    memory_store._records[("kid-1", "weak")] = ChunkRecord(
        learner_id="kid-1",
        chunk_id="weak",
        status=ChunkStatus.FRAGILE,
        interval=1,
        last_reviewed=now,
    )

    due = client.get("/learners/kid-1/chunks/due", params={"limit": 5}).json()
    assert [c["chunk_id"] for c in due] == ["old"]
    assert due[0]["status"] == "learning"

    fragile = client.get("/learners/kid-1/chunks/fragile").json()
    assert [c["chunk_id"] for c in fragile] == ["weak"]


def test_maintenance_sweep(memory_store):
    memory_store._records[("kid-1", "luna")] = ChunkRecord(
        learner_id="kid-1",
        chunk_id="luna",
        status=ChunkStatus.ACQUIRED,
        interval=3,
        last_reviewed=datetime.now(UTC) - timedelta(days=10),
        version=1,
    )

    assert client.post("/learners/kid-1/maintenance").json() == {"demoted": 1}
    assert client.post("/learners/kid-1/maintenance").json() == {"demoted": 0}


def test_freshness(memory_store):
    response = client.get("/freshness", params={"days": 7})
    assert response.json() == {
        "days": 7,
        "buffer_days": 0,
        "health": 60,
        "category": "thirsty",
        "needs_refresh": False,
    }


def test_growth(memory_store):
    response = client.get("/growth", params={"currency": 900})
    assert response.json() == {
        "currency": 900,
        "stage": 14,
        "label": "Ancient Tree",
        "currency_to_next_stage": 0,
    }


def test_freshness_with_unused_gifts(memory_store):
    response = client.get("/freshness", params={"days": 12, "gift": ["water_drop", "seed"]})
    data = response.json()
    assert data["buffer_days"] == 10
    assert data["health"] == 100
    assert data["needs_refresh"] is False

    assert client.get("/freshness", params={"days": 12, "gift": "rocket"}).status_code == 422


def test_display_views_go_through_service():
    service = MagicMock()
    service.get_lesson_freshness.return_value = 15
    service.get_growth_stage.return_value = 2
    app.dependency_overrides[get_service] = lambda: service
    try:
        freshness = client.get("/freshness", params={"days": 30, "gift": "sparkle"}).json()
        growth = client.get("/growth", params={"currency": 20}).json()
    finally:
        app.dependency_overrides.clear()

    assert freshness["health"] == 15
    assert freshness["category"] == "dying"
    service.get_lesson_freshness.assert_called_once_with(30, ["sparkle"])
    assert growth["stage"] == 2
    service.get_growth_stage.assert_called_once_with(20)


@pytest.fixture
def configured_memory_backend(mock_home, monkeypatch):
    monkeypatch.setenv("SEEDLING_BACKEND", "memory")
    get_service.cache_clear()
    yield
    get_service.cache_clear()


def test_memory_backend_keeps_state_between_requests(configured_memory_backend):
    with TestClient(app) as c:
        response = c.post(
            "/learners/kid-1/sessions",
            json={
                "chunk_ids": ["perro", "gato", "pez"],
                "quality_rating": 3,
                "topic_id": "animals",
            },
        )
        assert response.json()["updated"] == 3

        snapshot = c.get("/learners/kid-1/topics/animals").json()
        assert snapshot["chunk_count"] == 3
        assert get_service() is get_service()

    # Shutdown closes the shared service and drops it
    assert get_service.cache_info().currsize == 0
