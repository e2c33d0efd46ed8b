"""
API tests for the migration, media and health endpoints.

The lifespan hook is not triggered (no ``with TestClient``), so nothing
touches the configured database; every dependency is overridden to use the
per-test SQLite engine.
"""
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlmodel import Session

from spacesync.api.dependencies import get_migration_service
from spacesync.core.database import get_session
from spacesync.main import app
from spacesync.services.migration_service import OFFLOAD_MEDIA_TASK, PROCESS_CHUNK_TASK, MigrationService
from tests.conftest import REMOTE_BASE, RecordingScheduler, make_settings


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def client(engine, state_store, scheduler):
    service = MigrationService(engine, state_store, scheduler, settings=make_settings())

    def _session():
        with Session(engine) as db_session:
            yield db_session

    app.dependency_overrides[get_migration_service] = lambda: service
    app.dependency_overrides[get_session] = _session
    yield TestClient(app)
    app.dependency_overrides.clear()


def _add_media(engine, count):
    with engine.begin() as conn:
        for i in range(count):
            conn.execute(
                text("INSERT INTO media_items (id, created_at, updated_at, file_path) VALUES (:id, :ts, :ts, :p)"),
                {"id": f"{i + 1:032x}", "ts": "2024-01-01 00:00:00", "p": f"{i}.jpg"},
            )


class TestProgress:
    def test_not_started(self, client):
        response = client.get("/api/v1/migration/progress")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "not_started"
        assert body["run_id"] is None
        assert body["percent"] == 0.0


class TestStart:
    def test_start_schedules_chunks(self, client, engine, scheduler):
        _add_media(engine, 3)

        response = client.post(
            "/api/v1/migration/start",
            json={"selected_tables": ["widgets"], "strategy": "advanced"},
        )

        assert response.status_code == 202
        body = response.json()
        assert body["job_count"] == 2
        assert body["total"] == 3
        assert body["status"] == "accepted"
        assert [call["job_name"] for call in scheduler.calls] == [PROCESS_CHUNK_TASK] * 2

        progress = client.get("/api/v1/migration/progress").json()
        assert progress["status"] == "running"
        assert progress["run_id"] == body["run_id"]
        assert progress["strategy"] == "advanced"
        assert (progress["completed"], progress["errors"]) == (0, 0)

    def test_start_with_defaults(self, client):
        response = client.post("/api/v1/migration/start", json={})

        assert response.status_code == 202
        assert response.json()["job_count"] == 0

    def test_unknown_strategy_is_rejected(self, client):
        response = client.post("/api/v1/migration/start", json={"strategy": "clever"})
        assert response.status_code == 422


class TestScan:
    def test_scan_then_fetch(self, client, engine):
        with engine.begin() as conn:
            conn.execute(text("CREATE TABLE widgets (id INTEGER PRIMARY KEY, body TEXT)"))
            conn.execute(text("INSERT INTO widgets (body) VALUES ('/uploads/a.png'), ('/uploads/b.jpg')"))

        assert client.get("/api/v1/migration/scan").status_code == 404

        response = client.post("/api/v1/migration/scan")
        assert response.status_code == 200
        assert response.json()["tables"] == {"widgets": 2}

        stored = client.get("/api/v1/migration/scan")
        assert stored.status_code == 200
        assert stored.json()["tables"] == {"widgets": 2}


def test_health_reports_database_and_spaces(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert "spaces" in body


class TestMedia:
    def test_url_of_local_item_is_served_from_the_bucket(self, client, engine):
        _add_media(engine, 1)

        response = client.get(f"/api/v1/media/{uuid.UUID(int=1)}/url")

        assert response.status_code == 200
        body = response.json()
        assert body["url"] == f"{REMOTE_BASE}/0.jpg"
        assert body["offloaded"] is False

    def test_url_of_unknown_item(self, client):
        response = client.get(f"/api/v1/media/{uuid.UUID(int=42)}/url")
        assert response.status_code == 404

    def test_malformed_id_is_rejected(self, client):
        response = client.get("/api/v1/media/not-a-uuid/url")
        assert response.status_code == 422

    def test_offload_queues_the_item(self, client, engine, scheduler):
        _add_media(engine, 1)
        media_id = str(uuid.UUID(int=1))

        response = client.post(f"/api/v1/media/{media_id}/offload")

        assert response.status_code == 202
        assert response.json()["id"] == media_id
        assert [(c["job_name"], c["payload"]) for c in scheduler.calls] == [
            (OFFLOAD_MEDIA_TASK, {"media_id": media_id})
        ]

    def test_offload_of_unknown_item(self, client, scheduler):
        response = client.post(f"/api/v1/media/{uuid.UUID(int=42)}/offload")

        assert response.status_code == 404
        assert scheduler.calls == []
