"""Tests for the REST endpoints."""

from __future__ import annotations

import asyncio
import time
from typing import Any

import pytest
from fastapi.testclient import TestClient

from yellowbook_search.config import Settings
from yellowbook_search.models import BusinessCreate
from yellowbook_search.server import create_app
from yellowbook_search.services import build_services

from conftest import DIM, FakeCompleter, FakeEmbedder


class BrokenStore:
    def list_records(self, city=None, *, embedded_only=False):
        raise RuntimeError("database is locked")

    def create_record(self, fields):
        raise RuntimeError("disk I/O error")


def _payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": "Luigi's Trattoria",
        "description": "Authentic Italian restaurant with handmade pasta",
        "phone": "+976 7011 2233",
        "email": "hello@luigis.mn",
        "website": "https://luigis.mn",
        "address": {
            "street": "Peace Avenue 12",
            "city": "Ulaanbaatar",
            "state": "Ulaanbaatar",
            "postalCode": "14200",
            "country": "Mongolia",
        },
        "categories": ["Restaurant", "Italian"],
        "location": {"lat": 47.918, "lng": 106.917},
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def app(db_path: str):
    settings = Settings(db_path=db_path, embedding_dim=DIM, run_worker=False)
    embedder = FakeEmbedder()
    completer = FakeCompleter(answer="Luigi's Trattoria is the place to go.")
    return create_app(
        lambda: build_services(settings, embedder=embedder, completer=completer)
    )


def test_create_business_enqueues_job_and_search_finds_it(app) -> None:
    with TestClient(app) as client:
        created = client.post("/api/yellow-books", json=_payload())

        assert created.status_code == 201
        body = created.json()
        assert body["name"] == "Luigi's Trattoria"
        assert body["address"]["postalCode"] == "14200"
        assert body["has_embedding"] is False

        jobs = client.get("/api/jobs").json()["jobs"]
        assert len(jobs) == 1
        assert jobs[0]["state"] == "enqueued"
        assert jobs[0]["payload"]["business_id"] == body["id"]

        outcomes = asyncio.run(app.state.services.worker.run_once())
        assert [o.state.value for o in outcomes] == ["completed"]

        first = client.post(
            "/api/ai/yellow-books/search",
            json={"question": "Italian restaurants", "city": "Ulaanbaatar"},
        )
        second = client.post(
            "/api/ai/yellow-books/search",
            json={"question": "Italian restaurants", "city": "Ulaanbaatar"},
        )

    assert first.status_code == 200
    data = first.json()
    assert data["answer"] == "Luigi's Trattoria is the place to go."
    assert data["cached"] is False
    assert data["businesses"][0]["name"] == "Luigi's Trattoria"
    assert data["businesses"][0]["matched_by"] == "semantic"
    assert second.json()["cached"] is True


def test_search_rejects_short_question(app) -> None:
    with TestClient(app) as client:
        response = client.post("/api/ai/yellow-books/search", json={"question": "hi"})

    assert response.status_code == 400
    assert response.json() == {
        "error": "Bad Request",
        "message": "Question must be at least 3 characters long",
    }


def test_search_rejects_missing_question(app) -> None:
    with TestClient(app) as client:
        response = client.post("/api/ai/yellow-books/search", json={"city": "Darkhan"})

    assert response.status_code == 400
    assert response.json()["error"] == "Bad Request"
    assert "question" in response.json()["message"]


def test_search_store_failure_is_500(app) -> None:
    with TestClient(app) as client:
        app.state.services.search.store = BrokenStore()
        response = client.post(
            "/api/ai/yellow-books/search", json={"question": "Italian restaurants"}
        )

    assert response.status_code == 500
    assert response.json()["message"] == "Failed to process AI search"
    assert "database is locked" in response.json()["details"]


def test_create_business_validation(app) -> None:
    with TestClient(app) as client:
        response = client.post("/api/yellow-books", json=_payload(categories=[]))

    assert response.status_code == 400
    assert "categories" in response.json()["message"]


def test_jobs_rejects_unknown_state(app) -> None:
    with TestClient(app) as client:
        response = client.get("/api/jobs", params={"state": "lost"})

    assert response.status_code == 400
    assert "dead_lettered" in response.json()["error"]


def test_replay_dead_lettered_job(app) -> None:
    with TestClient(app) as client:
        business_id = client.post("/api/yellow-books", json=_payload()).json()["id"]
        services = app.state.services
        services.store.delete_record(business_id)
        asyncio.run(services.worker.run_once())

        dead = client.get("/api/jobs", params={"state": "dead_lettered"}).json()["jobs"]
        assert len(dead) == 1
        assert "NotFoundError" in dead[0]["last_error"]

        replayed = client.post(f"/api/jobs/{dead[0]['id']}/replay")
        again = client.post(f"/api/jobs/{dead[0]['id']}/replay")
        missing = client.post("/api/jobs/no-such-job/replay")

    assert replayed.status_code == 200
    assert replayed.json() == {"id": dead[0]["id"], "state": "enqueued"}
    assert again.status_code == 409
    assert missing.status_code == 404


def test_create_business_store_failure_is_500(app) -> None:
    with TestClient(app) as client:
        app.state.services.directory.store = BrokenStore()
        response = client.post("/api/yellow-books", json=_payload())

    assert response.status_code == 500
    assert response.json() == {
        "error": "Internal Server Error",
        "message": "Failed to create business",
        "details": "disk I/O error",
    }


def test_reembed_and_purge_endpoints(app) -> None:
    with TestClient(app) as client:
        business_id = client.post("/api/yellow-books", json=_payload()).json()["id"]
        nothing_new = client.post("/api/jobs/reembed")

        services = app.state.services
        asyncio.run(services.worker.run_once())
        kept = client.post("/api/jobs/purge")
        purged = client.post("/api/jobs/purge", params={"older_than_hours": 0})
        negative = client.post("/api/jobs/purge", params={"older_than_hours": -1})

        assert services.store.get_record(business_id).embedding is not None

    assert nothing_new.json() == {"enqueued": 0, "job_ids": []}
    assert kept.json() == {"removed": 0}
    assert purged.json() == {"removed": 1}
    assert negative.status_code == 400


def test_reembed_endpoint_enqueues_missing_vectors(app) -> None:
    with TestClient(app) as client:
        services = app.state.services
        record = services.store.create_record(
            BusinessCreate.model_validate(_payload()).to_fields()
        )
        response = client.post("/api/jobs/reembed")
        jobs = client.get("/api/jobs").json()["jobs"]

    assert response.status_code == 200
    assert response.json()["enqueued"] == 1
    assert [job["payload"]["business_id"] for job in jobs] == [record.id]


def test_server_runs_embedding_worker_by_default(db_path: str) -> None:
    settings = Settings(db_path=db_path, embedding_dim=DIM, worker_poll_interval=0.05)
    assert settings.run_worker is True
    app = create_app(
        lambda: build_services(settings, embedder=FakeEmbedder(), completer=FakeCompleter())
    )

    with TestClient(app) as client:
        business_id = client.post("/api/yellow-books", json=_payload()).json()["id"]
        states: list[str] = []
        for _ in range(200):
            states = [job["state"] for job in client.get("/api/jobs").json()["jobs"]]
            if states == ["completed"]:
                break
            time.sleep(0.02)
        embedding = app.state.services.store.get_record(business_id).embedding

    assert states == ["completed"]
    assert embedding is not None
