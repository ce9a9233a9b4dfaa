"""Unit tests for the HTTP API with services mocked out."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

import api.server as server
from api.routers import media, videos

GENERATION_ROW = {
    "id": "abc123",
    "prompt": "a calm forest at dawn",
    "options": {"duration": 30},
    "title": "Forest at Dawn",
    "narration": None,
    "scenes": [],
    "status": "completed",
    "result_path": "/videos/abc123.mp4",
    "error": None,
    "notices": ['No footage found for: "volcano"'],
    "created_at": "2026-01-01T00:00:00",
    "updated_at": "2026-01-01T00:01:00",
}


@pytest.fixture
def store():
    store = MagicMock()
    store.create_generation = AsyncMock(return_value=GENERATION_ROW)
    store.get_generation = AsyncMock(return_value=None)
    store.list_generations = AsyncMock(return_value=[GENERATION_ROW])
    store.get_media_item = AsyncMock(return_value=None)
    return store


@pytest.fixture
def generator():
    generator = MagicMock()
    generator.generate = AsyncMock()
    return generator


@pytest.fixture
def client(monkeypatch, store, generator, sample_config):
    monkeypatch.setattr(server, "init_services", AsyncMock())
    monkeypatch.setattr(server, "shutdown_services", AsyncMock())
    monkeypatch.setattr(videos, "get_record_store", lambda: store)
    monkeypatch.setattr(videos, "get_generator", lambda: generator)
    monkeypatch.setattr(videos, "get_config", lambda: sample_config)
    monkeypatch.setattr(media, "get_record_store", lambda: store)
    with TestClient(server.app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_generate_accepted(client, store):
    response = client.post(
        "/api/videos/generate",
        json={"prompt": "a calm forest at dawn", "duration": 30, "orientation": "portrait"},
    )

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "pending"
    job_id, prompt, options = store.create_generation.call_args.args
    assert job_id == body["job_id"]
    assert prompt == "a calm forest at dawn"
    assert options["orientation"] == "portrait"


def test_generate_blank_prompt(client):
    response = client.post("/api/videos/generate", json={"prompt": "   "})

    assert response.status_code == 400


@pytest.mark.parametrize(
    "body",
    [
        {"prompt": "forest", "duration": 500},
        {"prompt": "forest", "orientation": "square"},
        {"prompt": "forest", "language": "fr"},
        {"prompt": ""},
    ],
)
def test_generate_invalid_request(client, body):
    assert client.post("/api/videos/generate", json=body).status_code == 422


def test_generate_missing_provider_key(client, store, sample_config):
    sample_config["pexels_api_key"] = None

    response = client.post("/api/videos/generate", json={"prompt": "forest"})

    assert response.status_code == 400
    assert "PEXELS_API_KEY" in response.json()["detail"]
    store.create_generation.assert_not_called()


def test_generate_with_script_needs_no_language_model(client, sample_config):
    sample_config["gemini_api_key"] = None

    response = client.post(
        "/api/videos/generate",
        json={"prompt": "forest", "scenes": [{"description": "misty forest"}]},
    )

    assert response.status_code == 202


def test_get_video(client, store):
    store.get_generation.return_value = GENERATION_ROW

    response = client.get("/api/videos/abc123")

    assert response.status_code == 200
    assert response.json()["notices"] == ['No footage found for: "volcano"']


def test_get_video_not_found(client):
    assert client.get("/api/videos/missing").status_code == 404


def test_list_videos(client, store):
    response = client.get("/api/videos", params={"status": "completed"})

    assert response.status_code == 200
    assert [job["id"] for job in response.json()["jobs"]] == ["abc123"]
    assert store.list_generations.call_args.kwargs == {"status": "completed", "limit": 50}


def test_progress_socket_unknown_job(client):
    with client.websocket_connect("/ws/videos/missing") as websocket:
        message = websocket.receive_json()

    assert message == {"job_id": "missing", "type": "error", "error": "Job not found"}


def test_media_item_not_found(client):
    assert client.get("/api/media/42").status_code == 404
