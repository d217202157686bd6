import time
import uuid

import pytest
from fastapi.testclient import TestClient

from api.routes import create_fastapi_app
from services.dependencies import build_services
from tests.fakes import FakeAssetSource, FakeRecognizer, make_match

URL = "https://www.youtube.com/watch?v=abc123"


class AppHarness:
    def __init__(self, config, source, recognizer):
        self.source = source
        self.recognizer = recognizer
        self.services = build_services(config, source=source, recognizer=recognizer)
        self.app = create_fastapi_app(config, self.services)


@pytest.fixture
def harness(config):
    return AppHarness(
        config,
        FakeAssetSource(),
        FakeRecognizer(lambda start: make_match("Opening", "Band") if start == 0 else None),
    )


@pytest.fixture
def client(harness):
    with TestClient(harness.app) as test_client:
        yield test_client


def _wait_for_terminal(client, task_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/api/status/{task_id}").json()
        if body["status"] in ("completed", "failed"):
            return body
        time.sleep(0.02)
    raise AssertionError(f"job {task_id} did not finish")


@pytest.mark.parametrize(
    "payload",
    [{"videoUrl": "not a url"}, {"videoUrl": ""}, {"videoUrl": "ftp://example.com/a.mp4"}, {}],
)
def test_invalid_url_is_rejected_without_creating_a_job(client, harness, payload):
    response = client.post("/api/extract", json=payload)

    assert response.status_code == 400
    assert "error" in response.json()
    assert len(harness.services.job_store) == 0
    assert harness.source.info_calls == []


def test_extract_then_poll_until_result(client, harness):
    response = client.post("/api/extract", json={"videoUrl": URL})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "processing"
    task_id = body["taskId"]

    status_body = _wait_for_terminal(client, task_id)
    assert status_body["status"] == "completed"
    assert status_body["progress"] == 100
    assert set(status_body) == {"taskId", "status", "progress", "downloadProgress", "createdAt"}

    result = client.get(f"/api/result/{task_id}")
    assert result.status_code == 200
    payload = result.json()["result"]
    assert [t["title"] for t in payload["identifiedTracks"]] == ["Opening"]
    assert payload["processingInfo"]["mode"] == "segment"

    artifact = payload["artifacts"][0]
    download = client.get(f"/api/download/{artifact}")
    assert download.status_code == 200
    assert download.content.startswith(b"start=")


def test_failed_job_result_is_500(config):
    harness = AppHarness(config, FakeAssetSource(info_error="private video"), FakeRecognizer())

    with TestClient(harness.app) as client:
        task_id = client.post("/api/extract", json={"videoUrl": URL}).json()["taskId"]
        assert _wait_for_terminal(client, task_id)["status"] == "failed"

        response = client.get(f"/api/result/{task_id}")

    assert response.status_code == 500
    assert response.json() == {"taskId": task_id, "status": "failed", "error": "private video"}


def test_unknown_and_malformed_task_ids(client):
    unknown = str(uuid.uuid4())

    assert client.get(f"/api/status/{unknown}").status_code == 404
    assert client.get(f"/api/result/{unknown}").status_code == 404
    assert client.get("/api/status/not-a-uuid").status_code == 400
    assert client.get("/api/status/not-a-uuid").json() == {"error": "Invalid task ID format"}


def test_download_outside_artifact_root_is_forbidden(client, harness):
    secret = harness.services.artifacts.root.parent / "secret.txt"
    secret.write_text("nope")

    response = client.get("/api/download/..%2Fsecret.txt")

    assert response.status_code == 403


def test_missing_download_is_404(client):
    assert client.get("/api/download/missing.mp3").status_code == 404


def test_health_reports_recognizer_and_jobs(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["acrcloudConfigured"] is True
    assert body["activeJobs"] == 0
    assert client.get("/").status_code == 200


def test_shutdown_closes_recognizer(harness):
    with TestClient(harness.app):
        pass

    assert harness.recognizer.closed is True
