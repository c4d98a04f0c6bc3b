from fastapi.testclient import TestClient

from misspeak.api import get_direct_transcriber
from misspeak.errors import TranscriptionFailed
from misspeak.main import app
from tests.utils import FakeTranscriber


def test_health_reports_status_and_uptime():
    client = TestClient(app)

    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["uptime"] >= 0
    assert "T" in body["timestamp"]


def test_direct_transcription_by_url():
    transcriber = FakeTranscriber(text="hosted audio text")
    app.dependency_overrides[get_direct_transcriber] = lambda: transcriber
    try:
        response = TestClient(app).post("/api/transcribe", json={"audio_url": "https://cdn.test/clip.mp3"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json() == {"text": "hosted audio text"}
    assert transcriber.url_calls == ["https://cdn.test/clip.mp3"]


def test_direct_transcription_rejects_non_http_urls():
    response = TestClient(app).post("/api/transcribe", json={"audio_url": "file:///etc/passwd"})
    assert response.status_code == 422


def test_direct_transcription_failure_is_bad_gateway():
    transcriber = FakeTranscriber(error=TranscriptionFailed("Transcription failed: Model API returned 500"))
    app.dependency_overrides[get_direct_transcriber] = lambda: transcriber
    try:
        response = TestClient(app).post("/api/transcribe", json={"audio_url": "https://cdn.test/clip.mp3"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 502
    assert "500" in response.json()["detail"]
