"""Tests for the status API."""
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from clipwatch import __version__
from clipwatch.main import create_app
from clipwatch.models.video import VideoStatus

from conftest import make_analysis


class _FakeWatcher:
    def __init__(self, store, in_flight=()):
        self.store = store
        self.in_flight = set(in_flight)
        self.retried = []
        self.queue = SimpleNamespace(max_concurrent=2, active_count=1, pending_count=3)

    def is_tracked(self, name):
        return name in self.in_flight

    def retry(self, name):
        self.retried.append(name)
        self.store.delete(name)
        return True


@pytest.fixture
def app(store):
    app = create_app(start_watcher=False)
    app.state.store = store
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def populated(store):
    store.update("a.mp4", status=VideoStatus.ANALYZING, analysis=make_analysis(("0:10", "0:12"), title="Ace"))
    store.update("b.mp4", status=VideoStatus.FAILED, error_message="No highlights found")
    return store


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["version"] == __version__


def test_list_videos(client, populated):
    response = client.get("/api/videos")
    assert response.status_code == 200
    body = {item["name"]: item for item in response.json()}
    assert body["a.mp4"]["title"] == "Ace"
    assert body["a.mp4"]["highlights"][0]["start_time"] == "0:10"
    assert body["b.mp4"]["error_message"] == "No highlights found"


def test_list_videos_by_status(client, populated):
    response = client.get("/api/videos", params={"status": "FAILED"})
    assert [item["name"] for item in response.json()] == ["b.mp4"]


def test_list_videos_rejects_unknown_status(client, populated):
    response = client.get("/api/videos", params={"status": "DONE"})
    assert response.status_code == 422


def test_get_video(client, populated):
    response = client.get("/api/videos/b.mp4")
    assert response.status_code == 200
    assert response.json()["status"] == "FAILED"


def test_get_unknown_video(client):
    assert client.get("/api/videos/nope.mp4").status_code == 404


def test_delete_video(client, populated):
    assert client.delete("/api/videos/b.mp4").status_code == 200
    assert populated.get("b.mp4") is None
    assert client.delete("/api/videos/b.mp4").status_code == 404


def test_retry_without_watcher_only_forgets(client, populated):
    response = client.post("/api/videos/b.mp4/retry")
    assert response.json() == {"name": "b.mp4", "removed": True, "queued": False}
    assert populated.get("b.mp4") is None


def test_retry_with_watcher_queues(app, client, populated):
    watcher = _FakeWatcher(populated)
    app.state.watcher = watcher

    response = client.post("/api/videos/b.mp4/retry")

    assert response.json() == {"name": "b.mp4", "removed": True, "queued": True}
    assert watcher.retried == ["b.mp4"]


def test_retry_refused_while_in_flight(app, client, populated):
    watcher = _FakeWatcher(populated, in_flight=["a.mp4"])
    app.state.watcher = watcher

    response = client.post("/api/videos/a.mp4/retry")

    assert response.status_code == 409
    assert watcher.retried == []
    assert populated.get("a.mp4") is not None


def test_delete_refused_while_in_flight(app, client, populated):
    app.state.watcher = _FakeWatcher(populated, in_flight=["a.mp4"])

    assert client.delete("/api/videos/a.mp4").status_code == 409
    assert populated.get("a.mp4") is not None


def test_queue_without_watcher(client):
    assert client.get("/api/queue").json()["watching"] is False


def test_queue_with_watcher(app, client, store):
    app.state.watcher = _FakeWatcher(store)
    body = client.get("/api/queue").json()
    assert body == {"watching": True, "max_concurrent": 2, "active": 1, "pending": 3}


def test_corrupt_state_document(client, store):
    store.path.write_text("[1, 2]")
    response = client.get("/api/videos")
    assert response.status_code == 500


def test_health_reports_state_file(client, store):
    body = client.get("/api/health").json()
    assert body["state_file"] == str(store.path)
    assert body["status"] in ("healthy", "degraded")
