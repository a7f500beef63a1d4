import time

import pytest
from fastapi.testclient import TestClient

from enjoytravel_scraper.api import create_app
from enjoytravel_scraper.config import Settings
from enjoytravel_scraper.errors import TransportError

from tests.conftest import FakeExecutor, body, no_sleep


def _wait_for(client, path, statuses=("completed", "error"), attempts=500):
    for _ in range(attempts):
        state = client.get(path).json()
        if state["status"] in statuses:
            return state
        time.sleep(0.01)
    raise AssertionError(f"{path} never reached {statuses}: {state}")


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def app(executor, tmp_path):
    application = create_app(Settings(browserless_api_key="test"), executor=executor, static_dir=str(tmp_path / "none"))
    application.state.orchestrator._sleep = no_sleep
    return application


def test_unknown_session_progress_is_idle(app):
    client = TestClient(app)
    for path in ("/api/scrape-progress/session-0-abc", "/api/bulk-scrape-progress/bulk-0-abc"):
        r = client.get(path)
        assert r.status_code == 200
        assert r.json() == {"status": "idle", "message": "Waiting...", "progress": 0}


def test_health(app):
    r = TestClient(app).get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["credentialsConfigured"] is True


def test_search_location_requires_query(app, executor):
    r = TestClient(app).post("/api/search-location", json={})
    assert r.status_code == 400
    assert r.json() == {"error": "Location query is required"}
    assert executor.calls == []


def test_search_location_returns_locations(app, executor):
    executor.responder = lambda url: body([{"id": 1234, "name": "Miami Airport"}])
    r = TestClient(app).post("/api/search-location", json={"query": "Miami Airport"})
    assert r.status_code == 200
    assert r.json() == {"locations": [{"id": 1234, "name": "Miami Airport"}]}
    assert executor.calls[0]["operation"] == "WarmupSession"
    assert "query=Miami+Airport" in executor.calls[1]["url"]


def test_search_location_not_found(app, executor):
    executor.responder = lambda url: body([])
    r = TestClient(app).post("/api/search-location", json={"query": "Atlantis"})
    assert r.status_code == 404
    assert r.json() == {"error": "No locations found"}


def test_search_location_upstream_failure(app, executor):
    executor.responder = lambda url: TransportError(503, "unavailable")
    r = TestClient(app).post("/api/search-location", json={"query": "Miami"})
    assert r.status_code == 500
    assert "503" in r.json()["error"]


def test_scrape_then_poll_then_download(app):
    with TestClient(app) as client:
        r = client.post(
            "/api/scrape",
            json={"locationId": "1234", "pickup": "2026-03-01", "dropoff": "2026-03-05", "pickupTime": "10:00"},
        )
        assert r.status_code == 202
        session_id = r.json()["sessionId"]
        assert session_id.startswith("session-")

        state = _wait_for(client, f"/api/scrape-progress/{session_id}")
        assert state["status"] == "completed"
        assert state["result"]["total"] == 2
        filename = state["result"]["csvFilename"]

        d = client.get(f"/api/download-csv/{filename}")
        assert d.status_code == 200
        assert d.headers["content-type"].startswith("text/csv")
        assert d.headers["content-disposition"] == f'attachment; filename="{filename}"'
        assert d.text.splitlines()[0].startswith("Brand,Car Type,Vehicle Name")

        upper = client.get(f"/api/download-csv/{filename.upper()}")
        assert upper.status_code == 200


def test_scrape_with_missing_fields_still_returns_session(app, executor):
    with TestClient(app) as client:
        r = client.post("/api/scrape", json={"pickup": "2026-03-01"})
        assert r.status_code == 202
        state = _wait_for(client, f"/api/scrape-progress/{r.json()['sessionId']}")
        assert state == {"status": "error", "message": "Missing required fields", "progress": 0}
    assert executor.calls == []


def test_bulk_scrape_over_limit(app, executor):
    with TestClient(app) as client:
        r = client.post(
            "/api/bulk-scrape", json={"locationId": 1, "startDate": "2026-01-01", "endDate": "2027-02-01"}
        )
        assert r.status_code == 202
        session_id = r.json()["sessionId"]
        assert session_id.startswith("bulk-")
        state = _wait_for(client, f"/api/bulk-scrape-progress/{session_id}")
        assert state["status"] == "error"
        assert state["message"] == "Maximum 365 days allowed"
    assert executor.calls == []


def test_bulk_scrape_completes(app):
    with TestClient(app) as client:
        r = client.post(
            "/api/bulk-scrape",
            json={"locationId": 1, "startDate": "2026-03-01", "endDate": "2026-03-03", "time": "09:30"},
        )
        state = _wait_for(client, f"/api/bulk-scrape-progress/{r.json()['sessionId']}")
        assert state["status"] == "completed"
        assert state["totalDays"] == 3
        assert state["currentDay"] == 3
        assert state["result"]["total"] == 6
        assert state["result"]["failedDates"] == []
        assert {o["rentalDate"] for o in state["result"]["offers"]} == {"2026-03-01", "2026-03-02", "2026-03-03"}


def test_download_unknown_file(app):
    r = TestClient(app).get("/api/download-csv/missing.csv")
    assert r.status_code == 404
    payload = r.json()
    assert payload["requested"] == "missing.csv"
    assert payload["available"] == []
    assert "not found" in payload["error"]
