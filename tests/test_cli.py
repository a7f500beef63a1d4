from json import dumps, loads
from pathlib import Path
from urllib.parse import parse_qs, urlparse

from typer.testing import CliRunner

from enjoytravel_scraper import cli
from enjoytravel_scraper.scrapers import browserql

from tests.conftest import PRODUCTS_RESPONSE, no_sleep

runner = CliRunner()


class DummyResponse:
    status_code = 200
    text = ""

    def __init__(self, payload):
        self._payload = payload

    def json(self):
        return self._payload


def _fake_post(url, json=None, headers=None, timeout=None):
    target = (json.get("variables") or {}).get("url", "")
    if json.get("operationName") == "WarmupSession":
        return DummyResponse({"data": {"goto": {"status": 200}}})
    if "search-locations" in target:
        text = '[{"id": 4321, "name": "Miami Airport"}]'
    else:
        text = dumps(PRODUCTS_RESPONSE)
    return DummyResponse({"data": {"body": {"text": text}}})


def test_scrape_requires_api_key(monkeypatch):
    monkeypatch.delenv("BROWSERLESS_API_KEY", raising=False)
    result = runner.invoke(cli.app, ["scrape"])
    assert result.exit_code == 1


def test_scrape_writes_csv_and_previews(monkeypatch, tmp_path):
    monkeypatch.setenv("BROWSERLESS_API_KEY", "test")
    monkeypatch.setattr(browserql.requests, "post", _fake_post)
    monkeypatch.setattr(cli.SearchOrchestrator, "warm_up", _warm_up_without_pause)

    result = runner.invoke(
        cli.app,
        ["scrape", "--pickup", "2026-03-01", "--dropoff", "2026-03-05", "--output-dir", str(tmp_path)],
    )

    assert result.exit_code == 0, result.output
    assert "Location ID: 4321" in result.output
    assert "Found 2 car rental offers" in result.output
    files = list(Path(tmp_path).glob("enjoytravel-offers-*.csv"))
    assert len(files) == 1
    lines = files[0].read_text(encoding="utf-8").splitlines()
    assert lines[0].split(",")[:3] == ["Brand", "Car Type", "Vehicle Name"]
    assert "ACRISS Code" not in lines[0]
    assert lines[1].startswith("Toyota,Economy,Yaris,Acme,42,EUR")


def test_scrape_failure_exits_non_zero(monkeypatch, tmp_path):
    monkeypatch.setenv("BROWSERLESS_API_KEY", "test")

    def failing_post(url, json=None, headers=None, timeout=None):
        resp = DummyResponse(None)
        resp.status_code = 401
        resp.text = "unauthorized"
        return resp

    monkeypatch.setattr(browserql.requests, "post", failing_post)
    monkeypatch.setattr(cli.SearchOrchestrator, "warm_up", _warm_up_without_pause)
    result = runner.invoke(cli.app, ["scrape", "--output-dir", str(tmp_path)])
    assert result.exit_code == 1
    assert list(Path(tmp_path).glob("*.csv")) == []


def test_locations_command(monkeypatch):
    monkeypatch.setenv("BROWSERLESS_API_KEY", "test")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.setattr(browserql.requests, "post", _fake_post)
    result = runner.invoke(cli.app, ["locations", "Miami Airport"])
    assert result.exit_code == 0, result.output
    assert loads(result.output) == [{"id": 4321, "name": "Miami Airport"}]


async def _warm_up_without_pause(self):
    await self.scraper.warm_session()


def _quiet_orchestrator(monkeypatch):
    build = cli._orchestrator

    def quiet(settings):
        orchestrator = build(settings)
        orchestrator._sleep = no_sleep
        return orchestrator

    monkeypatch.setattr(cli, "_orchestrator", quiet)


def test_bulk_writes_csv_and_lists_failed_days(monkeypatch, tmp_path):
    monkeypatch.setenv("BROWSERLESS_API_KEY", "test")
    _quiet_orchestrator(monkeypatch)
    searched = []

    def post(url, json=None, headers=None, timeout=None):
        target = (json.get("variables") or {}).get("url", "")
        if "/api/search?" in target:
            day = parse_qs(urlparse(target).query)["pdate"][0]
            searched.append(day)
            if day == "2026-03-02":
                resp = DummyResponse(None)
                resp.status_code = 502
                resp.text = "bad gateway"
                return resp
        return _fake_post(url, json=json, headers=headers, timeout=timeout)

    monkeypatch.setattr(browserql.requests, "post", post)

    result = runner.invoke(
        cli.app,
        ["bulk", "--start", "2026-03-01", "--end", "2026-03-03", "--output-dir", str(tmp_path)],
    )

    assert result.exit_code == 0, result.output
    assert searched == ["2026-03-01", "2026-03-02", "2026-03-03"]
    assert "Days without results: 2026-03-02" in result.output
    files = list(Path(tmp_path).glob("enjoytravel-bulk-2026-03-01-to-2026-03-03-*.csv"))
    assert len(files) == 1
    lines = files[0].read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("Rental Date,Brand")
    assert [line.split(",")[0] for line in lines[1:]] == ["2026-03-01", "2026-03-01", "2026-03-03", "2026-03-03"]


def test_bulk_over_a_year_exits_non_zero(monkeypatch, tmp_path):
    monkeypatch.setenv("BROWSERLESS_API_KEY", "test")
    _quiet_orchestrator(monkeypatch)
    posted = []
    monkeypatch.setattr(browserql.requests, "post", lambda *a, **kw: posted.append(kw))

    result = runner.invoke(
        cli.app,
        ["bulk", "--start", "2026-01-01", "--end", "2027-02-01", "--location-id", "1", "--output-dir", str(tmp_path)],
    )

    assert result.exit_code == 1
    assert "Maximum 365 days allowed" in result.output
    assert posted == []
    assert list(Path(tmp_path).glob("*.csv")) == []
