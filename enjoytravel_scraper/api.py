# enjoytravel_scraper/api.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
import logging
import platform
import sys
from pathlib import Path
from typing import Optional

from enjoytravel_scraper.config import Settings, load_settings
from enjoytravel_scraper.jobs import JobRunner
from enjoytravel_scraper.models import BulkScrapeRequest, LocationSearchRequest, ScrapeRequest
from enjoytravel_scraper.orchestrator import SearchOrchestrator
from enjoytravel_scraper.scrapers.enjoytravel_scraper import EnjoyTravelScraper, Executor
from enjoytravel_scraper.store import CsvArtifactStore, ProgressStore
from enjoytravel_scraper.utils import iso_now

log = logging.getLogger("api")


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def create_app(
    settings: Optional[Settings] = None,
    executor: Optional[Executor] = None,
    orchestrator: Optional[SearchOrchestrator] = None,
    static_dir: str = "public",
) -> FastAPI:
    settings = settings or load_settings()
    if orchestrator is None:
        scraper = EnjoyTravelScraper.from_settings(settings, executor)
        orchestrator = SearchOrchestrator(
            scraper=scraper,
            progress=ProgressStore(settings.store_ttl_seconds),
            artifacts=CsvArtifactStore(settings.store_ttl_seconds),
            runner=JobRunner(),
            default_time=settings.default_time,
        )
    scraper = orchestrator.scraper
    progress = orchestrator.progress
    artifacts = orchestrator.artifacts

    app = FastAPI(title="EnjoyTravel Car Hire Scraper API", version="0.1.0")
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "mode": "async",
            "time": iso_now(),
            "activeJobs": orchestrator.runner.active,
            "storedCsvFiles": len(artifacts),
            "credentialsConfigured": bool(settings.browserless_api_key),
            "python_version": platform.python_version(),
            "executable": sys.executable,
        }

    @app.post("/api/search-location")
    async def search_location(req: LocationSearchRequest):
        if not req.query:
            return _error(400, "Location query is required")
        try:
            await scraper.warm_session()
            locations = await scraper.search_locations(req.query)
        except Exception as e:
            log.exception("Location search error")
            return _error(500, str(e))
        if not locations:
            return _error(404, "No locations found")
        return {"locations": locations}

    @app.post("/api/scrape", status_code=202)
    async def scrape(req: ScrapeRequest):
        session_id = orchestrator.start_single(req)
        return {
            "sessionId": session_id,
            "message": "Scraping started. Use /api/scrape-progress/:sessionId to get updates.",
        }

    @app.get("/api/scrape-progress/{session_id}")
    async def scrape_progress(session_id: str):
        return progress.get(session_id).to_dict()

    @app.post("/api/bulk-scrape", status_code=202)
    async def bulk_scrape(req: BulkScrapeRequest):
        session_id = orchestrator.start_bulk(req)
        return {
            "sessionId": session_id,
            "message": "Bulk scraping started. Use /api/bulk-scrape-progress/:sessionId to get updates.",
        }

    @app.get("/api/bulk-scrape-progress/{session_id}")
    async def bulk_scrape_progress(session_id: str):
        return progress.get(session_id).to_dict()

    @app.get("/api/download-csv/{filename}")
    async def download_csv(filename: str, request: Request):
        log.info("CSV download requested: %s", filename)
        found = artifacts.lookup(filename)
        if not found:
            log.error("CSV file not found: %s (available: %s)", filename, artifacts.names())
            return _error(
                404,
                "CSV file not found. It may have expired or the session was cleared.",
                requested=filename,
                available=artifacts.names(),
            )
        name, content = found
        log.info("CSV downloaded: %s (%s bytes) by %s", name, len(content), request.client.host if request.client else "-")
        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{name}"'},
        )

    if Path(static_dir).is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    return app


app = create_app()
