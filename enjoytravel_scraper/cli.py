# enjoytravel_scraper/cli.py
import asyncio
import json
import logging
import traceback
from typing import Optional

import typer

from enjoytravel_scraper.config import Settings, load_settings
from enjoytravel_scraper.models import BulkScrapeRequest, SearchCriteria
from enjoytravel_scraper.orchestrator import SearchOrchestrator
from enjoytravel_scraper.output import BULK_OFFER_COLUMNS, OFFER_COLUMNS, encode_csv, offers_filename, write_csv
from enjoytravel_scraper.scrapers.enjoytravel_scraper import EnjoyTravelScraper
from enjoytravel_scraper.store import CsvArtifactStore, ProgressStore
from enjoytravel_scraper.utils import parse_date_fuzzy

app = typer.Typer(help="Scrape car hire offers from EnjoyTravel through Browserless BrowserQL.")

PREVIEW_COUNT = 5
BANNER = "=" * 60


def _settings() -> Settings:
    settings = load_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    return settings


def _require_api_key(settings: Settings) -> None:
    if not settings.browserless_api_key:
        typer.echo("ERROR: BROWSERLESS_API_KEY not set!", err=True)
        raise typer.Exit(code=1)


def _fail(e: Exception) -> None:
    typer.echo("\n" + BANNER, err=True)
    typer.echo(f"ERROR: {e}", err=True)
    typer.echo(BANNER, err=True)
    typer.echo("\nStack trace:", err=True)
    typer.echo("".join(traceback.format_exception(type(e), e, e.__traceback__)), err=True)
    raise typer.Exit(code=1)


def _orchestrator(settings: Settings) -> SearchOrchestrator:
    return SearchOrchestrator(
        scraper=EnjoyTravelScraper.from_settings(settings),
        progress=ProgressStore(ttl_seconds=None),
        artifacts=CsvArtifactStore(ttl_seconds=None),
        default_time=settings.default_time,
    )


async def _resolve_location_id(scraper: EnjoyTravelScraper, query: str) -> str:
    locations = await scraper.search_locations(query)
    if not locations:
        raise RuntimeError("No locations returned")
    first = locations[0]
    location_id = first.get("id") if isinstance(first, dict) else None
    if location_id is None:
        raise RuntimeError(f"First location has no id: {first!r}")
    return str(location_id)


@app.command()
def scrape(
    location: Optional[str] = typer.Option(None, help="Location query, e.g. 'Miami Airport'"),
    location_id: Optional[str] = typer.Option(None, help="Location id (skips the location lookup)"),
    pickup: Optional[str] = typer.Option(None, help="Pickup date YYYY-MM-DD"),
    dropoff: Optional[str] = typer.Option(None, help="Drop-off date YYYY-MM-DD"),
    time: Optional[str] = typer.Option(None, help="Pickup and drop-off time HH:MM"),
    output_dir: Optional[str] = typer.Option(None, help="Directory for the CSV file"),
):
    """One-shot search for a single pickup/drop-off pair, written to a timestamped CSV."""
    settings = _settings()
    _require_api_key(settings)

    pickup_date = parse_date_fuzzy(pickup) if pickup else settings.pickup_default()
    dropoff_date = parse_date_fuzzy(dropoff) if dropoff else settings.dropoff_default()
    if not pickup_date or not dropoff_date:
        typer.echo("Invalid date format. Use YYYY-MM-DD.")
        raise typer.Exit(code=1)
    rental_time = time or settings.default_time
    query = location or settings.default_location_query
    orchestrator = _orchestrator(settings)

    async def _run():
        typer.echo("Opening EnjoyTravel and waiting for Cloudflare...")
        await orchestrator.warm_up()
        lid = location_id
        if not lid:
            typer.echo(f"Fetching location id for {query!r}...")
            lid = await _resolve_location_id(orchestrator.scraper, query)
        typer.echo(f"Location ID: {lid}")
        typer.echo(f"Pickup: {pickup_date} at {rental_time} | Drop-off: {dropoff_date} at {rental_time}")
        criteria = SearchCriteria(
            location_id=lid,
            pickup_date=pickup_date,
            dropoff_date=dropoff_date,
            pickup_time=rental_time,
            dropoff_time=rental_time,
        )
        return await orchestrator.collect_offers(criteria)

    try:
        offers = asyncio.run(_run())
        content = encode_csv(offers, OFFER_COLUMNS)
        path = write_csv(content, offers_filename(), output_dir or settings.output_dir)
    except Exception as e:
        _fail(e)

    typer.echo(BANNER)
    typer.echo(f"SUCCESS! Found {len(offers)} car rental offers")
    typer.echo(BANNER)
    typer.echo(f"CSV file saved: {path}")
    if offers:
        typer.echo(f"Preview (first {PREVIEW_COUNT} offers):")
        typer.echo(json.dumps([o.to_dict() for o in offers[:PREVIEW_COUNT]], indent=2))
        if len(offers) > PREVIEW_COUNT:
            typer.echo(f"\n... and {len(offers) - PREVIEW_COUNT} more offers (see CSV file)")
    else:
        typer.echo("No offers to display")


@app.command()
def locations(query: str = typer.Argument(..., help="Location query, e.g. 'Miami Airport'")):
    """Print the locations EnjoyTravel suggests for a query."""
    settings = _settings()
    _require_api_key(settings)
    scraper = EnjoyTravelScraper.from_settings(settings)

    async def _run():
        await scraper.warm_session()
        return await scraper.search_locations(query)

    try:
        found = asyncio.run(_run())
    except Exception as e:
        _fail(e)
    typer.echo(json.dumps(found, indent=2, ensure_ascii=False))


@app.command()
def bulk(
    start: str = typer.Option(..., help="First rental date YYYY-MM-DD"),
    end: str = typer.Option(..., help="Last rental date YYYY-MM-DD"),
    location: Optional[str] = typer.Option(None, help="Location query"),
    location_id: Optional[str] = typer.Option(None, help="Location id (skips the location lookup)"),
    time: Optional[str] = typer.Option(None, help="Pickup and drop-off time HH:MM"),
    output_dir: Optional[str] = typer.Option(None, help="Directory for the CSV file"),
):
    """Day-by-day one-day rental sweep over a date range, written to one CSV."""
    settings = _settings()
    _require_api_key(settings)
    orchestrator = _orchestrator(settings)
    query = location or settings.default_location_query

    async def _run():
        lid = location_id
        if not lid:
            await orchestrator.scraper.warm_session()
            lid = await _resolve_location_id(orchestrator.scraper, query)
        request = BulkScrapeRequest(location_id=lid, start_date=start, end_date=end, time=time)
        return await orchestrator.run_bulk("cli", request)

    try:
        result = asyncio.run(_run())
    except Exception as e:
        _fail(e)

    state = orchestrator.progress.get("cli")
    if result is None:
        typer.echo(f"Bulk search failed: {state.message}", err=True)
        raise typer.Exit(code=1)
    content = orchestrator.artifacts.get(result.csv_filename) or encode_csv(result.offers, BULK_OFFER_COLUMNS)
    path = write_csv(content, result.csv_filename, output_dir or settings.output_dir)
    typer.echo(state.message)
    if result.failed_dates:
        typer.echo(f"Days without results: {', '.join(result.failed_dates)}")
    typer.echo(f"CSV file saved: {path}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Port"),
):
    """Run the HTTP API."""
    import uvicorn

    settings = _settings()
    uvicorn.run("enjoytravel_scraper.api:app", host=host or settings.host, port=port or settings.port)


if __name__ == "__main__":
    app()
