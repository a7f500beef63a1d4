# enjoytravel_scraper/orchestrator.py
"""
Scrape runs that report progress into a :class:`ProgressStore`.

A run is started from a request handler (or the CLI), returns a session id
straight away and keeps going as a background job. Runs never raise: every
failure ends up as an ``error`` state on the session.
"""
import asyncio
import logging
from datetime import date, timedelta
from typing import Awaitable, Callable, List, Optional

from enjoytravel_scraper.errors import ParseError, SearchValidationError
from enjoytravel_scraper.jobs import JobRunner, new_session_id
from enjoytravel_scraper.models import (
    BulkScrapeRequest,
    Offer,
    ScrapeRequest,
    ScrapeResult,
    ScrapeRun,
    SearchCriteria,
)
from enjoytravel_scraper.output import (
    BULK_OFFER_COLUMNS,
    SERVER_OFFER_COLUMNS,
    bulk_filename,
    encode_csv,
    offers_filename,
)
from enjoytravel_scraper.scrapers.enjoytravel_scraper import EnjoyTravelScraper
from enjoytravel_scraper.scrapers.normalize import normalize_offers
from enjoytravel_scraper.scrapers.payload import decode_json_payload
from enjoytravel_scraper.store import CsvArtifactStore, ProgressStore
from enjoytravel_scraper.utils import parse_date_strict

log = logging.getLogger("orchestrator")

MAX_BULK_DAYS = 365
SETTLE_SECONDS = 2.0
DAY_PAUSE_SECONDS = 1.0

Sleep = Callable[[float], Awaitable[None]]


def _require_date(value: Optional[str], field: str) -> date:
    d = parse_date_strict(value)
    if d is None:
        raise SearchValidationError(f"Invalid {field} date: {value!r}")
    return d


def count_days(start: date, end: date) -> int:
    return abs((end - start).days) + 1


class SearchOrchestrator:
    def __init__(
        self,
        scraper: EnjoyTravelScraper,
        progress: ProgressStore,
        artifacts: CsvArtifactStore,
        runner: Optional[JobRunner] = None,
        default_time: str = "12:00",
        settle_seconds: float = SETTLE_SECONDS,
        day_pause_seconds: float = DAY_PAUSE_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ):
        self.scraper = scraper
        self.progress = progress
        self.artifacts = artifacts
        self.runner = runner or JobRunner()
        self.default_time = default_time
        self.settle_seconds = settle_seconds
        self.day_pause_seconds = day_pause_seconds
        self._sleep = sleep

    def _publish(self, session_id: str, status: str, message: str, progress: float = 0, **extra) -> None:
        self.progress.set(
            session_id,
            ScrapeRun(status=status, message=message, progress=int(progress), **extra),
        )

    def _fail(self, session_id: str, exc: Exception) -> None:
        self._publish(session_id, "error", f"Error: {exc}", 0)

    # --- job submission -----------------------------------------------------

    def start_single(self, request: ScrapeRequest) -> str:
        session_id = new_session_id("session")
        self._publish(session_id, "starting", "Initializing scraper...", 0)
        self.runner.submit(self.run_single(session_id, request), name=session_id)
        return session_id

    def start_bulk(self, request: BulkScrapeRequest) -> str:
        session_id = new_session_id("bulk")
        self._publish(session_id, "starting", "Initializing bulk search...", 0, current_day=0, total_days=0)
        self.runner.submit(self.run_bulk(session_id, request), name=session_id)
        return session_id

    # --- shared steps -------------------------------------------------------

    async def warm_up(self) -> None:
        await self.scraper.warm_session()
        await self._sleep(self.settle_seconds)

    async def collect_offers(self, criteria: SearchCriteria, rental_date: Optional[str] = None) -> List[Offer]:
        """One search round trip: fetch body text, decode it, normalize it."""
        text = await self.scraper.fetch_search_text(criteria)
        raw = decode_json_payload(text, "search response")
        return normalize_offers(raw, rental_date)

    # --- single date ----------------------------------------------------------

    async def run_single(self, session_id: str, request: ScrapeRequest) -> Optional[ScrapeResult]:
        try:
            self._publish(session_id, "starting", "Initializing scraper...", 0)
            if not request.location_id or not request.pickup or not request.dropoff:
                raise SearchValidationError("Missing required fields")
            criteria = SearchCriteria(
                location_id=str(request.location_id),
                pickup_date=_require_date(request.pickup, "pickup"),
                dropoff_date=_require_date(request.dropoff, "dropoff"),
                pickup_time=request.pickup_time or self.default_time,
                dropoff_time=request.dropoff_time or self.default_time,
            )

            self._publish(session_id, "running", "Connecting to EnjoyTravel...", 10)
            await self.scraper.warm_session()
            self._publish(session_id, "running", "Connected! Waiting for Cloudflare challenge...", 20)
            await self._sleep(self.settle_seconds)

            self._publish(session_id, "running", "Fetching car rental offers...", 40)
            self._publish(session_id, "running", "Calling search API...", 50)
            text = await self.scraper.fetch_search_text(criteria)

            self._publish(session_id, "running", "Parsing API response...", 60)
            raw = decode_json_payload(text, "search response")

            self._publish(session_id, "running", "Processing results...", 70)
            offers = normalize_offers(raw)

            self._publish(session_id, "running", "Generating CSV file...", 85)
            csv_content = encode_csv(offers, SERVER_OFFER_COLUMNS)
            filename = offers_filename()
            self.artifacts.put(filename, csv_content)

            result = ScrapeResult(offers=offers, total=len(offers), csv_filename=filename)
            self._publish(
                session_id,
                "completed",
                f"Success! Found {len(offers)} car rental offers",
                100,
                result=result,
            )
            return result
        except SearchValidationError as e:
            log.warning("Session %s rejected: %s", session_id, e)
            self._publish(session_id, "error", str(e), 0)
        except Exception as e:
            log.exception("Scraping error in session %s", session_id)
            self._fail(session_id, e)
        return None

    # --- bulk -----------------------------------------------------------------

    async def run_bulk(self, session_id: str, request: BulkScrapeRequest) -> Optional[ScrapeResult]:
        try:
            self._publish(session_id, "starting", "Initializing bulk search...", 0, current_day=0, total_days=0)
            if not request.location_id or not request.start_date or not request.end_date:
                raise SearchValidationError("Missing required fields")
            start = _require_date(request.start_date, "start")
            end = _require_date(request.end_date, "end")
            total_days = count_days(start, end)
            if total_days > MAX_BULK_DAYS:
                raise SearchValidationError(f"Maximum {MAX_BULK_DAYS} days allowed")

            location_id = str(request.location_id)
            rental_time = request.time or self.default_time

            self._publish(
                session_id, "running", "Connecting to EnjoyTravel...", 5, current_day=0, total_days=total_days
            )
            await self.warm_up()

            all_offers: List[Offer] = []
            failed_dates: List[str] = []
            for i in range(total_days):
                current = start + timedelta(days=i)
                date_str = current.isoformat()
                self._publish(
                    session_id,
                    "running",
                    f"Searching {date_str} (one-day rental)...",
                    10 + (i / total_days) * 85,
                    current_day=i + 1,
                    total_days=total_days,
                    current_date=date_str,
                )

                criteria = SearchCriteria(
                    location_id=location_id,
                    pickup_date=current,
                    dropoff_date=current,
                    pickup_time=rental_time,
                    dropoff_time=rental_time,
                )
                try:
                    offers = await self.collect_offers(criteria, rental_date=date_str)
                except ParseError as e:
                    log.error("Error parsing results for %s: %s", date_str, e)
                    failed_dates.append(date_str)
                except Exception as e:
                    log.error("Error searching %s: %s", date_str, e)
                    failed_dates.append(date_str)
                else:
                    log.info("%s: %s offers", date_str, len(offers))
                    all_offers.extend(offers)

                if i < total_days - 1:
                    await self._sleep(self.day_pause_seconds)

            self._publish(
                session_id,
                "running",
                "Generating CSV file...",
                95,
                current_day=total_days,
                total_days=total_days,
            )
            csv_content = encode_csv(all_offers, BULK_OFFER_COLUMNS)
            filename = bulk_filename(start, end)
            self.artifacts.put(filename, csv_content)
            log.info(
                "Bulk CSV stored: %s (%s offers from %s days, %s failed)",
                filename,
                len(all_offers),
                total_days,
                len(failed_dates),
            )

            result = ScrapeResult(
                offers=all_offers,
                total=len(all_offers),
                csv_filename=filename,
                total_days=total_days,
                failed_dates=failed_dates,
            )
            self._publish(
                session_id,
                "completed",
                f"Bulk search completed! Found {len(all_offers)} total offers",
                100,
                current_day=total_days,
                total_days=total_days,
                result=result,
            )
            return result
        except SearchValidationError as e:
            log.warning("Bulk session %s rejected: %s", session_id, e)
            self._publish(session_id, "error", str(e), 0)
        except Exception as e:
            log.exception("Bulk scraping error in session %s", session_id)
            self._fail(session_id, e)
        return None
