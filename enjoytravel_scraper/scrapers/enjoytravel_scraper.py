# enjoytravel_scraper/scrapers/enjoytravel_scraper.py
import logging
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import urlencode

from enjoytravel_scraper.config import Settings
from enjoytravel_scraper.models import SearchCriteria
from enjoytravel_scraper.scrapers.browserql import BrowserQLClient
from enjoytravel_scraper.scrapers.payload import decode_json_payload

log = logging.getLogger("enjoytravel")

WARMUP_MUTATION = """mutation WarmupSession($url: String!) {
  goto(url: $url, waitUntil: networkIdle) {
    status
    time
  }
}"""

# Navigates the warmed browser to a JSON endpoint and reads what it rendered.
FETCH_TEXT_MUTATION = """mutation FetchBodyText($url: String!) {
  goto(url: $url, waitUntil: networkIdle) {
    status
  }
  body: text(selector: "body") {
    text
  }
}"""


class Executor(Protocol):
    async def execute_async(
        self,
        document: str,
        variables: Optional[Dict[str, Any]] = None,
        operation_name: Optional[str] = None,
    ) -> Any:
        ...


def _body_text(data: Any, default: str) -> str:
    body = data.get("body") if isinstance(data, dict) else None
    text = body.get("text") if isinstance(body, dict) else None
    return text if isinstance(text, str) and text else default


class EnjoyTravelScraper:
    def __init__(
        self,
        executor: Executor,
        base_url: str,
        api_url: str,
        search_source: str = "enjoy_google_brand",
    ):
        self.executor = executor
        self.base_url = base_url
        self.api_url = api_url.rstrip("/")
        self.search_source = search_source

    @classmethod
    def from_settings(cls, settings: Settings, executor: Optional[Executor] = None) -> "EnjoyTravelScraper":
        return cls(
            executor=executor or BrowserQLClient.from_settings(settings),
            base_url=settings.base_url,
            api_url=settings.api_url,
            search_source=settings.search_source,
        )

    def build_location_url(self, query: str) -> str:
        return f"{self.api_url}/location/search-locations?{urlencode({'query': query, 'lang': 'en'})}"

    def build_search_url(self, criteria: SearchCriteria) -> str:
        params = {
            "source": self.search_source,
            "plocation": criteria.location_id,
            "dlocation": criteria.location_id,
            "pdate": criteria.pickup_date.isoformat(),
            "ddate": criteria.dropoff_date.isoformat(),
            "ptime": criteria.pickup_time,
            "dtime": criteria.dropoff_time,
            "old": "true",
        }
        return f"{self.api_url}/search?{urlencode(params)}"

    async def warm_session(self) -> Any:
        """Open the car-hire page so the bot challenge resolves before hitting the APIs."""
        log.info("Opening %s and waiting for network idle", self.base_url)
        return await self.executor.execute_async(WARMUP_MUTATION, {"url": self.base_url}, "WarmupSession")

    async def fetch_text(self, url: str, default: str) -> str:
        data = await self.executor.execute_async(FETCH_TEXT_MUTATION, {"url": url}, "FetchBodyText")
        return _body_text(data, default)

    async def fetch_location_text(self, query: str) -> str:
        return await self.fetch_text(self.build_location_url(query), "[]")

    async def search_locations(self, query: str) -> List[Any]:
        text = await self.fetch_location_text(query)
        locations = decode_json_payload(text, "location response")
        if not isinstance(locations, list):
            log.warning("Location lookup for %r returned %s instead of a list", query, type(locations).__name__)
            return []
        return locations

    async def fetch_search_text(self, criteria: SearchCriteria) -> str:
        url = self.build_search_url(criteria)
        log.info("Search API URL: %s", url)
        return await self.fetch_text(url, "{}")
