"""Shared fixtures: a scripted BrowserQL executor and wired-up stores."""

import json
from typing import Any, Callable, Dict, List, Optional

import pytest

from enjoytravel_scraper.orchestrator import SearchOrchestrator
from enjoytravel_scraper.scrapers.enjoytravel_scraper import EnjoyTravelScraper
from enjoytravel_scraper.store import CsvArtifactStore, ProgressStore

BASE_URL = "https://www.enjoytravel.com/en/car-hire"
API_URL = "https://www.enjoytravel.com/api"

PRODUCTS_RESPONSE = {
    "products": [
        {
            "listProduct": {
                "price": 42,
                "currency": "EUR",
                "acrissCode": "ECMR",
                "vehicle": {"make": "Toyota", "name": "Yaris", "category": "Economy"},
            },
            "supplierName": "Acme",
            "carId": "c1",
            "rating": 8.4,
            "recommended": True,
        },
        {
            "referenceProduct": {"make": "Ford", "vehicleCategoryName": "Compact", "seats": 5},
            "payNowPayTotal": 55.5,
            "supplierName": "Budget, Inc.",
            "carId": "c2",
        },
    ]
}


class FakeExecutor:
    """Answers BrowserQL calls from a per-URL script and records every call."""

    def __init__(self, responder: Optional[Callable[[str], Any]] = None):
        self.calls: List[Dict[str, Any]] = []
        self.responder = responder or (lambda url: {"body": {"text": json.dumps(PRODUCTS_RESPONSE)}})

    async def execute_async(self, document, variables=None, operation_name=None):
        url = (variables or {}).get("url", "")
        self.calls.append({"document": document, "url": url, "operation": operation_name})
        if operation_name == "WarmupSession":
            return {"goto": {"status": 200, "time": 1234}}
        result = self.responder(url)
        if isinstance(result, Exception):
            raise result
        return result

    @property
    def search_urls(self) -> List[str]:
        return [c["url"] for c in self.calls if "/api/search?" in c["url"]]


def body(payload: Any) -> Dict[str, Any]:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return {"body": {"text": text}}


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def scraper(executor):
    return EnjoyTravelScraper(executor=executor, base_url=BASE_URL, api_url=API_URL)


@pytest.fixture
def orchestrator(scraper):
    return SearchOrchestrator(
        scraper=scraper,
        progress=ProgressStore(),
        artifacts=CsvArtifactStore(),
        sleep=no_sleep,
    )
