# enjoytravel_scraper/scrapers/browserql.py
import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode, urlparse, parse_qsl, urlunparse

import requests

from enjoytravel_scraper.config import Settings
from enjoytravel_scraper.errors import ConfigurationError, TransportError, ExecutionError

log = logging.getLogger("browserql")


class BrowserQLClient:
    """
    Thin client for the Browserless BrowserQL endpoint.

    Every call is a single attempt: callers decide whether a failure is fatal
    (single search) or skippable (one day of a bulk sweep).
    """

    def __init__(self, endpoint: str, api_key: Optional[str] = None, timeout: Optional[float] = None):
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "BrowserQLClient":
        return cls(
            endpoint=settings.browserless_endpoint,
            api_key=settings.browserless_api_key,
            timeout=settings.browserless_timeout,
        )

    def build_url(self) -> str:
        if not self.api_key:
            raise ConfigurationError("BROWSERLESS_API_KEY not set!")
        parsed = urlparse(self.endpoint)
        query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != "token"]
        query.append(("token", self.api_key))
        return urlunparse(parsed._replace(query=urlencode(query)))

    def execute(
        self,
        document: str,
        variables: Optional[Dict[str, Any]] = None,
        operation_name: Optional[str] = None,
    ) -> Any:
        url = self.build_url()
        payload: Dict[str, Any] = {"query": document}
        if variables:
            payload["variables"] = variables
        if operation_name:
            payload["operationName"] = operation_name

        log.debug("BrowserQL POST %s | operation=%s", self.endpoint, operation_name)
        r = requests.post(url, json=payload, headers={"Content-Type": "application/json"}, timeout=self.timeout)
        if r.status_code < 200 or r.status_code >= 300:
            log.error("BrowserQL request failed %s: %s", r.status_code, r.text[:300])
            raise TransportError(r.status_code, r.text)

        try:
            result = r.json()
        except ValueError as e:
            raise TransportError(r.status_code, f"invalid JSON body: {r.text[:300]}") from e
        if not isinstance(result, dict):
            raise TransportError(r.status_code, f"unexpected response body: {r.text[:300]}")
        if result.get("errors") is not None:
            log.error("BrowserQL returned errors: %s", result["errors"])
            raise ExecutionError(result["errors"])
        return result.get("data") or {}

    async def execute_async(
        self,
        document: str,
        variables: Optional[Dict[str, Any]] = None,
        operation_name: Optional[str] = None,
    ) -> Any:
        # requests blocks; keep the event loop free for progress polls
        return await asyncio.to_thread(self.execute, document, variables, operation_name)
