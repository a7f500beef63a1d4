# enjoytravel_scraper/store.py
"""In-memory stores shared by the API handlers and background scrape jobs."""
import logging
import time
from typing import Callable, Dict, Generic, List, Optional, Tuple, TypeVar
from urllib.parse import unquote

from enjoytravel_scraper.models import ScrapeRun

log = logging.getLogger("store")

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 6 * 60 * 60


class ExpiringStore(Generic[T]):
    """
    Mapping with a per-entry time-to-live.

    Expired entries are dropped lazily whenever the store is touched. Writes
    always replace the whole entry.
    """

    def __init__(self, ttl_seconds: Optional[float] = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, T]] = {}

    def _evict_expired(self) -> None:
        if not self.ttl_seconds:
            return
        now = self._clock()
        expired = [k for k, (stamp, _) in self._entries.items() if now - stamp > self.ttl_seconds]
        for k in expired:
            del self._entries[k]
        if expired:
            log.debug("%s evicted %s expired entries", type(self).__name__, len(expired))

    def _put(self, key: str, value: T) -> None:
        self._evict_expired()
        self._entries[key] = (self._clock(), value)

    def _get(self, key: str) -> Optional[T]:
        self._evict_expired()
        entry = self._entries.get(key)
        return entry[1] if entry else None

    def keys(self) -> List[str]:
        self._evict_expired()
        return list(self._entries)

    def __len__(self) -> int:
        return len(self.keys())


class ProgressStore(ExpiringStore[ScrapeRun]):
    def set(self, session_id: str, state: ScrapeRun) -> None:
        self._put(session_id, state)

    def get(self, session_id: str) -> ScrapeRun:
        return self._get(session_id) or ScrapeRun()


def _canonical(name: str) -> str:
    return unquote(name).casefold()


class CsvArtifactStore(ExpiringStore[str]):
    def put(self, filename: str, content: str) -> None:
        self._put(filename, content)
        log.info("CSV stored: %s (%s bytes, %s files in memory)", filename, len(content), len(self._entries))

    def get(self, filename: str) -> Optional[str]:
        return self._get(filename)

    def names(self) -> List[str]:
        return self.keys()

    def lookup(self, requested: str) -> Optional[Tuple[str, str]]:
        """Exact filename first, then one canonicalization pass (percent-decoding, case)."""
        content = self.get(requested)
        if content is not None:
            return requested, content
        wanted = _canonical(requested)
        for name in self.names():
            if _canonical(name) == wanted:
                return name, self._entries[name][1]
        return None
