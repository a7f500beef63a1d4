# enjoytravel_scraper/config.py
import os
from datetime import date, timedelta
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

DEFAULT_BROWSERLESS_ENDPOINT = "https://production-sfo.browserless.io/stealth/bql"
DEFAULT_BASE_URL = "https://www.enjoytravel.com/en/car-hire"
DEFAULT_API_URL = "https://www.enjoytravel.com/api"
DEFAULT_SEARCH_SOURCE = "enjoy_google_brand"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    browserless_api_key: Optional[str] = None
    browserless_endpoint: str = DEFAULT_BROWSERLESS_ENDPOINT
    browserless_timeout: Optional[float] = None

    base_url: str = DEFAULT_BASE_URL
    api_url: str = DEFAULT_API_URL
    search_source: str = DEFAULT_SEARCH_SOURCE

    default_location_query: str = "Miami Airport"
    default_pickup: Optional[date] = None
    default_dropoff: Optional[date] = None
    default_time: str = "12:00"

    output_dir: str = "outputs"
    store_ttl_seconds: float = 6 * 60 * 60
    host: str = "127.0.0.1"
    port: int = 3000
    log_level: str = "INFO"

    def pickup_default(self) -> date:
        return self.default_pickup or date.today() + timedelta(days=7)

    def dropoff_default(self) -> date:
        return self.default_dropoff or self.pickup_default() + timedelta(days=7)


# env var -> Settings field
_ENV_FIELDS = {
    "BROWSERLESS_API_KEY": "browserless_api_key",
    "BROWSERLESS_ENDPOINT": "browserless_endpoint",
    "BROWSERLESS_TIMEOUT": "browserless_timeout",
    "ENJOYTRAVEL_BASE_URL": "base_url",
    "ENJOYTRAVEL_API_URL": "api_url",
    "ENJOYTRAVEL_SEARCH_SOURCE": "search_source",
    "DEFAULT_LOCATION_QUERY": "default_location_query",
    "DEFAULT_PICKUP": "default_pickup",
    "DEFAULT_DROPOFF": "default_dropoff",
    "DEFAULT_TIME": "default_time",
    "OUTPUT_DIR": "output_dir",
    "STORE_TTL_SECONDS": "store_ttl_seconds",
    "HOST": "host",
    "PORT": "port",
    "LOG_LEVEL": "log_level",
}


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from environment variables; blank values fall back to defaults."""
    env = os.environ if env is None else env
    values = {}
    for var, field in _ENV_FIELDS.items():
        raw = env.get(var)
        if raw is None or not str(raw).strip():
            continue
        values[field] = str(raw).strip()
    return Settings(**values)
