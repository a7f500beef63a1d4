# enjoytravel_scraper/utils.py
from dateutil import parser as dateparser
from datetime import datetime, date, timezone
from pathlib import Path
from typing import Optional, Union


def parse_date_fuzzy(s) -> Optional[date]:
    if not s:
        return None
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    try:
        dt = dateparser.parse(str(s), fuzzy=True)
        return dt.date() if isinstance(dt, datetime) else dt
    except Exception:
        return None


def parse_date_strict(s) -> Optional[date]:
    """ISO-8601 only; 'week 5' or 'next friday' come back as None."""
    if not s:
        return None
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    try:
        return dateparser.isoparse(str(s).strip()).date()
    except (ValueError, OverflowError):
        return None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_now():
    return utc_now().strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def filename_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with ':' and '.' replaced, milliseconds and zone dropped."""
    now = now or utc_now()
    return now.strftime("%Y-%m-%dT%H-%M-%S")


def ensure_outputs_dir(directory: Union[str, Path] = "outputs") -> Path:
    p = Path(directory)
    p.mkdir(parents=True, exist_ok=True)
    return p
