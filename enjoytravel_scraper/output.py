# enjoytravel_scraper/output.py
import logging
import math
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

from enjoytravel_scraper.models import Offer
from enjoytravel_scraper.utils import ensure_outputs_dir, filename_timestamp

log = logging.getLogger("output")

Column = Tuple[str, Callable[[Offer], Any]]


def _recommended(offer: Offer) -> str:
    return "Yes" if offer.recommended else "No"


_BASE_HEAD: List[Column] = [
    ("Brand", lambda o: o.brand),
    ("Car Type", lambda o: o.car_type),
    ("Vehicle Name", lambda o: o.vehicle_name),
    ("Supplier", lambda o: o.supplier),
    ("Price", lambda o: o.price),
    ("Currency", lambda o: o.currency),
    ("Price Per Day", lambda o: o.price_day_rate),
    ("Rating", lambda o: o.rating),
    ("Recommended", _recommended),
    ("Car ID", lambda o: o.car_id),
]
_BASE_TAIL: List[Column] = [
    ("Transmission", lambda o: o.transmission),
    ("Seats", lambda o: o.seats),
    ("Fuel Type", lambda o: o.fuel_type),
]

# one-shot CLI export
OFFER_COLUMNS: Sequence[Column] = tuple(_BASE_HEAD + _BASE_TAIL)
# server single-date export
SERVER_OFFER_COLUMNS: Sequence[Column] = tuple(_BASE_HEAD + [("ACRISS Code", lambda o: o.acriss_code)] + _BASE_TAIL)
# bulk export
BULK_OFFER_COLUMNS: Sequence[Column] = (("Rental Date", lambda o: o.rental_date),) + SERVER_OFFER_COLUMNS


def render_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def escape_csv_value(value: Any) -> str:
    s = render_value(value)
    if "," in s or '"' in s or "\n" in s:
        return '"' + s.replace('"', '""') + '"'
    return s


def encode_csv(records: Iterable[Offer], columns: Sequence[Column]) -> str:
    lines = [",".join(escape_csv_value(header) for header, _ in columns)]
    for record in records:
        lines.append(",".join(escape_csv_value(extract(record)) for _, extract in columns))
    return "\n".join(lines)


def offers_filename(now: Optional[datetime] = None) -> str:
    return f"enjoytravel-offers-{filename_timestamp(now)}.csv"


def bulk_filename(start: Union[date, str], end: Union[date, str], now: Optional[datetime] = None) -> str:
    start_s = start.isoformat() if isinstance(start, date) else start
    end_s = end.isoformat() if isinstance(end, date) else end
    return f"enjoytravel-bulk-{start_s}-to-{end_s}-{filename_timestamp(now)}.csv"


def write_csv(content: str, filename: str, directory: Union[str, Path] = "outputs") -> str:
    out = ensure_outputs_dir(directory)
    path = out / filename
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)
    log.info("CSV file saved: %s (%.2f KB)", path, len(content) / 1024)
    return str(path)
