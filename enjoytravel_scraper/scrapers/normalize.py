# enjoytravel_scraper/scrapers/normalize.py
"""
Normalization of EnjoyTravel search responses into :class:`Offer` records.

The search API answers with one of several shapes. Each shape has its own
decoder that turns the response into a list of flat intermediate records;
the first decoder whose shape matches wins and shapes are never merged.
Every record is then mapped onto the canonical offer through a fixed
field-priority table. Nothing in here raises on missing or odd data.
"""
import logging
import math
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from enjoytravel_scraper.models import Offer

log = logging.getLogger("normalize")

Record = Dict[str, Any]
FLAT_LIST_KEYS = ("results", "Results", "cars", "Cars", "data", "vehicles")
# "1,234" or "1,234.50"; any other comma is a decimal comma and is rejected
GROUPED_NUMBER = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$")


def _as_record(value: Any) -> Record:
    return dict(value) if isinstance(value, Mapping) else {}


def _truthy(value: Any) -> bool:
    # JSON truthiness: null, false, 0, NaN and "" are absent, empty arrays and objects are not
    if isinstance(value, (Mapping, list, tuple)):
        return True
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def _first(*values: Any) -> Any:
    for v in values:
        if _truthy(v):
            return v
    return None


def _first_present(*values: Any) -> Any:
    for v in values:
        if v is not None:
            return v
    return None


def _dig(record: Mapping, *path: str) -> Any:
    cur: Any = record
    for key in path:
        if not isinstance(cur, Mapping):
            return None
        cur = cur.get(key)
    return cur


def as_number(value: Any) -> Optional[Union[int, float]]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Mapping):
        return as_number(value.get("amount"))
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) or math.isinf(value) else value
    if isinstance(value, str):
        cleaned = value.strip()
        if "," in cleaned:
            if not GROUPED_NUMBER.match(cleaned):
                return None
            cleaned = cleaned.replace(",", "")
        try:
            number = float(cleaned)
        except ValueError:
            return None
        if math.isnan(number) or math.isinf(number):
            return None
        return int(number) if number.is_integer() and "." not in cleaned else number
    return None


def as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (list, tuple)):
        return None
    if isinstance(value, Mapping):
        return as_text(value.get("name"))
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value)
    return text if text else None


# --- shape decoders ---------------------------------------------------------

def decode_products(raw: Mapping) -> Optional[List[Record]]:
    products = raw.get("products")
    if not isinstance(products, list):
        return None
    items = []
    for product in products:
        product = _as_record(product)
        vehicle = _first(product.get("listProduct"), product.get("referenceProduct"))
        if not isinstance(vehicle, Mapping):
            vehicle = product
        item = dict(vehicle)
        item.update(
            supplier=_first(product.get("supplierName"), vehicle.get("supplier")),
            rating=product.get("rating"),
            recommended=product.get("recommended"),
            price=_first(vehicle.get("price"), product.get("payNowPayTotal"), product.get("resultDisplayPrice")),
            carId=product.get("carId"),
            normalizedTypeName=_first(product.get("normalizedTypeName"), vehicle.get("vehicleCategoryName")),
        )
        items.append(item)
    return items


def decode_category_items(raw: Mapping) -> Optional[List[Record]]:
    categories = raw.get("categoryItems")
    if not isinstance(categories, list):
        return None
    items = []
    for category in categories:
        category = _as_record(category)
        item = _as_record(category.get("referenceProduct"))
        item["categoryName"] = category.get("categoryName")
        items.append(item)
    return items


def decode_flat_list(raw: Mapping) -> Optional[List[Record]]:
    for key in FLAT_LIST_KEYS:
        value = raw.get(key)
        if isinstance(value, list):
            return [_as_record(v) for v in value]
    return []


SHAPE_DECODERS: Sequence[Tuple[str, Callable[[Mapping], Optional[List[Record]]]]] = (
    ("products", decode_products),
    ("categoryItems", decode_category_items),
    ("flat", decode_flat_list),
)


def extract_items(raw: Any) -> Tuple[str, List[Record]]:
    """Return the matching shape tag and its intermediate records."""
    if not isinstance(raw, Mapping):
        return "empty", []
    for tag, decoder in SHAPE_DECODERS:
        items = decoder(raw)
        if items is not None:
            return tag, items
    return "empty", []


# --- canonical mapping ------------------------------------------------------

def record_to_offer(it: Mapping, rental_date: Optional[str] = None) -> Offer:
    price = it.get("price")
    return Offer(
        rental_date=rental_date,
        brand=as_text(_first(_dig(it, "vehicle", "make"), it.get("make"), it.get("brand"))),
        car_type=as_text(_first(
            it.get("normalizedTypeName"),
            it.get("vehicleCategoryName"),
            _dig(it, "vehicle", "category"),
            it.get("categoryName"),
            it.get("carType"),
            it.get("type"),
        )),
        vehicle_name=as_text(_first(_dig(it, "vehicle", "name"), it.get("name"), it.get("vehicleName"))),
        supplier=as_text(_first(it.get("supplier"), it.get("supplierName"), it.get("provider"))),
        price=as_number(_first_present(
            price,
            it.get("payNowPayTotal"),
            it.get("resultDisplayPrice"),
            it.get("totalPrice"),
            it.get("Price"),
            it.get("premiumPrice"),
        )),
        currency=as_text(_first(it.get("currency"), it.get("localCurrency"))) or "USD",
        price_day_rate=as_number(_first(it.get("priceDayRate"), it.get("premiumPriceDayRate"))),
        rating=as_number(_first(it.get("rating"))),
        recommended=_truthy(it.get("recommended")),
        car_id=as_text(_first(it.get("carId"))),
        acriss_code=as_text(_first(it.get("acrissCode"))),
        transmission=as_text(_first(it.get("transmission"))),
        seats=as_number(_first(it.get("seats"))),
        fuel_type=as_text(_first(it.get("fuelType"))),
    )


def normalize_offers(raw: Any, rental_date: Optional[str] = None) -> List[Offer]:
    shape, items = extract_items(raw)
    if not items:
        preview = raw if not isinstance(raw, Mapping) else sorted(raw.keys())
        log.warning("No offers found in search response (shape=%s, keys=%s)", shape, str(preview)[:300])
        return []
    log.debug("Decoded %s offers from %s shape", len(items), shape)
    return [record_to_offer(it, rental_date) for it in items]
