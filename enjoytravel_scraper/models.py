# enjoytravel_scraper/models.py
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any, Literal, Union
from datetime import date as Date

Number = Union[int, float]
RunStatus = Literal["idle", "starting", "running", "completed", "error"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SearchCriteria(BaseModel):
    model_config = ConfigDict(frozen=True)
    location_id: str
    pickup_date: Date
    dropoff_date: Date
    pickup_time: str
    dropoff_time: str


class Offer(CamelModel):
    rental_date: Optional[str] = None  # bulk runs only
    brand: Optional[str] = None
    car_type: Optional[str] = None
    vehicle_name: Optional[str] = None
    supplier: Optional[str] = None
    price: Optional[Number] = None
    currency: str = "USD"
    price_day_rate: Optional[Number] = None
    rating: Optional[Number] = None
    recommended: bool = False
    car_id: Optional[str] = None
    acriss_code: Optional[str] = None
    transmission: Optional[str] = None
    seats: Optional[Number] = None
    fuel_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True)
        if self.rental_date is None:
            data.pop("rentalDate")
        return data


class ScrapeResult(CamelModel):
    success: bool = True
    offers: List[Offer] = Field(default_factory=list)
    total: int = 0
    csv_filename: str
    total_days: Optional[int] = None
    failed_dates: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude={"offers"}, exclude_none=True)
        data["offers"] = [o.to_dict() for o in self.offers]
        return data


class ScrapeRun(CamelModel):
    status: RunStatus = "idle"
    message: str = "Waiting..."
    progress: int = Field(0, ge=0, le=100)
    current_day: Optional[int] = None
    total_days: Optional[int] = None
    current_date: Optional[str] = None
    result: Optional[ScrapeResult] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude={"result"}, exclude_none=True)
        if self.result is not None:
            data["result"] = self.result.to_dict()
        return data


# Request bodies are permissive: missing fields surface as an error state on the run.
class LocationSearchRequest(CamelModel):
    query: Optional[str] = None


class ScrapeRequest(CamelModel):
    location_id: Optional[Union[str, int]] = None
    pickup: Optional[str] = None
    dropoff: Optional[str] = None
    pickup_time: Optional[str] = None
    dropoff_time: Optional[str] = None


class BulkScrapeRequest(CamelModel):
    location_id: Optional[Union[str, int]] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    time: Optional[str] = None
