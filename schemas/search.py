"""schemas/search.py - Pydantic models for flight search queries and flight options."""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)


class TripType(str, Enum):
    ONE_WAY = "ONE_WAY"
    ROUND_TRIP = "ROUND_TRIP"


class SeatType(str, Enum):
    ECONOMY = "ECONOMY"
    PREMIUM_ECONOMY = "PREMIUM_ECONOMY"
    BUSINESS = "BUSINESS"
    FIRST = "FIRST"


class MaxStops(str, Enum):
    ANY = "ANY"
    NON_STOP = "NON_STOP"
    ONE_STOP_OR_FEWER = "ONE_STOP_OR_FEWER"
    TWO_OR_FEWER_STOPS = "TWO_OR_FEWER_STOPS"


class Currency(str, Enum):
    USD = "USD"


# =====================================================================
# SECTION: SEARCH QUERY
# =====================================================================

class TimeRange(BaseModel):
    """Hour-of-day window, inclusive on both ends."""

    model_config = ConfigDict(populate_by_name=True)

    from_: int = Field(0, alias="from", ge=0, le=23)
    to: int = Field(23, ge=0, le=24)

    @model_validator(mode="after")
    def _ordered(self):
        if self.from_ > self.to:
            raise ValueError("time range start must not be after its end")
        return self


class FlightSegmentInput(BaseModel):
    origin: str
    destination: str
    departureDate: date
    departureTimeRange: Optional[TimeRange] = None
    arrivalTimeRange: Optional[TimeRange] = None

    @field_validator("origin", "destination", mode="before")
    @classmethod
    def _airport_code(cls, v):
        if not isinstance(v, str):
            raise ValueError("airport code must be a string")
        code = v.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError("airport code must be 3 letters")
        return code

    @model_validator(mode="after")
    def _distinct_endpoints(self):
        if self.origin == self.destination:
            raise ValueError("origin and destination must differ")
        return self


class DateRange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: date = Field(..., alias="from")
    to: date

    @model_validator(mode="after")
    def _ordered(self):
        if self.from_ > self.to:
            raise ValueError("date range start must not be after its end")
        return self


class PriceLimit(BaseModel):
    amount: float = Field(..., gt=0)
    currency: Currency = Currency.USD


class FlightSearchQuery(BaseModel):
    """
    Validated search input handed to the provider.

    Pass {"today": date} in the validation context to reject departure
    dates that are already in the past.
    """

    tripType: TripType = TripType.ONE_WAY
    segments: List[FlightSegmentInput] = Field(..., min_length=1, max_length=2)
    dateRange: DateRange
    seatType: SeatType = SeatType.ECONOMY
    stops: MaxStops = MaxStops.ANY
    airlines: Optional[List[str]] = None
    priceLimit: Optional[PriceLimit] = None

    @field_validator("segments")
    @classmethod
    def _not_in_past(cls, v: List[FlightSegmentInput], info: ValidationInfo):
        today = (info.context or {}).get("today")
        if today is None:
            return v
        for seg in v:
            if seg.departureDate < today:
                raise ValueError(f"departure date {seg.departureDate.isoformat()} is in the past")
        return v

    @field_validator("airlines")
    @classmethod
    def _airline_codes(cls, v: Optional[List[str]]):
        if v is None:
            return v
        codes = [str(c).strip().upper() for c in v]
        for code in codes:
            if len(code) != 2 or not code.isalnum():
                raise ValueError(f"invalid airline code {code!r}")
        return codes

    @model_validator(mode="after")
    def _segments_match_trip_type(self):
        if self.tripType == TripType.ONE_WAY and len(self.segments) != 1:
            raise ValueError("one-way searches take exactly one segment")
        if self.tripType == TripType.ROUND_TRIP and len(self.segments) != 2:
            raise ValueError("round-trip searches take exactly two segments")
        return self


class FilterIssue(BaseModel):
    path: str
    message: str
    code: Optional[str] = None


class FlightFiltersValidationError(ValueError):
    """Raised when a search input fails validation. Carries one issue per failing field."""

    def __init__(self, issues: List[FilterIssue]):
        self.issues = issues
        summary = "; ".join(f"{i.path}: {i.message}" for i in issues) or "invalid flight filters"
        super().__init__(f"Invalid flight filters: {summary}")

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> "FlightFiltersValidationError":
        issues = [
            FilterIssue(
                path=".".join(str(p) for p in err.get("loc", ())) or "root",
                message=err.get("msg", ""),
                code=err.get("type"),
            )
            for err in exc.errors()
        ]
        return cls(issues)


# =====================================================================
# SECTION: FLIGHT OPTIONS
# =====================================================================

class FlightLeg(BaseModel):
    airlineCode: str
    airlineName: Optional[str] = None
    flightNumber: Optional[str] = None
    departureAirportCode: str
    departureDateTime: datetime
    arrivalAirportCode: str
    arrivalDateTime: datetime


class FlightSlice(BaseModel):
    stops: int = Field(0, ge=0)
    durationMinutes: int = 0
    legs: List[FlightLeg] = Field(default_factory=list)


class FlightOption(BaseModel):
    id: Optional[str] = None
    provider: Optional[str] = None

    totalPrice: float
    currency: str
    slices: List[FlightSlice] = Field(default_factory=list)
