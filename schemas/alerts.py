"""schemas/alerts.py - Pydantic models for stored alerts and their filter criteria."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clock import to_naive_utc


class AlertType(str, Enum):
    DAILY = "daily"
    ONE_TIME = "one_time"
    PRICE_DROP = "price_drop"


class AlertStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    DELETED = "deleted"


def _coerce_calendar_date(v: Any) -> Any:
    """'2025-06-01', '2025-06-01T08:00:00Z' and datetimes all collapse to a date."""
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if isinstance(v, str):
        return date.fromisoformat(v.strip()[:10])
    return v


class AlertRoute(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(..., alias="from")
    to: str

    @property
    def key(self) -> str:
        return f"{self.from_}-{self.to}"


class AlertCriteria(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    dateFrom: Optional[date] = None
    dateTo: Optional[date] = None

    # Hour windows, e.g. {"from": 6, "to": 12}. Validated when the search query is built.
    departureTimeRange: Optional[Dict[str, Any]] = None
    arrivalTimeRange: Optional[Dict[str, Any]] = None

    # Plain strings, so an unknown tier or cabin is defaulted by the translator
    # instead of failing the whole alert
    seat_class: Optional[str] = Field(None, alias="class")
    stops: Optional[str] = None
    airlines: Optional[List[str]] = None

    # Price ceiling, USD. 0 or missing means no ceiling
    price: Optional[float] = None

    @field_validator("dateFrom", "dateTo", mode="before")
    @classmethod
    def _calendar_date(cls, v):
        return _coerce_calendar_date(v)


class AlertFilters(BaseModel):
    route: AlertRoute
    filters: Optional[AlertCriteria] = None


class AlertRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: str = AlertType.DAILY.value
    status: AlertStatus = AlertStatus.ACTIVE
    filters: AlertFilters
    alert_end: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("alert_end", "created_at")
    @classmethod
    def _naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Compared against clock.utc_now(), which is naive UTC
        return to_naive_utc(v) if v is not None else None

    @property
    def route_key(self) -> str:
        return self.filters.route.key


class AlertUpdatePayload(BaseModel):
    status: Optional[AlertStatus] = None
    alert_end: Optional[datetime] = None

    @field_validator("alert_end")
    @classmethod
    def _naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v) if v is not None else None


class DailyRunRequest(BaseModel):
    userId: Optional[str] = None
    forceSend: bool = False
