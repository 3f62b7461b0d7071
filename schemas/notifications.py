"""schemas/notifications.py - Notification payloads, rendered emails and delivery results."""

from datetime import date, datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from schemas.search import FlightOption


class PriceAmount(BaseModel):
    amount: float
    currency: str = "USD"


class AlertDescriptor(BaseModel):
    """Human-readable view of an alert, as shown in emails."""

    id: Optional[str] = None
    label: str
    origin: str
    destination: str
    seatType: Optional[str] = None
    stops: Optional[str] = None
    airlines: Optional[List[str]] = None
    priceLimit: Optional[PriceAmount] = None


class DailyAlertSummary(BaseModel):
    alert: AlertDescriptor
    flights: List[FlightOption] = Field(default_factory=list)
    generatedAt: datetime


class DailyPriceUpdateEmail(BaseModel):
    type: Literal["daily-price-update"] = "daily-price-update"
    summaryDate: date
    alerts: List[DailyAlertSummary] = Field(default_factory=list)


class PriceDropAlertEmail(BaseModel):
    type: Literal["price-drop-alert"] = "price-drop-alert"
    alert: AlertDescriptor
    flights: List[FlightOption] = Field(default_factory=list)
    detectedAt: datetime
    previousLowestPrice: Optional[PriceAmount] = None
    newLowestPrice: Optional[PriceAmount] = None


NotificationEmailPayload = Annotated[
    Union[DailyPriceUpdateEmail, PriceDropAlertEmail],
    Field(discriminator="type"),
]


class Recipient(BaseModel):
    email: str
    name: Optional[str] = None


class RenderedEmail(BaseModel):
    subject: str
    html: str
    text: str


class OutgoingEmail(BaseModel):
    sender: str
    to: str
    subject: str
    html: str
    text: str


class DeliveryResult(BaseModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
