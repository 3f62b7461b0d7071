"""
services/notification_payloads.py

Builds email payloads from alerts and their matching flights.
Airport labels ("San Francisco (SFO)") come from the airports table; a failed
or empty lookup falls back to the raw code.
"""

import asyncio
from datetime import datetime
from typing import List, Optional

from loguru import logger

from schemas.alerts import AlertRecord
from schemas.notifications import (
    AlertDescriptor,
    DailyAlertSummary,
    DailyPriceUpdateEmail,
    PriceAmount,
    PriceDropAlertEmail,
)
from services.alert_fetcher import AlertWithFlights
from services.store_protocol import AlertStoreProtocol

STOPS_LABELS = {
    "NONSTOP": "Nonstop",
    "ONE_STOP": "1 stop max",
    "TWO_STOPS": "2 stops max",
}


async def airport_label(store: AlertStoreProtocol, code: str) -> str:
    try:
        airport = await store.get_airport_by_iata(code)
    except Exception as e:
        logger.warning(f"[alerts] airport lookup failed for {code}: {e}")
        return code
    if not airport:
        return code
    return f"{airport['city']} ({airport['iata']})"


def seat_type_label(seat_class: str) -> str:
    """PREMIUM_ECONOMY -> Premium Economy"""
    return " ".join(word[:1] + word[1:].lower() for word in seat_class.split("_"))


async def describe_alert(alert: AlertRecord, store: AlertStoreProtocol) -> AlertDescriptor:
    route = alert.filters.route
    criteria = alert.filters.filters

    origin, destination = await asyncio.gather(
        airport_label(store, route.from_),
        airport_label(store, route.to),
    )

    descriptor = AlertDescriptor(
        id=alert.id,
        label=f"{origin} to {destination}",
        origin=origin,
        destination=destination,
    )
    if criteria is None:
        return descriptor

    if criteria.seat_class:
        descriptor.seatType = seat_type_label(criteria.seat_class)
    if criteria.stops:
        descriptor.stops = STOPS_LABELS.get(criteria.stops.upper(), "Any stops")
    if criteria.airlines:
        descriptor.airlines = list(criteria.airlines)
    if criteria.price:
        descriptor.priceLimit = PriceAmount(amount=criteria.price, currency="USD")
    return descriptor


async def build_daily_payload(
    alerts_with_flights: List[AlertWithFlights],
    store: AlertStoreProtocol,
    now: datetime,
) -> DailyPriceUpdateEmail:
    descriptors = await asyncio.gather(*(describe_alert(a.alert, store) for a in alerts_with_flights))
    return DailyPriceUpdateEmail(
        summaryDate=now.date(),
        alerts=[
            DailyAlertSummary(alert=descriptor, flights=entry.flights, generatedAt=now)
            for descriptor, entry in zip(descriptors, alerts_with_flights)
        ],
    )


async def build_price_drop_payload(
    alert_with_flights: AlertWithFlights,
    store: AlertStoreProtocol,
    now: datetime,
    previous_lowest_price: Optional[float] = None,
) -> PriceDropAlertEmail:
    """Flights are ordered cheapest first; the cheapest one sets the new lowest price."""
    flights = sorted(alert_with_flights.flights, key=lambda f: f.totalPrice)
    descriptor = await describe_alert(alert_with_flights.alert, store)

    new_lowest = None
    if flights:
        new_lowest = PriceAmount(amount=flights[0].totalPrice, currency=flights[0].currency)

    previous = None
    if previous_lowest_price is not None:
        previous = PriceAmount(amount=previous_lowest_price, currency=new_lowest.currency if new_lowest else "USD")

    return PriceDropAlertEmail(
        alert=descriptor,
        flights=flights,
        detectedAt=now,
        previousLowestPrice=previous,
        newLowestPrice=new_lowest,
    )
