"""
services/email_context.py

Compact, JSON-ready summaries of notification payloads. These are what the
blueprint generator sees; they never include raw provider payloads.
"""

from typing import Any, Dict, List, Optional

from schemas.notifications import (
    AlertDescriptor,
    DailyAlertSummary,
    DailyPriceUpdateEmail,
    PriceDropAlertEmail,
)
from schemas.search import FlightOption

DAILY_FLIGHTS_PER_ALERT = 3
PRICE_DROP_FLIGHTS = 4


def _airlines(flights: List[FlightOption]) -> List[str]:
    seen: List[str] = []
    for flight in flights:
        for sl in flight.slices:
            for leg in sl.legs:
                code = leg.airlineCode or leg.airlineName
                if code and code not in seen:
                    seen.append(code)
    return seen


def summarize_flight(option: FlightOption) -> Dict[str, Any]:
    first_leg = option.slices[0].legs[0] if option.slices and option.slices[0].legs else None
    last_slice = option.slices[-1] if option.slices else None
    last_leg = last_slice.legs[-1] if last_slice and last_slice.legs else None

    return {
        "price": option.totalPrice,
        "currency": option.currency,
        "totalDurationMinutes": sum(sl.durationMinutes or 0 for sl in option.slices),
        "totalStops": sum(sl.stops for sl in option.slices),
        "airlines": _airlines([option]),
        "departure": {
            "airport": first_leg.departureAirportCode,
            "dateTime": first_leg.departureDateTime.isoformat(),
        } if first_leg else None,
        "arrival": {
            "airport": last_leg.arrivalAirportCode,
            "dateTime": last_leg.arrivalDateTime.isoformat(),
        } if last_leg else None,
    }


def _alert_view(alert: AlertDescriptor) -> Dict[str, Any]:
    return alert.model_dump(mode="json")


# =====================================================================
# SECTION: DAILY DIGEST
# =====================================================================

def _summarize_daily_alert(entry: DailyAlertSummary) -> Dict[str, Any]:
    flights = [summarize_flight(f) for f in entry.flights[:DAILY_FLIGHTS_PER_ALERT]]
    return {
        "alert": _alert_view(entry.alert),
        "generatedAt": entry.generatedAt.isoformat(),
        "flights": flights,
        "best": flights[0] if flights else None,
    }


def _daily_highlights(alerts: List[Dict[str, Any]]) -> List[str]:
    highlights: List[str] = []
    flights = [f for entry in alerts for f in entry["flights"]]
    if not flights:
        return highlights

    priced = sorted((f for f in flights if f["price"] > 0), key=lambda f: f["price"])
    if priced:
        top = priced[0]
        origin = (top["departure"] or {}).get("airport", "")
        destination = (top["arrival"] or {}).get("airport", "")
        highlights.append(f"Top deal: {top['price']:.0f} {top['currency']} from {origin} to {destination}")

    nonstop = sum(1 for f in flights if f["totalStops"] == 0)
    if nonstop > 0:
        highlights.append(f"{nonstop} nonstop options discovered today.")

    return highlights


def build_daily_digest_context(payload: DailyPriceUpdateEmail) -> Dict[str, Any]:
    alerts = [_summarize_daily_alert(entry) for entry in payload.alerts]
    return {
        "date": payload.summaryDate.isoformat(),
        "alerts": alerts,
        "highlights": _daily_highlights(alerts),
        "aggregateMetrics": {
            "alertCount": len(payload.alerts),
            "flightOptions": sum(len(entry["flights"]) for entry in alerts),
            "uniqueRoutes": len({f"{e.alert.origin}-{e.alert.destination}" for e in payload.alerts}),
        },
    }


# =====================================================================
# SECTION: PRICE DROP
# =====================================================================

def build_price_drop_context(payload: PriceDropAlertEmail) -> Dict[str, Any]:
    flights = [summarize_flight(f) for f in payload.flights[:PRICE_DROP_FLIGHTS]]
    lowest = flights[0] if flights else None

    previous: Optional[float] = payload.previousLowestPrice.amount if payload.previousLowestPrice else None
    current: Optional[float] = None
    if payload.newLowestPrice:
        current = payload.newLowestPrice.amount
    elif lowest:
        current = lowest["price"]

    savings = previous - current if previous and current else None
    savings_percent = round(savings / previous * 100, 1) if savings and previous else None

    currency = None
    if payload.newLowestPrice:
        currency = payload.newLowestPrice.currency
    elif payload.alert.priceLimit:
        currency = payload.alert.priceLimit.currency
    elif lowest:
        currency = lowest["currency"]

    return {
        "alert": _alert_view(payload.alert),
        "detectedAt": payload.detectedAt.isoformat(),
        "flights": flights,
        "priceDelta": {
            "previous": previous,
            "current": current,
            "currency": currency,
            "savings": savings,
            "savingsPercent": savings_percent,
        },
        "metrics": {
            "flightCount": len(payload.flights),
            "nonstopOptions": sum(
                1 for f in payload.flights if all(sl.stops == 0 for sl in f.slices)
            ),
            "airlinesCovered": len(_airlines(payload.flights)),
        },
    }
