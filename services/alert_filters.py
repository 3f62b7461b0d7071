"""
services/alert_filters.py

Two pure helpers that sit on either side of the flight search:

- translate_alert_filters: stored alert filters -> raw search input
- filter_flights_by_alert_criteria: provider results -> results that meet the alert criteria

The translator output is a plain dict in the search API's wire shape. It is
validated by providers.factory.parse_flight_filters_input before any search runs.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from loguru import logger

from schemas.alerts import AlertFilters
from schemas.search import Currency, FlightOption, MaxStops, SeatType, TripType


# =====================================================================
# SECTION: TIER MAPS
# =====================================================================

STOPS_TO_MAX_STOPS: Dict[str, MaxStops] = {
    "ANY": MaxStops.ANY,
    "NONSTOP": MaxStops.NON_STOP,
    "ONE_STOP": MaxStops.ONE_STOP_OR_FEWER,
    "TWO_STOPS": MaxStops.TWO_OR_FEWER_STOPS,
}

CLASS_TO_SEAT_TYPE: Dict[str, SeatType] = {
    "ECONOMY": SeatType.ECONOMY,
    "PREMIUM_ECONOMY": SeatType.PREMIUM_ECONOMY,
    "BUSINESS": SeatType.BUSINESS,
    "FIRST": SeatType.FIRST,
}

# None means no ceiling
STOPS_CEILING: Dict[str, Optional[int]] = {
    "NONSTOP": 0,
    "ONE_STOP": 1,
    "TWO_STOPS": 2,
    "ANY": None,
}


def map_stops(tier: Optional[str]) -> MaxStops:
    return STOPS_TO_MAX_STOPS.get((tier or "").upper(), MaxStops.ANY)


def map_seat_type(seat_class: Optional[str]) -> SeatType:
    return CLASS_TO_SEAT_TYPE.get((seat_class or "").upper(), SeatType.ECONOMY)


# =====================================================================
# SECTION: TRANSLATOR
# =====================================================================

def translate_alert_filters(
    alert_filters: AlertFilters,
    reference_now: datetime,
) -> Optional[Dict[str, Any]]:
    """
    Build the raw search input for an alert, or None when the alert's
    travel window has already closed.

    A start date in the past (or missing) is moved to tomorrow.
    """
    today: date = reference_now.date()
    tomorrow = today + timedelta(days=1)

    route = alert_filters.route
    criteria = alert_filters.filters

    date_from = criteria.dateFrom if criteria else None
    date_to = criteria.dateTo if criteria else None

    if date_to is not None and date_to < today:
        logger.info(
            f"[alerts] window closed for {route.key}: dateTo={date_to.isoformat()} "
            f"today={today.isoformat()}"
        )
        return None

    if date_from is None:
        start = tomorrow
    elif date_from < today:
        logger.info(
            f"[alerts] moving past start date for {route.key}: "
            f"{date_from.isoformat()} -> {tomorrow.isoformat()}"
        )
        start = tomorrow
    else:
        start = date_from

    segment: Dict[str, Any] = {
        "origin": route.from_,
        "destination": route.to,
        "departureDate": start.isoformat(),
    }
    if criteria and criteria.departureTimeRange:
        segment["departureTimeRange"] = dict(criteria.departureTimeRange)
    if criteria and criteria.arrivalTimeRange:
        segment["arrivalTimeRange"] = dict(criteria.arrivalTimeRange)

    end = date_to if date_to is not None else start

    search_input: Dict[str, Any] = {
        "tripType": TripType.ONE_WAY.value,
        "segments": [segment],
        "dateRange": {"from": start.isoformat(), "to": end.isoformat()},
        "seatType": map_seat_type(criteria.seat_class if criteria else None).value,
        "stops": map_stops(criteria.stops if criteria else None).value,
    }

    if criteria and criteria.airlines:
        search_input["airlines"] = list(criteria.airlines)

    # 0 or missing means no ceiling
    if criteria and criteria.price:
        search_input["priceLimit"] = {
            "amount": criteria.price,
            "currency": Currency.USD.value,
        }

    return search_input


# =====================================================================
# SECTION: RESULT FILTER
# =====================================================================

def _flight_airline_codes(flight: FlightOption) -> set:
    return {
        (leg.airlineCode or "").upper()
        for sl in flight.slices
        for leg in sl.legs
    }


def filter_flights_by_alert_criteria(
    flights: List[FlightOption],
    alert_filters: AlertFilters,
) -> List[FlightOption]:
    """Keep flights that satisfy every criterion on the alert. Order is preserved."""
    criteria = alert_filters.filters
    if criteria is None:
        return list(flights)

    allowed_airlines = {a.upper() for a in (criteria.airlines or [])}
    ceiling = STOPS_CEILING.get((criteria.stops or "ANY").upper())

    kept: List[FlightOption] = []
    for flight in flights:
        if criteria.price and flight.totalPrice > criteria.price:
            continue

        if allowed_airlines and not (_flight_airline_codes(flight) & allowed_airlines):
            continue

        if ceiling is not None and any(sl.stops > ceiling for sl in flight.slices):
            continue

        kept.append(flight)

    return kept
