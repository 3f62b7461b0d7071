"""
services/alert_fetcher.py

Runs the flight searches for a batch of alerts.

Each alert is translated, validated, searched, capped and narrowed on its own.
One alert failing (bad filters, provider error) never affects the others.
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

from loguru import logger

from config import MAX_FLIGHTS_PER_ALERT
from providers.factory import parse_flight_filters_input
from schemas.alerts import AlertRecord
from schemas.search import FlightFiltersValidationError, FlightOption, FlightSearchQuery
from services.alert_filters import filter_flights_by_alert_criteria, translate_alert_filters

SearchFn = Callable[[FlightSearchQuery], Awaitable[List[FlightOption]]]


@dataclass
class AlertWithFlights:
    alert: AlertRecord
    flights: List[FlightOption] = field(default_factory=list)


def group_alerts_by_route(alerts: List[AlertRecord]) -> Dict[str, List[AlertRecord]]:
    """Alerts keyed by 'FROM-TO', in first-seen order."""
    groups: Dict[str, List[AlertRecord]] = OrderedDict()
    for alert in alerts:
        groups.setdefault(alert.route_key, []).append(alert)
    return groups


async def fetch_flights_for_alert(
    alert: AlertRecord,
    search: SearchFn,
    now: datetime,
    max_flights: int = MAX_FLIGHTS_PER_ALERT,
    parse=parse_flight_filters_input,
) -> Optional[List[FlightOption]]:
    """
    Matching flights for one alert, or None when it was skipped or failed.

    The cap is applied to the provider's results before the alert criteria,
    so an alert can end up with fewer than max_flights matches.
    """
    search_input = translate_alert_filters(alert.filters, now)
    if search_input is None:
        return None

    try:
        query = parse(search_input, today=now.date())
        flights = await search(query)
    except FlightFiltersValidationError as e:
        logger.error(f"[alerts] invalid filters for alert {alert.id} ({alert.route_key})")
        for issue in e.issues:
            logger.error(f"[alerts]   {issue.path}: {issue.message} ({issue.code})")
        return None
    except Exception as e:
        logger.exception(f"[alerts] search failed for alert {alert.id} ({alert.route_key}): {e}")
        return None

    capped = list(flights or [])[:max_flights]
    return filter_flights_by_alert_criteria(capped, alert.filters)


async def process_alerts(
    alerts: List[AlertRecord],
    search: SearchFn,
    now: datetime,
    max_flights_per_alert: int = MAX_FLIGHTS_PER_ALERT,
    parse=parse_flight_filters_input,
) -> List[AlertWithFlights]:
    """Alerts with at least one matching flight, in input order."""
    if not alerts:
        return []

    groups = group_alerts_by_route(alerts)
    logger.info(
        f"[alerts] fetching flights for {len(alerts)} alerts across {len(groups)} routes: "
        + ", ".join(f"{k}({len(v)})" for k, v in groups.items())
    )

    results = await asyncio.gather(
        *(fetch_flights_for_alert(a, search, now, max_flights_per_alert, parse) for a in alerts),
        return_exceptions=True,
    )

    out: List[AlertWithFlights] = []
    for alert, flights in zip(alerts, results):
        if isinstance(flights, BaseException):
            logger.error(f"[alerts] fetch crashed for alert {alert.id}: {flights}")
            continue
        if not flights:
            continue
        out.append(AlertWithFlights(alert=alert, flights=flights))

    logger.info(f"[alerts] {len(out)}/{len(alerts)} alerts have matching flights")
    return out
