"""
providers/factory.py

Validates raw search input and routes search calls to the configured provider
(FLIGHT_PROVIDER env var).

Currently supported values:
  duffel: Duffel API (default, production)

To switch providers without code changes:
  dokku config:set flightalerts FLIGHT_PROVIDER=duffel
"""

import asyncio
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from config import FLIGHT_PROVIDER
from providers.duffel import ProviderError
from schemas.search import FlightFiltersValidationError, FlightOption, FlightSearchQuery

__all__ = [
    "ProviderError",
    "parse_flight_filters_input",
    "run_provider_search",
    "search_flights",
]


def parse_flight_filters_input(
    raw: Dict[str, Any],
    today: Optional[date] = None,
) -> FlightSearchQuery:
    """
    Validate raw search input. Raises FlightFiltersValidationError with one
    issue per failing field. With `today` set, past departure dates are rejected.
    """
    context = {"today": today} if today is not None else None
    try:
        return FlightSearchQuery.model_validate(raw, context=context)
    except ValidationError as e:
        raise FlightFiltersValidationError.from_validation_error(e) from e


def run_provider_search(query: FlightSearchQuery, provider: Optional[str] = None) -> List[FlightOption]:
    """Blocking entry point. Unknown providers raise ProviderError."""
    provider = (provider or FLIGHT_PROVIDER or "duffel").lower().strip()

    if provider == "duffel":
        from providers.duffel import run_duffel_search
        return run_duffel_search(query)

    raise ProviderError(f"Unknown flight provider: {provider}")


async def search_flights(query: FlightSearchQuery) -> List[FlightOption]:
    return await asyncio.to_thread(run_provider_search, query)
