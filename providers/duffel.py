"""
providers/duffel.py

Duffel API helpers:
- Low-level HTTP wrappers (duffel_get, duffel_post)
- Offer request payload built from a validated FlightSearchQuery
- Offer-to-FlightOption mapping
- run_duffel_search: one offer request, offers listed, mapped and narrowed

All calls are blocking (requests). Async callers wrap them in asyncio.to_thread.
"""

import re
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from loguru import logger

from config import DUFFEL_API_BASE, DUFFEL_API_TOKEN, PROVIDER_TIMEOUT_SECONDS
from schemas.search import (
    FlightLeg,
    FlightOption,
    FlightSearchQuery,
    FlightSlice,
    MaxStops,
    TimeRange,
)


class ProviderError(RuntimeError):
    """A flight provider call failed (transport error or non-2xx response)."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


# =====================================================================
# SECTION: DURATION HELPERS
# =====================================================================

def parse_iso8601_duration(duration_str: Optional[str]) -> Optional[int]:
    """Parse ISO 8601 duration string (e.g., 'PT9H30M', 'P1DT2H') to minutes."""
    if not duration_str:
        return None
    match = re.match(r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?)?$", duration_str)
    if not match:
        return None
    days = int(match.group(1) or 0)
    hours = int(match.group(2) or 0)
    minutes = int(match.group(3) or 0)
    return days * 24 * 60 + hours * 60 + minutes


def _parse_iso(dt_str: Optional[str]) -> Optional[datetime]:
    if not dt_str:
        return None
    try:
        return datetime.fromisoformat(dt_str.replace("Z", "+00:00"))
    except ValueError:
        return None


# =====================================================================
# SECTION: LOW LEVEL HTTP HELPERS
# =====================================================================

def _duffel_token() -> str:
    token = (DUFFEL_API_TOKEN or "").strip()
    if not token:
        raise ProviderError("Duffel token is not configured")
    return token


def _headers() -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {_duffel_token()}",
        "Duffel-Version": "v2",
        "Content-Type": "application/json",
    }


def _unwrap(resp: requests.Response, method: str, path: str) -> Any:
    try:
        data = resp.json()
    except ValueError:
        data = {"raw": resp.text}

    request_id = (
        resp.headers.get("Request-Id")
        or resp.headers.get("Duffel-Request-Id")
        or resp.headers.get("X-Request-Id")
    )
    if resp.status_code >= 400:
        safe_body = (resp.text or "").replace("\n", "\\n").replace("\r", "\\r")
        logger.warning(
            f"[duffel] {method} {path} status={resp.status_code} "
            f"request_id={request_id} body={safe_body[:2000]}"
        )
        raise ProviderError(
            f"Duffel {method} {path} returned {resp.status_code}",
            status_code=resp.status_code,
            detail=data,
        )

    logger.debug(f"[duffel] {method} {path} status={resp.status_code} request_id={request_id}")

    if isinstance(data, dict) and "data" in data:
        return data["data"]
    return data


def duffel_post(path: str, payload: dict) -> Any:
    try:
        resp = requests.post(
            DUFFEL_API_BASE + path,
            headers=_headers(),
            json=payload,
            timeout=PROVIDER_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        raise ProviderError(f"Duffel request failed: {e}") from e
    return _unwrap(resp, "POST", path)


def duffel_get(path: str, params: Optional[dict] = None) -> Any:
    try:
        resp = requests.get(
            DUFFEL_API_BASE + path,
            headers=_headers(),
            params=params or {},
            timeout=PROVIDER_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        raise ProviderError(f"Duffel request failed: {e}") from e
    return _unwrap(resp, "GET", path)


def duffel_list_offers(offer_request_id: str, limit: int = 50) -> List[dict]:
    res = duffel_get(
        "/air/offers",
        params={"offer_request_id": offer_request_id, "limit": int(limit), "sort": "total_amount"},
    )
    if isinstance(res, list):
        return res
    return []


# =====================================================================
# SECTION: OFFER REQUEST
# =====================================================================

MAX_CONNECTIONS = {
    MaxStops.NON_STOP: 0,
    MaxStops.ONE_STOP_OR_FEWER: 1,
    MaxStops.TWO_OR_FEWER_STOPS: 2,
}


def _time_window(window: Optional[TimeRange]) -> Optional[Dict[str, str]]:
    if window is None:
        return None
    end = "23:59" if window.to >= 24 else f"{window.to:02d}:59"
    return {"from": f"{window.from_:02d}:00", "to": end}


def build_offer_request(query: FlightSearchQuery) -> Dict[str, Any]:
    slices: List[Dict[str, Any]] = []
    for seg in query.segments:
        s: Dict[str, Any] = {
            "origin": seg.origin,
            "destination": seg.destination,
            "departure_date": seg.departureDate.isoformat(),
        }
        dep_window = _time_window(seg.departureTimeRange)
        if dep_window:
            s["departure_time"] = dep_window
        arr_window = _time_window(seg.arrivalTimeRange)
        if arr_window:
            s["arrival_time"] = arr_window
        slices.append(s)

    payload: Dict[str, Any] = {
        "data": {
            "slices": slices,
            "passengers": [{"type": "adult"}],
            # Duffel expects: economy, premium_economy, business, first
            "cabin_class": query.seatType.value.lower(),
        }
    }
    max_connections = MAX_CONNECTIONS.get(query.stops)
    if max_connections is not None:
        payload["data"]["max_connections"] = max_connections
    return payload


# =====================================================================
# SECTION: OFFER MAPPING
# =====================================================================

def _map_slice(slice_json: dict, owner_code: Optional[str]) -> FlightSlice:
    legs: List[FlightLeg] = []
    for seg in slice_json.get("segments", []) or []:
        o = seg.get("origin", {}) or {}
        d = seg.get("destination", {}) or {}
        carrier = seg.get("marketing_carrier") or seg.get("operating_carrier") or {}
        legs.append(FlightLeg(
            airlineCode=(carrier.get("iata_code") or owner_code or "").upper(),
            airlineName=carrier.get("name"),
            flightNumber=seg.get("marketing_carrier_flight_number"),
            departureAirportCode=o.get("iata_code") or "",
            departureDateTime=_parse_iso(seg.get("departing_at")),
            arrivalAirportCode=d.get("iata_code") or "",
            arrivalDateTime=_parse_iso(seg.get("arriving_at")),
        ))

    duration = parse_iso8601_duration(slice_json.get("duration"))
    if duration is None and legs:
        duration = int((legs[-1].arrivalDateTime - legs[0].departureDateTime).total_seconds() // 60)

    return FlightSlice(
        stops=max(0, len(legs) - 1),
        durationMinutes=max(0, duration or 0),
        legs=legs,
    )


def map_duffel_offer_to_option(offer: dict) -> FlightOption:
    """Duffel total_amount is the total for all passengers; searches are for one adult."""
    owner = offer.get("owner", {}) or {}
    owner_code = owner.get("iata_code")

    return FlightOption(
        id=offer.get("id"),
        provider="duffel",
        totalPrice=float(offer.get("total_amount", 0) or 0),
        currency=offer.get("total_currency") or "USD",
        slices=[_map_slice(s, owner_code) for s in offer.get("slices", []) or []],
    )


def _within_query(option: FlightOption, query: FlightSearchQuery) -> bool:
    if query.priceLimit and option.totalPrice > query.priceLimit.amount:
        return False
    if query.airlines:
        codes = {leg.airlineCode for sl in option.slices for leg in sl.legs}
        if not codes & set(query.airlines):
            return False
    return True


# =====================================================================
# SECTION: SEARCH
# =====================================================================

def run_duffel_search(query: FlightSearchQuery, limit: int = 50) -> List[FlightOption]:
    """
    One offer request for the query, offers sorted by price (cheapest first).

    Transport and HTTP failures raise ProviderError. Offers that fail to map
    are logged and skipped.
    """
    seg = query.segments[0]
    logger.info(
        f"[duffel] search origin={seg.origin} dest={seg.destination} "
        f"dep={seg.departureDate} cabin={query.seatType.value} stops={query.stops.value}"
    )

    data = duffel_post("/air/offer_requests", build_offer_request(query))
    offer_request_id = (data or {}).get("id")
    if not offer_request_id:
        raise ProviderError("Duffel returned no offer_request_id")

    offers_json = duffel_list_offers(offer_request_id, limit=limit)
    if not offers_json:
        time.sleep(1.5)
        offers_json = duffel_list_offers(offer_request_id, limit=limit)

    results: List[FlightOption] = []
    for offer in offers_json:
        try:
            opt = map_duffel_offer_to_option(offer)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"[duffel] map error offer={offer.get('id')}: {e}")
            continue
        if _within_query(opt, query):
            results.append(opt)

    results.sort(key=lambda o: o.totalPrice)
    logger.info(f"[duffel] offers={len(offers_json)} kept={len(results)}")
    return results
