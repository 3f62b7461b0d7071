from datetime import date
from unittest.mock import MagicMock, patch

import pytest
import requests

from providers import duffel
from providers.duffel import (
    ProviderError,
    build_offer_request,
    map_duffel_offer_to_option,
    parse_iso8601_duration,
    run_duffel_search,
)
from providers.factory import parse_flight_filters_input, run_provider_search
from schemas.search import FlightFiltersValidationError


def query(**overrides):
    raw = {
        "tripType": "ONE_WAY",
        "segments": [{"origin": "SFO", "destination": "JFK", "departureDate": "2025-06-06"}],
        "dateRange": {"from": "2025-06-06", "to": "2025-06-06"},
    }
    raw.update(overrides)
    return parse_flight_filters_input(raw)


def offer(offer_id, amount, carrier="UA", stops=0, currency="USD"):
    points = ["SFO"] + [f"X{i}" for i in range(stops)] + ["JFK"]
    segments = [
        {
            "origin": {"iata_code": a},
            "destination": {"iata_code": b},
            "departing_at": "2025-06-06T08:00:00",
            "arriving_at": "2025-06-06T16:30:00",
            "marketing_carrier": {"iata_code": carrier, "name": f"{carrier} Airlines"},
            "marketing_carrier_flight_number": "100",
        }
        for a, b in zip(points, points[1:])
    ]
    return {
        "id": offer_id,
        "total_amount": str(amount),
        "total_currency": currency,
        "owner": {"iata_code": carrier},
        "slices": [{"duration": "PT5H30M", "segments": segments}],
    }


# =====================================================================
# parsing and payloads
# =====================================================================

def test_parse_iso8601_duration():
    assert parse_iso8601_duration("PT9H30M") == 570
    assert parse_iso8601_duration("PT45M") == 45
    assert parse_iso8601_duration("P1DT2H") == 1560
    assert parse_iso8601_duration("nonsense") is None
    assert parse_iso8601_duration(None) is None


def test_parse_rejects_same_endpoints_and_past_dates():
    with pytest.raises(FlightFiltersValidationError) as exc:
        parse_flight_filters_input({
            "segments": [{"origin": "SFO", "destination": "SFO", "departureDate": "2025-06-06"}],
            "dateRange": {"from": "2025-06-06", "to": "2025-06-06"},
        })
    assert exc.value.issues

    with pytest.raises(FlightFiltersValidationError):
        parse_flight_filters_input(
            {
                "segments": [{"origin": "SFO", "destination": "JFK", "departureDate": "2025-06-01"}],
                "dateRange": {"from": "2025-06-01", "to": "2025-06-01"},
            },
            today=date(2025, 6, 5),
        )


def test_build_offer_request():
    q = query(
        seatType="PREMIUM_ECONOMY",
        stops="ONE_STOP_OR_FEWER",
        segments=[{
            "origin": "SFO",
            "destination": "JFK",
            "departureDate": "2025-06-06",
            "departureTimeRange": {"from": 6, "to": 24},
        }],
    )
    data = build_offer_request(q)["data"]

    assert data["cabin_class"] == "premium_economy"
    assert data["max_connections"] == 1
    assert data["passengers"] == [{"type": "adult"}]
    assert data["slices"][0]["departure_time"] == {"from": "06:00", "to": "23:59"}
    assert "arrival_time" not in data["slices"][0]


def test_build_offer_request_any_stops_has_no_connection_limit():
    assert "max_connections" not in build_offer_request(query())["data"]


def test_map_offer():
    option = map_duffel_offer_to_option(offer("off_1", "249.50", stops=1))

    assert option.provider == "duffel"
    assert option.totalPrice == 249.5
    assert option.slices[0].stops == 1
    assert option.slices[0].durationMinutes == 330
    assert option.slices[0].legs[0].airlineCode == "UA"


# =====================================================================
# run_duffel_search
# =====================================================================

def test_search_filters_and_sorts():
    offers = [
        offer("off_a", 400),
        offer("off_b", 180, carrier="DL"),
        offer("off_c", 220),
        {"id": "off_broken", "total_amount": "10", "slices": [{"segments": [{"origin": {}}]}]},
    ]
    q = query(airlines=["UA"], priceLimit={"amount": 300})

    with patch.object(duffel, "duffel_post", return_value={"id": "orq_1"}) as post, \
            patch.object(duffel, "duffel_list_offers", return_value=offers):
        results = run_duffel_search(q)

    assert [o.id for o in results] == ["off_c"]
    post.assert_called_once()


def test_search_retries_empty_offer_list_once():
    list_offers = MagicMock(side_effect=[[], [offer("off_a", 200)]])
    with patch.object(duffel, "duffel_post", return_value={"id": "orq_1"}), \
            patch.object(duffel, "duffel_list_offers", list_offers), \
            patch.object(duffel.time, "sleep") as sleep:
        results = run_duffel_search(query())

    assert [o.id for o in results] == ["off_a"]
    assert list_offers.call_count == 2
    sleep.assert_called_once()


def test_search_without_offer_request_id_fails():
    with patch.object(duffel, "duffel_post", return_value={}):
        with pytest.raises(ProviderError):
            run_duffel_search(query())


# =====================================================================
# HTTP helpers
# =====================================================================

def test_http_error_raises_provider_error():
    resp = MagicMock(status_code=422, text='{"errors": []}', headers={"Request-Id": "req_1"})
    resp.json.return_value = {"errors": []}

    with patch.object(duffel, "DUFFEL_API_TOKEN", "duffel_test_token"), \
            patch.object(duffel.requests, "post", return_value=resp):
        with pytest.raises(ProviderError) as exc:
            duffel.duffel_post("/air/offer_requests", {})

    assert exc.value.status_code == 422


def test_transport_error_raises_provider_error():
    with patch.object(duffel, "DUFFEL_API_TOKEN", "duffel_test_token"), \
            patch.object(duffel.requests, "get", side_effect=requests.ConnectionError("down")):
        with pytest.raises(ProviderError):
            duffel.duffel_get("/air/offers")


def test_missing_token_raises_provider_error():
    with patch.object(duffel, "DUFFEL_API_TOKEN", None):
        with pytest.raises(ProviderError):
            duffel.duffel_get("/air/offers")


def test_successful_response_is_unwrapped():
    resp = MagicMock(status_code=200, text="", headers={})
    resp.json.return_value = {"data": [{"id": "off_1"}]}

    with patch.object(duffel, "DUFFEL_API_TOKEN", "duffel_test_token"), \
            patch.object(duffel.requests, "get", return_value=resp) as get:
        offers = duffel.duffel_list_offers("orq_1", limit=5)

    assert offers == [{"id": "off_1"}]
    assert get.call_args.kwargs["params"]["offer_request_id"] == "orq_1"


def test_unknown_provider():
    with pytest.raises(ProviderError):
        run_provider_search(query(), provider="skyscanner")
