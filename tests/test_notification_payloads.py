import asyncio

from factories import NOW, FakeStore, make_alert, make_flight
from services.alert_fetcher import AlertWithFlights
from services.notification_payloads import (
    airport_label,
    build_daily_payload,
    build_price_drop_payload,
    describe_alert,
    seat_type_label,
)


class BrokenAirports(FakeStore):
    async def get_airport_by_iata(self, code):
        raise RuntimeError("airports table unavailable")


def store_with_airports():
    store = FakeStore()
    store.airports = {
        "SFO": {"iata": "SFO", "city": "San Francisco", "name": "San Francisco International", "country": "US"},
        "JFK": {"iata": "JFK", "city": "New York", "name": "John F. Kennedy International", "country": "US"},
    }
    return store


def test_airport_label():
    store = store_with_airports()
    assert asyncio.run(airport_label(store, "SFO")) == "San Francisco (SFO)"
    assert asyncio.run(airport_label(store, "LAX")) == "LAX"
    assert asyncio.run(airport_label(BrokenAirports(), "SFO")) == "SFO"


def test_seat_type_label():
    assert seat_type_label("PREMIUM_ECONOMY") == "Premium Economy"
    assert seat_type_label("FIRST") == "First"


def test_describe_alert_with_criteria():
    alert = make_alert(criteria={
        "class": "BUSINESS",
        "stops": "NONSTOP",
        "airlines": ["UA"],
        "price": 300,
    })
    descriptor = asyncio.run(describe_alert(alert, store_with_airports()))

    assert descriptor.id == "alert-1"
    assert descriptor.label == "San Francisco (SFO) to New York (JFK)"
    assert descriptor.seatType == "Business"
    assert descriptor.stops == "Nonstop"
    assert descriptor.airlines == ["UA"]
    assert descriptor.priceLimit.amount == 300
    assert descriptor.priceLimit.currency == "USD"


def test_describe_alert_without_criteria():
    descriptor = asyncio.run(describe_alert(make_alert(), FakeStore()))

    assert descriptor.origin == "SFO"
    assert descriptor.destination == "JFK"
    assert descriptor.seatType is None
    assert descriptor.priceLimit is None


def test_build_daily_payload_keeps_order():
    entries = [
        AlertWithFlights(alert=make_alert("a", origin="LAX", destination="ORD"), flights=[make_flight(180)]),
        AlertWithFlights(alert=make_alert("b"), flights=[make_flight(250), make_flight(200)]),
    ]
    payload = asyncio.run(build_daily_payload(entries, store_with_airports(), NOW))

    assert payload.type == "daily-price-update"
    assert payload.summaryDate == NOW.date()
    assert [s.alert.id for s in payload.alerts] == ["a", "b"]
    assert [f.totalPrice for f in payload.alerts[1].flights] == [250, 200]
    assert all(s.generatedAt == NOW for s in payload.alerts)


def test_build_price_drop_payload_sorts_cheapest_first():
    entry = AlertWithFlights(alert=make_alert(), flights=[make_flight(290), make_flight(240), make_flight(260)])
    payload = asyncio.run(build_price_drop_payload(entry, FakeStore(), NOW, previous_lowest_price=310))

    assert [f.totalPrice for f in payload.flights] == [240, 260, 290]
    assert payload.newLowestPrice.amount == 240
    assert payload.previousLowestPrice.amount == 310
    assert payload.detectedAt == NOW
