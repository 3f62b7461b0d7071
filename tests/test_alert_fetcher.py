import asyncio

from factories import NOW, make_alert, make_flight, search_returning
from providers.duffel import ProviderError
from services.alert_fetcher import fetch_flights_for_alert, group_alerts_by_route, process_alerts


def test_sfo_jfk_nonstop_under_300():
    alert = make_alert(criteria={"dateFrom": "2025-06-01", "price": 300, "stops": "NONSTOP"})
    search = search_returning({
        "SFO-JFK": [
            make_flight(250, stops=0),
            make_flight(280, stops=1),
            make_flight(350, stops=0),
        ],
    })

    results = asyncio.run(process_alerts([alert], search, NOW))

    assert len(results) == 1
    assert [f.totalPrice for f in results[0].flights] == [250]
    # Past start date was moved to tomorrow before searching
    assert str(search.calls[0].segments[0].departureDate) == "2025-06-06"


def test_one_failing_alert_does_not_affect_others():
    good = make_alert("good", origin="SFO", destination="JFK")
    bad = make_alert("bad", origin="LAX", destination="ORD")
    also_good = make_alert("also-good", origin="BOS", destination="MIA")
    search = search_returning({
        "SFO-JFK": [make_flight(200)],
        "LAX-ORD": ProviderError("Duffel returned 503", status_code=503),
        "BOS-MIA": [make_flight(150, origin="BOS", destination="MIA")],
    })

    results = asyncio.run(process_alerts([good, bad, also_good], search, NOW))

    assert [r.alert.id for r in results] == ["good", "also-good"]


def test_invalid_filters_exclude_the_alert():
    broken = make_alert("broken", origin="SFO", destination="SFO")
    fine = make_alert("fine")
    search = search_returning({"SFO-JFK": [make_flight(200)], "SFO-SFO": [make_flight(1)]})

    results = asyncio.run(process_alerts([broken, fine], search, NOW))

    assert [r.alert.id for r in results] == ["fine"]
    assert len(search.calls) == 1


def test_closed_window_is_skipped_without_searching():
    alert = make_alert(criteria={"dateFrom": "2025-05-01", "dateTo": "2025-05-31"})
    search = search_returning({"SFO-JFK": [make_flight(200)]})

    assert asyncio.run(fetch_flights_for_alert(alert, search, NOW)) is None
    assert search.calls == []


def test_cap_applies_before_criteria():
    alert = make_alert(criteria={"price": 100})
    # The only flight under 100 sits past the cap
    provider_results = [make_flight(150 + i) for i in range(5)] + [make_flight(90)]
    search = search_returning({"SFO-JFK": provider_results})

    flights = asyncio.run(fetch_flights_for_alert(alert, search, NOW, max_flights=5))

    assert flights == []


def test_alerts_without_matches_are_dropped_and_order_kept():
    a = make_alert("a", origin="SFO", destination="JFK")
    b = make_alert("b", origin="LAX", destination="ORD")
    c = make_alert("c", origin="SEA", destination="DEN")
    search = search_returning({
        "SFO-JFK": [make_flight(100)],
        "LAX-ORD": [],
        "SEA-DEN": [make_flight(120, origin="SEA", destination="DEN")],
    })

    results = asyncio.run(process_alerts([c, b, a], search, NOW))

    assert [r.alert.id for r in results] == ["c", "a"]


def test_empty_batch():
    search = search_returning({})
    assert asyncio.run(process_alerts([], search, NOW)) == []


def test_group_alerts_by_route():
    alerts = [
        make_alert("1", origin="SFO", destination="JFK"),
        make_alert("2", origin="LAX", destination="ORD"),
        make_alert("3", origin="SFO", destination="JFK"),
    ]
    groups = group_alerts_by_route(alerts)

    assert list(groups) == ["SFO-JFK", "LAX-ORD"]
    assert [a.id for a in groups["SFO-JFK"]] == ["1", "3"]


def test_zero_price_alert_is_still_searched():
    alert = make_alert(criteria={"price": 0})
    search = search_returning({"SFO-JFK": [make_flight(450)]})

    results = asyncio.run(process_alerts([alert], search, NOW))

    assert len(search.calls) == 1
    assert search.calls[0].priceLimit is None
    assert [f.totalPrice for f in results[0].flights] == [450]
