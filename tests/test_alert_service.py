import asyncio
from datetime import timedelta

import pytest

from factories import NOW, FakeStore, RecordingTransport, make_alert, make_flight, search_returning
from alerts_email import NotificationDispatcher
from schemas.notifications import DeliveryResult
from services import alert_service
from services.alert_fetcher import AlertWithFlights
from services.alert_service import DailyAlertJob, run_all_alerts_cycle
from services.email_service import EmailContentPipeline


def make_job(store, transport=None, flights=None):
    transport = transport or RecordingTransport()
    search = search_returning(flights if flights is not None else {"SFO-JFK": [make_flight(250)]})
    dispatcher = NotificationDispatcher(EmailContentPipeline(), transport, from_address="alerts@example.com")
    return DailyAlertJob(store, dispatcher, search=search, clock=lambda: NOW)


def store_with_user(*alerts):
    store = FakeStore()
    store.add_user("user-1")
    for alert in alerts:
        store.add_alert(alert)
    return store


def run(job, user_id="user-1", force_send=False):
    return asyncio.run(job.run_for_user(user_id, force_send=force_send))


# =====================================================================
# run_for_user
# =====================================================================

def test_daily_run_sends_and_records():
    store = store_with_user(make_alert(criteria={"dateFrom": "2025-06-01", "price": 300, "stops": "NONSTOP"}))
    transport = RecordingTransport()
    job = make_job(store, transport, {
        "SFO-JFK": [make_flight(250, stops=0), make_flight(280, stops=1), make_flight(350, stops=0)],
    })

    result = run(job)

    assert result.status == "sent"
    assert result.alerts_notified == 1
    assert result.message_id == "<msg-1@test>"
    assert store.records == [("user-1", ["alert-1"], "daily-price-update")]

    email = transport.sent[0]
    assert email.to == "Sam Traveler <traveler@example.com>"
    assert email.subject == "Daily update: June 5, 2025 alerts"
    assert "250 USD" in email.text
    assert "280 USD" not in email.text


def test_daily_run_requires_user_id():
    job = make_job(FakeStore())
    with pytest.raises(ValueError):
        run(job, user_id="  ")


def test_already_sent_today_is_skipped_unless_forced():
    store = store_with_user(make_alert())
    store.received_today.add("user-1")

    skipped = run(make_job(store))
    assert skipped.status == "skipped"
    assert skipped.reason == "already_sent_today"

    forced = run(make_job(store), force_send=True)
    assert forced.status == "sent"


def test_force_send_does_not_bypass_dedup():
    store = store_with_user(make_alert())
    store.processed.add("alert-1")

    result = run(make_job(store), force_send=True)

    assert result.reason == "all_recently_processed"
    assert store.records == []


def test_unknown_recipient_is_skipped():
    store = FakeStore()
    store.add_alert(make_alert())
    assert run(make_job(store)).reason == "no_recipient"


def test_only_daily_alerts_are_considered():
    store = store_with_user(make_alert(alert_type="price_drop"))
    assert run(make_job(store)).reason == "no_daily_alerts"


def test_expired_alerts_are_completed_and_not_searched():
    store = store_with_user(
        make_alert("old", alert_end=NOW - timedelta(days=1)),
        make_alert("live"),
    )
    job = make_job(store)

    result = run(job)

    assert result.status == "sent"
    assert result.expired_marked == 1
    assert store.updates == [("old", {"status": "completed"})]
    assert store.records == [("user-1", ["live"], "daily-price-update")]
    assert len(job.search.calls) == 1


def test_all_expired():
    store = store_with_user(make_alert(alert_end=NOW))
    result = run(make_job(store))

    assert result.reason == "all_alerts_expired"
    assert result.expired_marked == 1


def test_no_matching_flights_sends_nothing():
    store = store_with_user(make_alert(criteria={"price": 100}))
    transport = RecordingTransport()

    result = run(make_job(store, transport, {"SFO-JFK": [make_flight(250)]}))

    assert result.reason == "no_matching_flights"
    assert result.alerts_considered == 1
    assert transport.sent == []
    assert store.records == []


def test_only_alerts_with_matches_are_recorded():
    store = store_with_user(
        make_alert("a", origin="SFO", destination="JFK"),
        make_alert("b", origin="LAX", destination="ORD"),
    )
    job = make_job(store, flights={"SFO-JFK": [make_flight(250)], "LAX-ORD": RuntimeError("provider down")})

    result = run(job)

    assert result.alerts_considered == 2
    assert result.alerts_notified == 1
    assert store.records == [("user-1", ["a"], "daily-price-update")]


def test_failed_delivery_records_nothing():
    store = store_with_user(make_alert())
    transport = RecordingTransport(DeliveryResult(success=False, error="mailbox unavailable"))

    result = run(make_job(store, transport))

    assert result.status == "failed"
    assert result.reason == "delivery_failed"
    assert result.error == "mailbox unavailable"
    assert store.records == []


def test_result_to_dict():
    store = store_with_user(make_alert())
    data = run(make_job(store)).to_dict()
    assert data["user_id"] == "user-1"
    assert data["status"] == "sent"


# =====================================================================
# notify_price_drop
# =====================================================================

def test_price_drop_sends_and_records():
    store = store_with_user()
    transport = RecordingTransport()
    job = make_job(store, transport)
    entry = AlertWithFlights(alert=make_alert(alert_type="price_drop"), flights=[make_flight(260), make_flight(240)])

    result = asyncio.run(job.notify_price_drop("user-1", entry, previous_lowest_price=310))

    assert result.status == "sent"
    assert store.records == [("user-1", ["alert-1"], "price-drop-alert")]
    assert transport.sent[0].subject == "Price drop: SFO → JFK"
    assert "New low price $240.00 (was $310.00)" in transport.sent[0].text


def test_price_drop_without_flights_is_skipped():
    store = store_with_user()
    entry = AlertWithFlights(alert=make_alert(), flights=[])
    result = asyncio.run(make_job(store).notify_price_drop("user-1", entry))
    assert result.reason == "no_matching_flights"


# =====================================================================
# run_all_alerts_cycle
# =====================================================================

def test_cycle_disabled(monkeypatch):
    monkeypatch.setattr(alert_service, "master_alerts_enabled", lambda: False)
    assert asyncio.run(run_all_alerts_cycle(make_job(FakeStore()))) == []


def test_cycle_without_smtp(monkeypatch):
    monkeypatch.setattr(alert_service, "master_alerts_enabled", lambda: True)
    monkeypatch.setattr(alert_service, "smtp_configured", lambda: False)
    assert asyncio.run(run_all_alerts_cycle(make_job(FakeStore()))) == []


def test_cycle_isolates_user_failures(monkeypatch):
    monkeypatch.setattr(alert_service, "master_alerts_enabled", lambda: True)
    monkeypatch.setattr(alert_service, "smtp_configured", lambda: True)

    class FlakyStore(FakeStore):
        async def get_user_contact(self, user_id):
            if user_id == "user-1":
                raise RuntimeError("users table unavailable")
            return await super().get_user_contact(user_id)

    store = FlakyStore()
    store.add_user("user-2")
    store.add_alert(make_alert("a1", user_id="user-1"))
    store.add_alert(make_alert("a2", user_id="user-2"))

    results = asyncio.run(run_all_alerts_cycle(make_job(store)))

    assert [(r.user_id, r.status) for r in results] == [("user-1", "failed"), ("user-2", "sent")]
    assert "users table unavailable" in results[0].error


class LogWriteFailingStore(FakeStore):
    async def record_notification(self, user_id, alert_ids, notification_type="daily-price-update", sent_at=None):
        raise RuntimeError("notification_log insert failed")


def test_log_write_failure_after_send_still_reports_sent():
    store = LogWriteFailingStore()
    store.add_user("user-1")
    store.add_alert(make_alert())
    transport = RecordingTransport()

    result = run(make_job(store, transport))

    assert result.status == "sent"
    assert result.message_id == "<msg-1@test>"
    assert "notification_log insert failed" in result.error
    assert len(transport.sent) == 1


def test_price_drop_log_write_failure_still_reports_sent():
    store = LogWriteFailingStore()
    store.add_user("user-1")
    entry = AlertWithFlights(alert=make_alert(alert_type="price_drop"), flights=[make_flight(240)])

    result = asyncio.run(make_job(store).notify_price_drop("user-1", entry))

    assert result.status == "sent"
    assert result.error
