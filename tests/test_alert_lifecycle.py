import asyncio
from datetime import datetime, timedelta, timezone

from factories import NOW, FakeStore, make_alert
from schemas.alerts import AlertUpdatePayload
from services.alert_lifecycle import (
    LifecycleManager,
    filter_unprocessed,
    mark_expired,
    partition_by_expiry,
)


def test_partition_by_expiry():
    open_ended = make_alert("a1")
    ends_now = make_alert("a2", alert_end=NOW)
    ended = make_alert("a3", alert_end=NOW - timedelta(days=1))
    ends_later = make_alert("a4", alert_end=NOW + timedelta(minutes=1))

    partition = partition_by_expiry([open_ended, ends_now, ended, ends_later], NOW)

    assert [a.id for a in partition.active] == ["a1", "a4"]
    assert [a.id for a in partition.expired] == ["a2", "a3"]


def test_partition_is_exhaustive_and_disjoint():
    alerts = [make_alert(f"a{i}", alert_end=NOW + timedelta(hours=i - 3)) for i in range(7)]
    partition = partition_by_expiry(alerts, NOW)

    ids = [a.id for a in partition.active] + [a.id for a in partition.expired]
    assert sorted(ids) == sorted(a.id for a in alerts)
    assert not {a.id for a in partition.active} & {a.id for a in partition.expired}


def test_mark_expired_counts_successes_and_swallows_failures():
    store = FakeStore()
    store.failing_updates.add("bad")
    expired = [make_alert("ok-1"), make_alert("bad"), make_alert("ok-2")]

    updated = asyncio.run(mark_expired(expired, store))

    assert updated == 2
    assert [u[0] for u in store.updates] == ["ok-1", "ok-2"]
    assert all(u[1] == {"status": "completed"} for u in store.updates)


def test_mark_expired_with_nothing_to_do():
    store = FakeStore()
    assert asyncio.run(mark_expired([], store)) == 0
    assert store.updates == []


def test_filter_unprocessed_drops_recent_and_failed_checks():
    store = FakeStore()
    store.processed.add("recent")
    store.failing_checks.add("broken")
    alerts = [make_alert("fresh"), make_alert("recent"), make_alert("broken"), make_alert("fresh-2")]

    kept = asyncio.run(filter_unprocessed(alerts, store, 23, NOW))

    assert [a.id for a in kept] == ["fresh", "fresh-2"]


def test_lifecycle_manager_select_eligible():
    store = FakeStore()
    store.processed.add("recent")
    alerts = [
        make_alert("expired", alert_end=NOW - timedelta(hours=1)),
        make_alert("recent"),
        make_alert("fresh"),
    ]
    manager = LifecycleManager(store, clock=lambda: NOW, window_hours=23)

    eligible = asyncio.run(manager.select_eligible(alerts))

    assert [a.id for a in eligible] == ["fresh"]
    assert store.updates == [("expired", {"status": "completed"})]


def test_lifecycle_manager_processed_recently_delegates():
    store = FakeStore()
    store.processed.add("a1")
    manager = LifecycleManager(store, clock=lambda: NOW)

    assert asyncio.run(manager.has_been_processed_recently("a1")) is True
    assert asyncio.run(manager.has_been_processed_recently("a2")) is False
    assert manager.window_hours == 23


def test_timezone_aware_alert_end_is_normalized():
    ended = make_alert("ended", alert_end=datetime(2025, 6, 1, tzinfo=timezone.utc))
    # 08:00 in UTC-02:00 is 10:00 UTC, an hour after NOW
    later = make_alert("later", alert_end=datetime(2025, 6, 5, 8, 0, tzinfo=timezone(timedelta(hours=-2))))

    assert ended.alert_end == datetime(2025, 6, 1)
    assert later.alert_end == datetime(2025, 6, 5, 10, 0)

    partition = partition_by_expiry([ended, later], NOW)

    assert [a.id for a in partition.active] == ["later"]
    assert [a.id for a in partition.expired] == ["ended"]


def test_update_payload_alert_end_is_naive_utc():
    patch = AlertUpdatePayload.model_validate({"alert_end": "2025-06-10T12:00:00Z"})
    assert patch.alert_end == datetime(2025, 6, 10, 12, 0)
