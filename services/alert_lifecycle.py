"""
services/alert_lifecycle.py

Expiry and dedup rules applied before an alert is searched:
- alerts whose alert_end has passed are marked completed (one-way)
- alerts notified within the dedup window are held back for this pass
"""

import asyncio
from datetime import datetime
from typing import List, NamedTuple, Optional

from loguru import logger

from clock import Clock, utc_now
from config import DEDUPLICATION_HOURS
from schemas.alerts import AlertRecord, AlertStatus
from services.store_protocol import AlertStoreProtocol


class ExpiryPartition(NamedTuple):
    active: List[AlertRecord]
    expired: List[AlertRecord]


def is_expired(alert: AlertRecord, now: datetime) -> bool:
    return alert.alert_end is not None and alert.alert_end <= now


def partition_by_expiry(alerts: List[AlertRecord], now: datetime) -> ExpiryPartition:
    active: List[AlertRecord] = []
    expired: List[AlertRecord] = []
    for alert in alerts:
        (expired if is_expired(alert, now) else active).append(alert)
    return ExpiryPartition(active=active, expired=expired)


async def mark_expired(expired: List[AlertRecord], store: AlertStoreProtocol) -> int:
    """Mark each alert completed. Failures are logged, never raised. Returns the success count."""
    if not expired:
        return 0

    results = await asyncio.gather(
        *(store.update_alert(a.id, {"status": AlertStatus.COMPLETED.value}) for a in expired),
        return_exceptions=True,
    )

    updated = 0
    for alert, result in zip(expired, results):
        if isinstance(result, BaseException):
            logger.error(f"[alerts] failed to mark alert {alert.id} completed: {result}")
            continue
        updated += 1

    logger.info(f"[alerts] marked {updated}/{len(expired)} expired alerts completed")
    return updated


async def filter_unprocessed(
    alerts: List[AlertRecord],
    store: AlertStoreProtocol,
    window_hours: int = DEDUPLICATION_HOURS,
    now: Optional[datetime] = None,
) -> List[AlertRecord]:
    """Keep alerts with no notification inside the window. A failing check excludes its alert."""
    if not alerts:
        return []

    checks = await asyncio.gather(
        *(store.has_alert_been_processed_recently(a.id, window_hours, now) for a in alerts),
        return_exceptions=True,
    )

    kept: List[AlertRecord] = []
    for alert, processed in zip(alerts, checks):
        if isinstance(processed, BaseException):
            logger.warning(f"[alerts] dedup check failed for alert {alert.id}, skipping this pass: {processed}")
            continue
        if processed:
            logger.info(f"[alerts] alert {alert.id} notified within {window_hours}h, skipping")
            continue
        kept.append(alert)
    return kept


class LifecycleManager:
    def __init__(self, store: AlertStoreProtocol, clock: Clock = utc_now, window_hours: int = DEDUPLICATION_HOURS):
        self.store = store
        self.clock = clock
        self.window_hours = window_hours

    def partition_by_expiry(self, alerts: List[AlertRecord]) -> ExpiryPartition:
        return partition_by_expiry(alerts, self.clock())

    async def mark_expired(self, expired: List[AlertRecord]) -> int:
        return await mark_expired(expired, self.store)

    async def has_been_processed_recently(self, alert_id: str) -> bool:
        return await self.store.has_alert_been_processed_recently(alert_id, self.window_hours, self.clock())

    async def filter_unprocessed(self, alerts: List[AlertRecord]) -> List[AlertRecord]:
        return await filter_unprocessed(alerts, self.store, self.window_hours, self.clock())

    async def select_eligible(self, alerts: List[AlertRecord]) -> List[AlertRecord]:
        """Partition, mark expired alerts completed (best effort), then drop recently notified ones."""
        partition = self.partition_by_expiry(alerts)
        if partition.expired:
            await self.mark_expired(partition.expired)
        return await self.filter_unprocessed(partition.active)
