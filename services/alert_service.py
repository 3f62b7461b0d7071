"""
services/alert_service.py

Alert engine:
- DailyAlertJob.run_for_user: one user's daily digest, end to end
- DailyAlertJob.notify_price_drop: one price drop email for one alert
- run_all_alerts_cycle: the cron entry point (called by run_alerts_cycle.py and the admin route)

Per-alert problems (bad filters, provider errors, AI failures) are absorbed
further down the pipeline. Store errors and malformed triggers propagate.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger

from alerts_email import NotificationDispatcher, SmtpEmailTransport
from clock import Clock, utc_now
from config import (
    DEDUPLICATION_HOURS,
    MAX_FLIGHTS_PER_ALERT,
    master_alerts_enabled,
    smtp_configured,
)
from providers.factory import parse_flight_filters_input, search_flights
from schemas.alerts import AlertStatus, AlertType
from services.alert_fetcher import AlertWithFlights, SearchFn, process_alerts
from services.alert_lifecycle import LifecycleManager
from services.alert_store import (
    DAILY_NOTIFICATION_TYPE,
    PRICE_DROP_NOTIFICATION_TYPE,
    AlertStore,
)
from services.email_service import build_default_pipeline
from services.notification_payloads import build_daily_payload, build_price_drop_payload
from services.store_protocol import AlertStoreProtocol


# =====================================================================
# SECTION: RESULT
# =====================================================================

@dataclass
class DailyRunResult:
    user_id: str
    # sent | skipped | failed
    status: str
    reason: Optional[str] = None
    alerts_considered: int = 0
    alerts_notified: int = 0
    expired_marked: int = 0
    message_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _skipped(user_id: str, reason: str, **extra) -> DailyRunResult:
    logger.info(f"[alerts] user={user_id} skipped: {reason}")
    return DailyRunResult(user_id=user_id, status="skipped", reason=reason, **extra)


# =====================================================================
# SECTION: JOB
# =====================================================================

class DailyAlertJob:
    def __init__(
        self,
        store: AlertStoreProtocol,
        dispatcher: NotificationDispatcher,
        search: SearchFn = search_flights,
        clock: Clock = utc_now,
        dedup_hours: int = DEDUPLICATION_HOURS,
        max_flights_per_alert: int = MAX_FLIGHTS_PER_ALERT,
        parse=parse_flight_filters_input,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.search = search
        self.clock = clock
        self.max_flights_per_alert = max_flights_per_alert
        self.parse = parse
        self.lifecycle = LifecycleManager(store, clock=clock, window_hours=dedup_hours)

    async def run_for_user(self, user_id: str, force_send: bool = False) -> DailyRunResult:
        if not user_id or not str(user_id).strip():
            raise ValueError("user_id is required")
        user_id = str(user_id).strip()
        now = self.clock()

        logger.info(f"[alerts] daily run START user={user_id} force_send={force_send}")

        if not force_send and await self.store.has_user_received_email_today(user_id, now):
            return _skipped(user_id, "already_sent_today")

        recipient = await self.store.get_user_contact(user_id)
        if recipient is None:
            return _skipped(user_id, "no_recipient")

        alerts = await self.store.get_alerts_by_user(user_id, AlertStatus.ACTIVE.value)
        daily = [a for a in alerts if a.type == AlertType.DAILY.value]
        if not daily:
            return _skipped(user_id, "no_daily_alerts")

        partition = self.lifecycle.partition_by_expiry(daily)
        expired_marked = await self.lifecycle.mark_expired(partition.expired)
        if not partition.active:
            return _skipped(user_id, "all_alerts_expired", expired_marked=expired_marked)

        eligible = await self.lifecycle.filter_unprocessed(partition.active)
        if not eligible:
            return _skipped(user_id, "all_recently_processed", expired_marked=expired_marked)

        matches = await process_alerts(
            eligible,
            self.search,
            now,
            max_flights_per_alert=self.max_flights_per_alert,
            parse=self.parse,
        )
        if not matches:
            return _skipped(
                user_id,
                "no_matching_flights",
                alerts_considered=len(eligible),
                expired_marked=expired_marked,
            )

        payload = await build_daily_payload(matches, self.store, now)
        delivery = await self.dispatcher.send(recipient, payload)

        if not delivery.success:
            logger.error(f"[alerts] user={user_id} daily email failed: {delivery.error}")
            return DailyRunResult(
                user_id=user_id,
                status="failed",
                reason="delivery_failed",
                alerts_considered=len(eligible),
                expired_marked=expired_marked,
                error=delivery.error,
            )

        notified_ids = [m.alert.id for m in matches]
        log_error = await self._record_sent(user_id, notified_ids, DAILY_NOTIFICATION_TYPE, now)

        logger.info(f"[alerts] daily run DONE user={user_id} notified={len(notified_ids)} message_id={delivery.message_id}")
        return DailyRunResult(
            user_id=user_id,
            status="sent",
            alerts_considered=len(eligible),
            alerts_notified=len(notified_ids),
            expired_marked=expired_marked,
            message_id=delivery.message_id,
            error=log_error,
        )

    async def _record_sent(
        self,
        user_id: str,
        alert_ids: List[str],
        notification_type: str,
        now: datetime,
    ) -> Optional[str]:
        """
        Write the notification log rows for an email that already went out.
        A store failure here is logged and returned, not raised: the run still counts as sent.
        """
        try:
            await self.store.record_notification(user_id, alert_ids, notification_type, sent_at=now)
        except Exception as e:
            logger.warning(f"[alerts] user={user_id} email sent but notification log write failed: {e}")
            return f"notification log write failed: {e}"
        return None

    async def notify_price_drop(
        self,
        user_id: str,
        alert_with_flights: AlertWithFlights,
        previous_lowest_price: Optional[float] = None,
    ) -> DailyRunResult:
        if not user_id or not str(user_id).strip():
            raise ValueError("user_id is required")
        if not alert_with_flights.flights:
            return _skipped(user_id, "no_matching_flights")

        recipient = await self.store.get_user_contact(user_id)
        if recipient is None:
            return _skipped(user_id, "no_recipient")

        now = self.clock()
        payload = await build_price_drop_payload(alert_with_flights, self.store, now, previous_lowest_price)
        delivery = await self.dispatcher.send(recipient, payload)

        if not delivery.success:
            logger.error(f"[alerts] user={user_id} price drop email failed: {delivery.error}")
            return DailyRunResult(user_id=user_id, status="failed", reason="delivery_failed", error=delivery.error)

        log_error = await self._record_sent(
            user_id, [alert_with_flights.alert.id], PRICE_DROP_NOTIFICATION_TYPE, now
        )
        return DailyRunResult(
            user_id=user_id,
            status="sent",
            alerts_considered=1,
            alerts_notified=1,
            message_id=delivery.message_id,
            error=log_error,
        )


def build_default_job() -> DailyAlertJob:
    dispatcher = NotificationDispatcher(build_default_pipeline(), SmtpEmailTransport())
    return DailyAlertJob(AlertStore(), dispatcher)


async def notify_price_drop(
    user_id: str,
    alert_with_flights: AlertWithFlights,
    previous_lowest_price: Optional[float] = None,
    job: Optional[DailyAlertJob] = None,
) -> DailyRunResult:
    job = job or build_default_job()
    return await job.notify_price_drop(user_id, alert_with_flights, previous_lowest_price)


# =====================================================================
# SECTION: ALERTS CYCLE (CRON ENTRY POINT)
# =====================================================================

async def run_all_alerts_cycle(job: Optional[DailyAlertJob] = None) -> List[DailyRunResult]:
    if not master_alerts_enabled():
        logger.info("[alerts] ALERTS_ENABLED is false, skipping alerts cycle")
        return []

    if not smtp_configured():
        logger.warning("[alerts] SMTP not fully configured, skipping alerts cycle")
        return []

    job = job or build_default_job()
    user_ids = await job.store.get_user_ids_with_active_daily_alerts(job.clock())
    logger.info(f"[alerts] running daily cycle for {len(user_ids)} users")

    results: List[DailyRunResult] = []
    for user_id in user_ids:
        try:
            results.append(await job.run_for_user(user_id))
        except Exception as e:
            logger.exception(f"[alerts] error processing user {user_id}: {e}")
            results.append(DailyRunResult(user_id=user_id, status="failed", reason="error", error=str(e)))

    sent = sum(1 for r in results if r.status == "sent")
    logger.info(f"[alerts] cycle complete users={len(results)} sent={sent}")
    return results
