"""
services/alert_store.py

SQLAlchemy-backed store used by the alert pipeline.

Each public method is async and runs its blocking session work in a worker
thread. Sessions are short-lived: one per call, via db.session_scope.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from loguru import logger
from pydantic import ValidationError

from clock import utc_now
from config import user_allows_alerts
from db import SessionLocal, session_scope
from models import Airport, Alert, AppUser, NotificationLog
from schemas.alerts import AlertRecord, AlertStatus, AlertType, AlertUpdatePayload
from schemas.notifications import Recipient

DAILY_NOTIFICATION_TYPE = "daily-price-update"
PRICE_DROP_NOTIFICATION_TYPE = "price-drop-alert"


class AlertStore:
    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    def _scope(self):
        return session_scope(self._session_factory)

    # =================================================================
    # SECTION: ALERTS
    # =================================================================

    def _get_alerts_by_user_sync(self, user_id: str, status: Optional[str]) -> List[AlertRecord]:
        with self._scope() as db:
            q = db.query(Alert).filter(Alert.user_id == user_id)
            if status:
                q = q.filter(Alert.status == status)
            rows = q.order_by(Alert.created_at.asc()).all()

            records: List[AlertRecord] = []
            for row in rows:
                try:
                    records.append(AlertRecord.model_validate(row))
                except ValidationError as e:
                    logger.warning(f"[alerts] skipping malformed alert id={row.id}: {e.error_count()} issue(s)")
            return records

    async def get_alerts_by_user(self, user_id: str, status: Optional[str] = None) -> List[AlertRecord]:
        if isinstance(status, AlertStatus):
            status = status.value
        return await asyncio.to_thread(self._get_alerts_by_user_sync, user_id, status)

    def _update_alert_sync(self, alert_id: str, patch: AlertUpdatePayload) -> Optional[AlertRecord]:
        with self._scope() as db:
            row = db.query(Alert).filter(Alert.id == alert_id).first()
            if not row:
                return None
            if patch.status is not None:
                row.status = patch.status.value
            if patch.alert_end is not None:
                row.alert_end = patch.alert_end
            row.updated_at = utc_now()
            db.flush()
            return AlertRecord.model_validate(row)

    async def update_alert(self, alert_id: str, patch: Any) -> Optional[AlertRecord]:
        """Apply a partial update. Returns the updated alert, or None if it does not exist."""
        if not isinstance(patch, AlertUpdatePayload):
            patch = AlertUpdatePayload.model_validate(patch)
        return await asyncio.to_thread(self._update_alert_sync, alert_id, patch)

    def _user_ids_with_active_daily_alerts_sync(self, now: datetime) -> List[str]:
        with self._scope() as db:
            rows = (
                db.query(Alert.user_id)
                .filter(Alert.status == AlertStatus.ACTIVE.value)
                .filter(Alert.type == AlertType.DAILY.value)
                .filter((Alert.alert_end.is_(None)) | (Alert.alert_end >= now))
                .group_by(Alert.user_id)
                .order_by(Alert.user_id.asc())
                .all()
            )
            return [r[0] for r in rows]

    async def get_user_ids_with_active_daily_alerts(self, now: Optional[datetime] = None) -> List[str]:
        return await asyncio.to_thread(self._user_ids_with_active_daily_alerts_sync, now or utc_now())

    # =================================================================
    # SECTION: NOTIFICATION LOG
    # =================================================================

    def _processed_recently_sync(self, alert_id: str, since: datetime) -> bool:
        with self._scope() as db:
            row = (
                db.query(NotificationLog.id)
                .filter(NotificationLog.alert_id == alert_id)
                .filter(NotificationLog.sent_at >= since)
                .first()
            )
            return row is not None

    async def has_alert_been_processed_recently(
        self,
        alert_id: str,
        hours: int,
        now: Optional[datetime] = None,
    ) -> bool:
        since = (now or utc_now()) - timedelta(hours=hours)
        return await asyncio.to_thread(self._processed_recently_sync, alert_id, since)

    def _received_today_sync(self, user_id: str, day_start: datetime) -> bool:
        with self._scope() as db:
            row = (
                db.query(NotificationLog.id)
                .filter(NotificationLog.user_id == user_id)
                .filter(NotificationLog.notification_type == DAILY_NOTIFICATION_TYPE)
                .filter(NotificationLog.sent_at >= day_start)
                .first()
            )
            return row is not None

    async def has_user_received_email_today(self, user_id: str, now: Optional[datetime] = None) -> bool:
        """True when a daily digest went out to the user since UTC midnight."""
        now = now or utc_now()
        day_start = datetime(now.year, now.month, now.day)
        return await asyncio.to_thread(self._received_today_sync, user_id, day_start)

    def _record_sync(self, user_id: str, alert_ids: List[str], notification_type: str, sent_at: datetime) -> int:
        with self._scope() as db:
            for alert_id in alert_ids:
                db.add(NotificationLog(
                    alert_id=alert_id,
                    user_id=user_id,
                    notification_type=notification_type,
                    sent_at=sent_at,
                ))
            return len(alert_ids)

    async def record_notification(
        self,
        user_id: str,
        alert_ids: List[str],
        notification_type: str = DAILY_NOTIFICATION_TYPE,
        sent_at: Optional[datetime] = None,
    ) -> int:
        return await asyncio.to_thread(
            self._record_sync, user_id, list(alert_ids), notification_type, sent_at or utc_now()
        )

    # =================================================================
    # SECTION: LOOKUPS
    # =================================================================

    def _airport_sync(self, code: str) -> Optional[Dict[str, Any]]:
        with self._scope() as db:
            row = db.query(Airport).filter(Airport.iata == code.upper()).first()
            if not row:
                return None
            return {"iata": row.iata, "city": row.city, "name": row.name, "country": row.country}

    async def get_airport_by_iata(self, code: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._airport_sync, code)

    def _user_contact_sync(self, user_id: str) -> Optional[Recipient]:
        with self._scope() as db:
            user = db.query(AppUser).filter(AppUser.external_id == user_id).first()
            if not user:
                return None
            if not user_allows_alerts(user):
                logger.info(f"[alerts] user {user_id} has email alerts switched off")
                return None
            name = " ".join(p for p in (user.first_name, user.last_name) if p) or None
            return Recipient(email=user.email, name=name)

    async def get_user_contact(self, user_id: str) -> Optional[Recipient]:
        """Recipient for the user, or None when unknown or alerts are switched off."""
        return await asyncio.to_thread(self._user_contact_sync, user_id)
