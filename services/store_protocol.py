"""services/store_protocol.py - What the alert pipeline needs from its store. AlertStore implements it."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from schemas.alerts import AlertRecord
from schemas.notifications import Recipient


@runtime_checkable
class AlertStoreProtocol(Protocol):
    async def get_alerts_by_user(self, user_id: str, status: Optional[str] = None) -> List[AlertRecord]:
        ...

    async def update_alert(self, alert_id: str, patch: Any) -> Optional[AlertRecord]:
        ...

    async def get_user_ids_with_active_daily_alerts(self, now: Optional[datetime] = None) -> List[str]:
        ...

    async def has_alert_been_processed_recently(
        self,
        alert_id: str,
        hours: int,
        now: Optional[datetime] = None,
    ) -> bool:
        ...

    async def has_user_received_email_today(self, user_id: str, now: Optional[datetime] = None) -> bool:
        ...

    async def record_notification(
        self,
        user_id: str,
        alert_ids: List[str],
        notification_type: str = ...,
        sent_at: Optional[datetime] = None,
    ) -> int:
        ...

    async def get_airport_by_iata(self, code: str) -> Optional[Dict[str, Any]]:
        ...

    async def get_user_contact(self, user_id: str) -> Optional[Recipient]:
        ...
