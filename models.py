# =======================================
# SECTION: IMPORTS AND BASE
# =======================================

from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
)

from clock import utc_now
from db import Base


# =======================================
# SECTION: USER MODELS
# =======================================

class AppUser(Base):
    __tablename__ = "app_users"

    id = Column(Integer, primary_key=True, index=True)

    external_id = Column(String(100), unique=True, index=True, nullable=False)

    email = Column(String(255), index=True, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)

    # Per user alerts switch
    email_alerts_enabled = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)


# =======================================
# SECTION: AIRPORTS
# =======================================

class Airport(Base):
    __tablename__ = "airports"

    iata = Column(String(3), primary_key=True)
    city = Column(String(120), nullable=False)
    name = Column(String(255), nullable=True)
    country = Column(String(100), nullable=True)


# =======================================
# SECTION: ALERT MODELS
# =======================================

class Alert(Base):
    __tablename__ = "alerts"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid4()))
    user_id = Column(String(100), index=True, nullable=False)

    # daily | one_time | price_drop
    type = Column(String(32), nullable=False, default="daily")

    # active | completed | deleted
    status = Column(String(20), nullable=False, default="active", index=True)

    # {"route": {"from": "SFO", "to": "JFK"}, "filters": {...}}
    filters = Column(JSON, nullable=False)

    alert_end = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)


class NotificationLog(Base):
    """One row per alert included in a sent notification. Dedup queries read this."""

    __tablename__ = "notification_log"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid4()))
    alert_id = Column(String, ForeignKey("alerts.id"), nullable=False, index=True)
    user_id = Column(String(100), nullable=False, index=True)

    # daily-price-update | price-drop-alert
    notification_type = Column(String(40), nullable=False)

    sent_at = Column(DateTime, nullable=False, default=utc_now, index=True)
