"""
config.py

Single source of truth for:
- Environment variable reads
- Alert toggle logic
- Alert pipeline defaults (dedup window, per-alert flight cap)

Nothing here should contain route handlers or business logic beyond config resolution.
Collaborators take these values through their constructors so tests never depend on env.
"""

import os


# =====================================================================
# SECTION: ENV VARS
# =====================================================================

DATABASE_URL = os.getenv("DATABASE_URL")

# Flight provider routing
# Set FLIGHT_PROVIDER=duffel (default). Unknown values fail at search time.
FLIGHT_PROVIDER = os.getenv("FLIGHT_PROVIDER", "duffel").lower().strip()

# Duffel
DUFFEL_API_BASE = "https://api.duffel.com"
DUFFEL_API_TOKEN = os.getenv("DUFFEL_API_TOKEN") or os.getenv("DUFFEL_ACCESS_TOKEN")

# SMTP / alerts
SMTP_HOST = os.getenv("SMTP_HOST", "mail-eu.smtp2go.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "2525"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
ALERT_FROM_EMAIL = os.getenv("ALERT_FROM_EMAIL", "Flight Alerts <alerts@flightalerts.app>")

FRONTEND_BASE_URL = os.getenv("FRONTEND_BASE_URL", "https://flightalerts.app")

# AI email generation. Empty key means the blueprint step is disabled.
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_MAX_RETRIES = 2

ALERTS_ENABLED = os.getenv("ALERTS_ENABLED", "true").lower() == "true"


# =====================================================================
# SECTION: PIPELINE DEFAULTS
# =====================================================================

# Just under 24h so a daily scheduler with some jitter still fires once per day.
DEDUPLICATION_HOURS = int(os.getenv("DEDUPLICATION_HOURS", "23"))

# Cap on provider results kept per alert, applied before criteria filtering.
MAX_FLIGHTS_PER_ALERT = int(os.getenv("MAX_FLIGHTS_PER_ALERT", "5"))

# Provider request timeout (seconds)
PROVIDER_TIMEOUT_SECONDS = 45


# =====================================================================
# SECTION: ALERT TOGGLE HELPERS
# =====================================================================

def master_alerts_enabled() -> bool:
    """Hard master switch controlled by ALERTS_ENABLED env var."""
    value = os.getenv("ALERTS_ENABLED", "true")
    return value.lower() == "true"


def smtp_configured() -> bool:
    return bool(SMTP_USERNAME and SMTP_PASSWORD and ALERT_FROM_EMAIL)


def user_allows_alerts(user) -> bool:
    """Per-user toggle, defaults to True if the attribute is missing."""
    if not hasattr(user, "email_alerts_enabled"):
        return True
    return bool(user.email_alerts_enabled)
