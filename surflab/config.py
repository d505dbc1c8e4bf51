# ABOUTME: Application configuration including location, cache policy and API settings
# ABOUTME: Centralized config read from the environment (.env supported)

import os
from dotenv import load_dotenv

load_dotenv()


def _int_list(value: str) -> list[int]:
    return sorted({int(part) for part in value.split(",") if part.strip()})


class Config:
    """Application configuration"""

    # Location: St. Augustine, FL (the only deployed spot for now)
    LOCATION_NAME = os.getenv("LOCATION_NAME", "St. Augustine, FL")

    # API Keys
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash-lite")

    # Shared secret for the cron job and admin endpoints
    CRON_SECRET = os.getenv("CRON_SECRET", "")

    # Persistence
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///surf_reports.db")

    # Serving policy: how old a report may be before it is stale / expired
    FRESH_WINDOW_MINUTES = int(os.getenv("FRESH_WINDOW_MINUTES", "120"))  # 2 hours
    STALE_WINDOW_MINUTES = int(os.getenv("STALE_WINDOW_MINUTES", "360"))  # 6 hours

    # Cron schedule the cache expiration lines up with (local hours)
    REFRESH_TIMEZONE = os.getenv("REFRESH_TIMEZONE", "America/New_York")
    REFRESH_HOURS = _int_list(os.getenv("REFRESH_HOURS", "5,9,13,16"))

    # Timeouts (seconds)
    CONDITIONS_TIMEOUT_SECONDS = float(os.getenv("CONDITIONS_TIMEOUT_SECONDS", "8"))
    NARRATION_TIMEOUT_SECONDS = float(os.getenv("NARRATION_TIMEOUT_SECONDS", "30"))
    REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "55"))

    # Retention cleanup keeps this many days of history
    RETENTION_DAYS = int(os.getenv("RETENTION_DAYS", "7"))

    # History endpoint
    HISTORY_DEFAULT_LIMIT = int(os.getenv("HISTORY_DEFAULT_LIMIT", "10"))
    HISTORY_MAX_LIMIT = int(os.getenv("HISTORY_MAX_LIMIT", "50"))

    PORT = int(os.getenv("PORT", "8080"))

    # Debug mode
    DEBUG = os.getenv("DEBUG", "false").lower() == "true"
