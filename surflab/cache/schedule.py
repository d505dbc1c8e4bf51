# ABOUTME: Computes when a freshly generated report stops being the current one
# ABOUTME: Aligned to the cron refresh slots in a named timezone, DST-safe

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Iterable
from zoneinfo import ZoneInfo

from surflab.debug import debug_log

log = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_REFRESH_HOURS = (5, 9, 13, 16)  # 5AM, 9AM, 1PM, 4PM local


class ExpirationScheduler:
    """
    Next cache expiration = the next scheduled refresh slot after `now`.

    All math goes through the named timezone so DST transitions land on the
    right wall-clock hour. A `now` exactly on a slot counts as past it.
    """

    def __init__(
        self,
        tz_name: str = DEFAULT_TIMEZONE,
        refresh_hours: Iterable[int] = DEFAULT_REFRESH_HOURS,
    ):
        hours = sorted(set(refresh_hours))
        if not hours:
            raise ValueError("refresh_hours must not be empty")
        if any(h < 0 or h > 23 for h in hours):
            raise ValueError(f"refresh_hours must be 0-23, got {hours}")
        self.tz = ZoneInfo(tz_name)
        self.refresh_hours = hours

    def next_expiration(self, now: datetime) -> datetime:
        """Return the next refresh slot strictly after `now`, in UTC."""
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")

        local_now = now.astimezone(self.tz)
        candidate = self._first_slot_after(local_now)
        result = candidate.astimezone(timezone.utc)

        # A slot can fall inside a DST gap or fold; step forward until it is really later
        while result <= now:
            candidate = self._first_slot_after(candidate + timedelta(minutes=1))
            result = candidate.astimezone(timezone.utc)

        debug_log(f"Next refresh slot after {local_now.isoformat()}: {candidate.isoformat()}", "SCHEDULE")
        return result

    def upcoming_slots(self, now: datetime, count: int = 4) -> list[datetime]:
        """The next `count` refresh slots after now, in local time."""
        slots = []
        cursor = now
        for _ in range(count):
            cursor = self.next_expiration(cursor)
            slots.append(cursor.astimezone(self.tz))
        return slots

    def _first_slot_after(self, local_now: datetime) -> datetime:
        # Strict >: being on the hour means that slot has already run
        next_hour = next((h for h in self.refresh_hours if h > local_now.hour), None)
        day = local_now.date()
        if next_hour is None:
            day = day + timedelta(days=1)
            next_hour = self.refresh_hours[0]
        return datetime.combine(day, time(hour=next_hour), tzinfo=self.tz)
