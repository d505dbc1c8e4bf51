# ABOUTME: Classifies a report's age into fresh, stale-but-usable or expired
# ABOUTME: Pure duration arithmetic, independent of cached_until and timezones

from datetime import datetime, timedelta
from enum import IntEnum
from typing import Optional

from surflab.reports.models import Report

DEFAULT_FRESH_WINDOW = timedelta(hours=2)
DEFAULT_STALE_WINDOW = timedelta(hours=6)


class Freshness(IntEnum):
    """Ordered: a larger value is always more stale."""
    FRESH = 0
    STALE_USABLE = 1
    EXPIRED = 2


class FreshnessClassifier:
    """
    Decides how a cached report may be served.

    Fresh:        age < fresh_window
    Stale-usable: fresh_window <= age < stale_window
    Expired:      anything older, or no report at all
    """

    def __init__(
        self,
        fresh_window: timedelta = DEFAULT_FRESH_WINDOW,
        stale_window: timedelta = DEFAULT_STALE_WINDOW,
    ):
        if fresh_window > stale_window:
            raise ValueError(
                f"fresh_window ({fresh_window}) must not exceed stale_window ({stale_window})"
            )
        self.fresh_window = fresh_window
        self.stale_window = stale_window

    def classify_age(self, age: timedelta) -> Freshness:
        # Reports from the (slightly) future count as brand new
        if age < self.fresh_window:
            return Freshness.FRESH
        if age < self.stale_window:
            return Freshness.STALE_USABLE
        return Freshness.EXPIRED

    def classify(self, report: Optional[Report], now: datetime) -> Freshness:
        if report is None:
            return Freshness.EXPIRED
        return self.classify_age(now - report.timestamp)
