# ABOUTME: Report orchestrator deciding between cached, stale, regenerated and emergency reports
# ABOUTME: Also owns the authenticated warm-refresh, cache-clear, save and cleanup operations

import hmac
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional

from surflab.ai.llm_client import LLMClient
from surflab.ai.templates import templated_narration
from surflab.cache.freshness import Freshness, FreshnessClassifier
from surflab.cache.schedule import ExpirationScheduler
from surflab.config import Config
from surflab.debug import debug_log
from surflab.errors import (
    ConditionFetchFailed, NarrationFailed, NoDataAvailable, StoreUnavailable, SurfLabError, Unauthorized,
    UnknownLocation,
)
from surflab.locations import LOCATIONS, Location
from surflab.reports.models import Report, generate_report_id, parse_instant
from surflab.reports.store import ReportStore
from surflab.weather.sources import ConditionFetcher

log = logging.getLogger(__name__)


class ReportSource(str, Enum):
    FRESH_CACHE = "fresh-cache"
    STALE_CACHE = "stale-cache"
    FRESH_GENERATION = "fresh-generation"
    EMERGENCY_FALLBACK = "emergency-fallback"


@dataclass(frozen=True)
class ServedReport:
    """A report plus how it was obtained"""
    report: Report
    source: ReportSource
    age_seconds: float

    @property
    def is_stale(self) -> bool:
        return self.source in (ReportSource.STALE_CACHE, ReportSource.EMERGENCY_FALLBACK)

    @property
    def may_be_outdated(self) -> bool:
        """Emergency reports can be arbitrarily old."""
        return self.source == ReportSource.EMERGENCY_FALLBACK

    @property
    def age_hours(self) -> float:
        return round(max(self.age_seconds, 0) / 3600, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.report.to_dict(),
            "source": self.source.value,
            "age_hours": self.age_hours,
            "is_stale": self.is_stale,
            "may_be_outdated": self.may_be_outdated,
        }


@dataclass(frozen=True)
class RefreshResult:
    cleared: int
    regenerated: bool
    new_report_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "cleared": self.cleared,
            "regenerated": self.regenerated,
            "new_report_id": self.new_report_id,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportOrchestrator:
    """
    Serves the current surf report for a location.

    Lookup order on every request:
    1. Current cached report that is fresh -> serve it
    2. Current cached report that is stale but usable -> serve it, flagged stale
    3. Otherwise regenerate (conditions + narration), save, serve
    4. Conditions unavailable -> newest report of any age, flagged emergency
    5. Nothing at all -> NoDataAvailable
    """

    def __init__(
        self,
        store: ReportStore,
        fetcher: ConditionFetcher,
        narrator: LLMClient,
        classifier: Optional[FreshnessClassifier] = None,
        scheduler: Optional[ExpirationScheduler] = None,
        cron_secret: str = "",
        locations: Optional[dict[str, Location]] = None,
        retention: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.fetcher = fetcher
        self.narrator = narrator
        self.classifier = classifier or FreshnessClassifier()
        self.scheduler = scheduler or ExpirationScheduler()
        self.cron_secret = cron_secret
        self.locations = locations if locations is not None else LOCATIONS
        self.retention = retention
        self.clock = clock

        # One regeneration per location at a time (saves duplicate LLM calls)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(cls) -> "ReportOrchestrator":
        store = ReportStore(Config.DATABASE_URL)
        store.initialize()
        return cls(
            store=store,
            fetcher=ConditionFetcher(timeout_seconds=Config.CONDITIONS_TIMEOUT_SECONDS),
            narrator=LLMClient(api_key=Config.GEMINI_API_KEY, timeout_seconds=Config.NARRATION_TIMEOUT_SECONDS),
            classifier=FreshnessClassifier(
                fresh_window=timedelta(minutes=Config.FRESH_WINDOW_MINUTES),
                stale_window=timedelta(minutes=Config.STALE_WINDOW_MINUTES),
            ),
            scheduler=ExpirationScheduler(Config.REFRESH_TIMEZONE, Config.REFRESH_HOURS),
            cron_secret=Config.CRON_SECRET,
            retention=timedelta(days=Config.RETENTION_DAYS),
        )

    # ==================== Serving ====================

    def get_current_report(self, location_name: Optional[str] = None) -> ServedReport:
        """
        Get the report to show for a location right now.

        Raises:
            UnknownLocation: location is not configured
            StoreUnavailable: the store could not be read
            NoDataAvailable: nothing cached and conditions could not be fetched
        """
        location = self._location(location_name)

        served = self._serve_from_cache(location)
        if served is not None:
            return served

        with self._regeneration_lock(location.name):
            # Another request may have regenerated while we waited
            served = self._serve_from_cache(location)
            if served is not None:
                return served

            log.info(f"No usable cache for {location.name} - generating fresh report")
            try:
                report, _ = self._generate(location)
            except ConditionFetchFailed as e:
                log.error(f"Condition fetch failed, falling back to emergency cache: {e}")
                return self.emergency_report(location.name)

        return ServedReport(report=report, source=ReportSource.FRESH_GENERATION, age_seconds=0.0)

    def emergency_report(self, location_name: Optional[str] = None) -> ServedReport:
        """
        Newest report for the location regardless of age.

        Raises:
            NoDataAvailable: the store holds no report for this location
        """
        location = self._location(location_name)
        report = self.store.get_latest(location.name)
        if report is None:
            log.error(f"No fresh data and no cached report for {location.name}")
            raise NoDataAvailable(f"No surf report available for {location.name}")

        age = report.age_seconds(self.clock())
        log.warning(f"Serving emergency cache {report.id} ({age / 3600:.1f}h old)")
        return ServedReport(report=report, source=ReportSource.EMERGENCY_FALLBACK, age_seconds=age)

    def get_history(self, location_name: Optional[str] = None, limit: int = 10) -> list[Report]:
        location = self._location(location_name)
        return self.store.get_recent(location.name, limit)

    def _serve_from_cache(self, location: Location) -> Optional[ServedReport]:
        now = self.clock()
        report = self.store.get_current(location.name, now=now)
        freshness = self.classifier.classify(report, now)

        if freshness == Freshness.FRESH:
            debug_log(f"Cache hit (fresh): {report.id}", "ORCHESTRATOR")
            return ServedReport(report=report, source=ReportSource.FRESH_CACHE, age_seconds=report.age_seconds(now))

        if freshness == Freshness.STALE_USABLE:
            log.info(f"Cache hit (stale but usable): {report.id}")
            return ServedReport(report=report, source=ReportSource.STALE_CACHE, age_seconds=report.age_seconds(now))

        if report is not None:
            debug_log(f"Cached report {report.id} expired", "ORCHESTRATOR")
        return None

    # ==================== Regeneration ====================

    def _generate(self, location: Location) -> tuple[Report, bool]:
        """
        Build and save a new report.

        Returns:
            (report, persisted) - the report is returned even if saving failed

        Raises:
            ConditionFetchFailed: conditions could not be fetched
        """
        started = time.monotonic()

        conditions = self.fetcher.fetch(location, now=self.clock())

        templated = False
        try:
            narration = self.narrator.narrate(conditions, location.name)
        except NarrationFailed as e:
            log.warning(f"Narration failed, using templated report: {e}")
            narration = templated_narration(conditions, location.name)
            templated = True

        now = self.clock()
        report = Report(
            id=generate_report_id(now),
            timestamp=now,
            location=location.name,
            narrative=narration.narrative,
            conditions=conditions,
            recommendations=narration.recommendations,
            cached_until=self.scheduler.next_expiration(now),
            templated=templated,
        )

        persisted = True
        try:
            self.store.save(report)
        except StoreUnavailable as e:
            log.error(f"Could not save report {report.id}, serving it anyway: {e}")
            persisted = False

        elapsed_ms = (time.monotonic() - started) * 1000
        log.info(
            f"Generated report {report.id} for {location.name} "
            f"(templated={templated}, cached until {report.cached_until.isoformat()}, {elapsed_ms:.0f}ms)"
        )
        return report, persisted

    @contextmanager
    def _regeneration_lock(self, location_name: str):
        with self._locks_guard:
            lock = self._locks.setdefault(location_name, threading.Lock())
        with lock:
            yield

    # ==================== Admin ====================

    def check_auth(self, token: Optional[str]) -> None:
        """
        Raises:
            Unauthorized: secret not configured, token missing, or mismatch
        """
        if not self.cron_secret or not token:
            raise Unauthorized("Missing or invalid credentials")
        if not hmac.compare_digest(token.encode(), self.cron_secret.encode()):
            raise Unauthorized("Missing or invalid credentials")

    def warm_refresh(self, auth_token: Optional[str], location_name: Optional[str] = None) -> RefreshResult:
        """
        Clear the location's cache and regenerate right away.

        Best effort: a failed regeneration still counts as a successful
        refresh because the stale reports are gone either way.

        Raises:
            Unauthorized: bad token (nothing is touched)
        """
        self.check_auth(auth_token)
        location = self._location(location_name)

        with self._regeneration_lock(location.name):
            cleared = self.store.delete_all(location.name)
            print(f"[WARMUP] Cleared {cleared} cached reports for {location.name}", flush=True)

            try:
                report, persisted = self._generate(location)
            except SurfLabError as e:
                log.error(f"[WARMUP] Regeneration failed, next request will regenerate: {e}")
                return RefreshResult(cleared=cleared, regenerated=False)

        if not persisted:
            return RefreshResult(cleared=cleared, regenerated=False)

        print(f"[WARMUP] Complete! New report {report.id}", flush=True)
        return RefreshResult(cleared=cleared, regenerated=True, new_report_id=report.id)

    def clear_cache(self, auth_token: Optional[str], location_name: Optional[str] = None) -> int:
        self.check_auth(auth_token)
        location = self._location(location_name)
        return self.store.delete_all(location.name)

    def cleanup(self, auth_token: Optional[str], location_name: Optional[str] = None) -> int:
        """Retention cleanup: drop reports older than the retention window."""
        self.check_auth(auth_token)
        location = self._location(location_name)
        return self.store.delete_older_than(location.name, self.retention, now=self.clock())

    def save_report(self, auth_token: Optional[str], payload: dict[str, Any]) -> Report:
        """
        Store a report generated elsewhere (e.g. by the cron worker).

        Raises:
            Unauthorized: bad token
            ValueError: payload is missing fields or malformed
            DuplicateReportId: a report with this id exists
        """
        self.check_auth(auth_token)
        report = self.build_report(payload)
        self._location(report.location)
        self.store.save(report)
        return report

    def build_report(self, payload: dict[str, Any]) -> Report:
        """Fill in timestamp/location/cached_until defaults and parse a payload."""
        missing = [key for key in ("id", "narrative", "conditions", "recommendations") if not payload.get(key)]
        if missing:
            raise ValueError(f"Invalid report structure, missing: {', '.join(missing)}")

        now = self.clock()
        data = dict(payload)
        data.setdefault("timestamp", now.isoformat())
        data.setdefault("location", Config.LOCATION_NAME)
        try:
            if not data.get("cached_until"):
                timestamp = parse_instant(data["timestamp"])
                data["cached_until"] = self.scheduler.next_expiration(timestamp).isoformat()
            return Report.from_dict(data)
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Invalid report structure: {e}") from e

    def cache_status(self, auth_token: Optional[str], location_name: Optional[str] = None) -> dict[str, Any]:
        """Counts and freshness for monitoring."""
        self.check_auth(auth_token)
        location = self._location(location_name)
        now = self.clock()

        stats = self.store.stats(location.name)
        current = self.store.get_current(location.name, now=now)
        latest = self.store.get_latest(location.name)

        return {
            **stats,
            "location": location.name,
            "current_report_id": current.id if current else None,
            "latest_report_freshness": self.classifier.classify(latest, now).name.lower(),
            "next_scheduled_refresh": self.scheduler.next_expiration(now).isoformat(),
        }

    def upcoming_refreshes(self, count: int = 4) -> list[str]:
        """Human-readable upcoming cron slots, e.g. '1:00 PM EDT'."""
        slots = self.scheduler.upcoming_slots(self.clock(), count=count)
        return [slot.strftime("%I:%M %p %Z").lstrip("0") for slot in slots]

    def _location(self, name: Optional[str]) -> Location:
        name = name or Config.LOCATION_NAME
        try:
            return self.locations[name]
        except KeyError:
            raise UnknownLocation(f"Unknown location: {name}") from None
