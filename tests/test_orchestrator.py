# ABOUTME: Tests for the report orchestrator
# ABOUTME: Real SQLite store, mocked condition fetcher and narrator, fixed clock

import threading
import time
from datetime import timedelta, timezone
from unittest.mock import patch

import pytest

from surflab.ai.llm_client import Narration
from surflab.errors import (
    ConditionFetchFailed, DuplicateReportId, NarrationFailed, NoDataAvailable, StoreUnavailable, Unauthorized,
    UnknownLocation,
)
from surflab.orchestrator import RefreshResult, ReportOrchestrator, ReportSource
from surflab.weather.sources import ConditionFetcher
from tests.conftest import CRON_SECRET
from tests.factories import FIXED_NOW, LOCATION, make_conditions, make_recommendations, make_report
from tests.fake_upstream import make_fake_get, response


class TestGetCurrentReport:
    """Tests for the serve-or-regenerate decision"""

    def test_fresh_cache_served_without_generation(self, orchestrator, store, fetcher, narrator):
        """1-hour-old report is served fresh, no upstream calls"""
        cached = make_report(age=timedelta(hours=1))
        store.save(cached)

        served = orchestrator.get_current_report()

        assert served.report == cached
        assert served.source == ReportSource.FRESH_CACHE
        assert served.is_stale is False
        assert served.age_hours == 1.0
        fetcher.fetch.assert_not_called()
        narrator.narrate.assert_not_called()

    def test_stale_cache_served_flagged(self, orchestrator, store, fetcher):
        """4-hour-old report still inside cached_until is served as stale"""
        cached = make_report(age=timedelta(hours=4))
        store.save(cached)

        served = orchestrator.get_current_report()

        assert served.report.id == cached.id
        assert served.source == ReportSource.STALE_CACHE
        assert served.is_stale is True
        assert served.may_be_outdated is False
        fetcher.fetch.assert_not_called()

    def test_expired_cache_regenerates(self, orchestrator, store, fetcher, narrator):
        """A report older than the stale window is replaced, even if cached_until says otherwise"""
        store.save(make_report(age=timedelta(hours=7), report_id="too-old"))

        served = orchestrator.get_current_report()

        assert served.source == ReportSource.FRESH_GENERATION
        assert served.report.id != "too-old"
        fetcher.fetch.assert_called_once()
        narrator.narrate.assert_called_once()

    def test_empty_cache_generates_and_saves(self, orchestrator, store, narrator):
        served = orchestrator.get_current_report()
        report = served.report

        assert served.source == ReportSource.FRESH_GENERATION
        assert served.age_seconds == 0.0
        assert report.timestamp == FIXED_NOW
        assert report.cached_until == FIXED_NOW.replace(hour=18)
        assert report.location == LOCATION
        assert report.conditions == make_conditions()
        assert report.narrative == narrator.narrate.return_value.narrative
        assert report.templated is False
        assert store.get_current(LOCATION, now=FIXED_NOW) == report

    def test_repeated_calls_serve_same_report(self, orchestrator, fetcher, narrator):
        """The second request hits the cache the first one filled"""
        first = orchestrator.get_current_report()
        second = orchestrator.get_current_report()

        assert second.report.id == first.report.id
        assert second.source == ReportSource.FRESH_CACHE
        assert narrator.narrate.call_count == 1
        assert fetcher.fetch.call_count == 1

    def test_narration_failure_uses_template(self, orchestrator, store, narrator):
        """LLM down still yields a report with real conditions and a non-empty narrative"""
        narrator.narrate.side_effect = NarrationFailed("quota exceeded")

        served = orchestrator.get_current_report()

        assert served.source == ReportSource.FRESH_GENERATION
        assert served.report.templated is True
        assert served.report.conditions == make_conditions()
        assert served.report.narrative.startswith(f"{LOCATION} surf report:")
        assert store.get_latest(LOCATION).id == served.report.id

    def test_fetch_failure_serves_emergency_cache(self, orchestrator, store, fetcher, narrator):
        """10-hour-old report is served as emergency data when upstream is down"""
        old = make_report(age=timedelta(hours=10), cached_until=FIXED_NOW - timedelta(hours=5))
        store.save(old)
        fetcher.fetch.side_effect = ConditionFetchFailed("marine API returned 503")

        served = orchestrator.get_current_report()

        assert served.report == old
        assert served.source == ReportSource.EMERGENCY_FALLBACK
        assert served.is_stale is True
        assert served.may_be_outdated is True
        assert served.age_hours == 10.0
        narrator.narrate.assert_not_called()

    def test_fetch_failure_with_empty_store(self, orchestrator, fetcher):
        fetcher.fetch.side_effect = ConditionFetchFailed("timeout")

        with pytest.raises(NoDataAvailable):
            orchestrator.get_current_report()

    def test_save_failure_still_returns_report(self, orchestrator, store):
        """A write error is logged, the generated report is still served"""
        with patch.object(store, "save", side_effect=StoreUnavailable("disk full")):
            served = orchestrator.get_current_report()

        assert served.source == ReportSource.FRESH_GENERATION
        assert store.get_latest(LOCATION) is None

    def test_store_read_failure_propagates(self, orchestrator, store, fetcher):
        """An unreadable store is an error, not a cache miss"""
        with patch.object(store, "get_current", side_effect=StoreUnavailable("locked")):
            with pytest.raises(StoreUnavailable):
                orchestrator.get_current_report()

        fetcher.fetch.assert_not_called()

    def test_unknown_location(self, orchestrator):
        with pytest.raises(UnknownLocation):
            orchestrator.get_current_report("Nowhere, KS")

    def test_concurrent_requests_generate_once(self, store, fetcher, narrator):
        """Parallel misses for one location share a single narration"""
        orchestrator = ReportOrchestrator(
            store=store, fetcher=fetcher, narrator=narrator, clock=lambda: FIXED_NOW,
        )
        narration = narrator.narrate.return_value

        def slow_narrate(*args, **kwargs):
            time.sleep(0.2)
            return narration

        narrator.narrate.side_effect = slow_narrate
        results = []

        def worker():
            results.append(orchestrator.get_current_report())

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 5
        assert narrator.narrate.call_count == 1
        assert len({served.report.id for served in results}) == 1


class TestServedReport:
    """Tests for the served report envelope"""

    def test_to_dict_includes_serving_metadata(self, orchestrator, store):
        store.save(make_report(age=timedelta(hours=3)))

        data = orchestrator.get_current_report().to_dict()

        assert data["source"] == "stale-cache"
        assert data["age_hours"] == 3.0
        assert data["is_stale"] is True
        assert data["may_be_outdated"] is False
        assert data["conditions"]["wave_height_ft"] == 3.3


class TestWarmRefresh:
    """Tests for the authenticated cron refresh"""

    def test_wrong_token_touches_nothing(self, orchestrator, store, fetcher):
        store.save(make_report(age=timedelta(hours=1), report_id="keep-me"))

        with pytest.raises(Unauthorized):
            orchestrator.warm_refresh("wrong")

        assert store.get_latest(LOCATION).id == "keep-me"
        fetcher.fetch.assert_not_called()

    def test_missing_token_rejected(self, orchestrator):
        with pytest.raises(Unauthorized):
            orchestrator.warm_refresh(None)

    def test_empty_secret_rejects_everything(self, store, fetcher, narrator):
        orchestrator = ReportOrchestrator(store=store, fetcher=fetcher, narrator=narrator, cron_secret="")

        with pytest.raises(Unauthorized):
            orchestrator.warm_refresh("")

    def test_clears_then_regenerates(self, orchestrator, store):
        store.save(make_report(age=timedelta(hours=1), report_id="a"))
        store.save(make_report(age=timedelta(minutes=30), report_id="b"))

        result = orchestrator.warm_refresh(CRON_SECRET)

        assert result.cleared == 2
        assert result.regenerated is True
        assert [r.id for r in store.get_recent(LOCATION, limit=10)] == [result.new_report_id]

    def test_regeneration_failure_still_clears(self, orchestrator, store, fetcher):
        store.save(make_report(report_id="stale"))
        fetcher.fetch.side_effect = ConditionFetchFailed("down")

        result = orchestrator.warm_refresh(CRON_SECRET)

        assert result == RefreshResult(cleared=1, regenerated=False)
        assert store.get_latest(LOCATION) is None

    def test_unsaved_report_not_counted(self, orchestrator, store):
        with patch.object(store, "save", side_effect=StoreUnavailable("disk full")):
            result = orchestrator.warm_refresh(CRON_SECRET)

        assert result.regenerated is False
        assert result.new_report_id is None

    def test_result_to_dict(self):
        assert RefreshResult(cleared=3, regenerated=True, new_report_id="r1").to_dict() == {
            "cleared": 3, "regenerated": True, "new_report_id": "r1",
        }


class TestAdminOperations:
    """Tests for clear, cleanup, history and monitoring"""

    def test_clear_cache(self, orchestrator, store):
        store.save(make_report())

        assert orchestrator.clear_cache(CRON_SECRET) == 1
        assert store.get_latest(LOCATION) is None

    def test_clear_cache_requires_auth(self, orchestrator, store):
        store.save(make_report())

        with pytest.raises(Unauthorized):
            orchestrator.clear_cache("nope")
        assert store.get_latest(LOCATION) is not None

    def test_cleanup_keeps_last_week(self, orchestrator, store):
        store.save(make_report(age=timedelta(days=8), report_id="old"))
        store.save(make_report(age=timedelta(days=2), report_id="recent"))

        assert orchestrator.cleanup(CRON_SECRET) == 1
        assert store.get_latest(LOCATION).id == "recent"

    def test_history(self, orchestrator, store):
        for hours in (1, 2, 3):
            store.save(make_report(age=timedelta(hours=hours), report_id=f"h{hours}"))

        assert [r.id for r in orchestrator.get_history(limit=2)] == ["h1", "h2"]

    def test_cache_status(self, orchestrator, store):
        store.save(make_report(age=timedelta(hours=3), report_id="current"))

        status = orchestrator.cache_status(CRON_SECRET)

        assert status["total_reports"] == 1
        assert status["location"] == LOCATION
        assert status["current_report_id"] == "current"
        assert status["latest_report_freshness"] == "stale_usable"
        assert status["next_scheduled_refresh"] == "2024-03-01T18:00:00+00:00"

    def test_upcoming_refreshes(self, orchestrator):
        assert orchestrator.upcoming_refreshes() == ["1:00 PM EST", "4:00 PM EST", "5:00 AM EST", "9:00 AM EST"]


def report_payload(**overrides):
    payload = {
        "id": "report_external_1",
        "narrative": "Flat. Go fishing.",
        "conditions": make_conditions(wave_height_ft=0.5).to_dict(),
        "recommendations": make_recommendations().to_dict(),
    }
    payload.update(overrides)
    return payload


class TestSaveReport:
    """Tests for storing externally generated reports"""

    def test_defaults_filled(self, orchestrator, store):
        report = orchestrator.save_report(CRON_SECRET, report_payload())

        assert report.timestamp == FIXED_NOW
        assert report.location == LOCATION
        assert report.cached_until == FIXED_NOW.replace(hour=18)
        assert store.get_latest(LOCATION) == report

    def test_cached_until_follows_given_timestamp(self, orchestrator):
        report = orchestrator.build_report(report_payload(timestamp="2024-03-01T22:30:00Z"))

        assert report.cached_until == FIXED_NOW.replace(day=2, hour=10).astimezone(timezone.utc)

    def test_missing_fields_rejected(self, orchestrator):
        with pytest.raises(ValueError, match="narrative"):
            orchestrator.save_report(CRON_SECRET, {"id": "x", "conditions": {}, "recommendations": {}})

    def test_malformed_conditions_rejected(self, orchestrator):
        with pytest.raises(ValueError):
            orchestrator.save_report(CRON_SECRET, report_payload(conditions={"wave_height_ft": 2}))

    def test_bad_skill_level_rejected(self, orchestrator):
        recs = {"board_type": "Longboard", "skill_level": "legendary"}
        with pytest.raises(ValueError):
            orchestrator.save_report(CRON_SECRET, report_payload(recommendations=recs))

    def test_duplicate_rejected(self, orchestrator):
        orchestrator.save_report(CRON_SECRET, report_payload())

        with pytest.raises(DuplicateReportId):
            orchestrator.save_report(CRON_SECRET, report_payload())

    def test_unknown_location_rejected(self, orchestrator):
        with pytest.raises(UnknownLocation):
            orchestrator.save_report(CRON_SECRET, report_payload(location="Nowhere, KS"))

    def test_requires_auth(self, orchestrator, store):
        with pytest.raises(Unauthorized):
            orchestrator.save_report("bad", report_payload())
        assert store.get_latest(LOCATION) is None


def test_saved_narration_is_served_next(orchestrator, narrator):
    """A report saved by the cron worker becomes the current report"""
    narrator.narrate.return_value = Narration(narrative="unused", recommendations=make_recommendations())
    orchestrator.save_report(CRON_SECRET, report_payload())

    served = orchestrator.get_current_report()

    assert served.report.id == "report_external_1"
    narrator.narrate.assert_not_called()


def test_save_rejects_cached_until_before_timestamp(orchestrator):
    payload = report_payload(timestamp="2024-03-01T15:00:00Z", cached_until="2024-03-01T14:00:00Z")

    with pytest.raises(ValueError, match="cached_until"):
        orchestrator.save_report(CRON_SECRET, payload)


@pytest.mark.parametrize("source,payload", [
    ("marine", {"hourly": {
        "time": [None], "wave_height": [1.0], "wave_period": [9.0],
        "swell_wave_direction": [90.0], "sea_surface_temperature": [18.5],
    }}),
    ("water_level", {"error": "No data was found"}),
])
def test_malformed_upstream_data_serves_emergency_cache(store, narrator, source, payload):
    """Garbled upstream responses take the same fallback path as outages"""
    old = make_report(age=timedelta(hours=10), cached_until=FIXED_NOW - timedelta(hours=5))
    store.save(old)
    orchestrator = ReportOrchestrator(
        store=store, fetcher=ConditionFetcher(timeout_seconds=5), narrator=narrator, clock=lambda: FIXED_NOW,
    )

    with patch("surflab.weather.sources.requests.get", side_effect=make_fake_get({source: response(payload)})):
        served = orchestrator.get_current_report()

    assert served.source == ReportSource.EMERGENCY_FALLBACK
    assert served.report == old
    narrator.narrate.assert_not_called()


class TestSaveReportConditions:
    """Condition values in saved reports are checked, not just present"""

    def test_score_out_of_range_rejected(self, orchestrator, store):
        conditions = {**make_conditions().to_dict(), "surfability_score": 999}

        with pytest.raises(ValueError, match="surfability_score"):
            orchestrator.save_report(CRON_SECRET, report_payload(conditions=conditions))
        assert store.get_latest(LOCATION) is None

    def test_non_numeric_direction_rejected(self, orchestrator, store):
        conditions = {**make_conditions().to_dict(), "wind_direction_deg": "westish"}

        with pytest.raises(ValueError, match="wind_direction_deg"):
            orchestrator.save_report(CRON_SECRET, report_payload(conditions=conditions))
        assert store.get_latest(LOCATION) is None

    def test_numeric_strings_converted(self, orchestrator):
        conditions = {**make_conditions().to_dict(), "wind_direction_deg": "270", "surfability_score": "88"}

        report = orchestrator.save_report(CRON_SECRET, report_payload(conditions=conditions))

        assert report.conditions.wind_direction_deg == 270.0
        assert report.conditions.surfability_score == 88
