# ABOUTME: Shared pytest fixtures: temporary SQLite store and mocked collaborators
# ABOUTME: No fixture touches the network or a real LLM

from unittest.mock import MagicMock

import pytest

from surflab.ai.llm_client import Narration
from surflab.orchestrator import ReportOrchestrator
from surflab.reports.store import ReportStore
from tests.factories import FIXED_NOW, make_conditions, make_recommendations

CRON_SECRET = "s3cret"


@pytest.fixture
def store(tmp_path):
    report_store = ReportStore(f"sqlite:///{tmp_path / 'reports.db'}")
    report_store.initialize()
    yield report_store
    report_store.close()


@pytest.fixture
def fetcher():
    mock_fetcher = MagicMock()
    mock_fetcher.fetch.return_value = make_conditions()
    return mock_fetcher


@pytest.fixture
def narrator():
    mock_narrator = MagicMock()
    mock_narrator.narrate.return_value = Narration(
        narrative="Clean, waist-high peaks with a light offshore breeze.",
        recommendations=make_recommendations(),
    )
    return mock_narrator


@pytest.fixture
def orchestrator(store, fetcher, narrator):
    return ReportOrchestrator(
        store=store,
        fetcher=fetcher,
        narrator=narrator,
        cron_secret=CRON_SECRET,
        clock=lambda: FIXED_NOW,
    )
