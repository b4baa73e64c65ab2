# tests/conftest.py
import asyncio
import os
import tempfile

import pytest
from freezegun import freeze_time

from modules.job_crawl.lib.config import Settings
from modules.job_crawl.lib.fetchers import PageFetcher, TransportError


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls or external services).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls or hit external services (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="jc-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")
    monkeypatch.delenv("CONFIG_PATH", raising=False)
    yield


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


# ---------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------
class FakeFetcher(PageFetcher):
    """
    Serves pages from a dict: url -> text | Exception (raised) | callable(url) -> text.
    Unknown URLs raise TransportError. Records every request and the peak
    number of fetches in flight.
    """

    def __init__(self, pages=None, *, latency: float = 0.0):
        self.pages = dict(pages or {})
        self.latency = latency
        self.requests: list[str] = []
        self.closed = False
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_page(self, url: str) -> str:
        self.requests.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.latency)
            page = self.pages.get(url)
            if page is None:
                raise TransportError(f"no page for {url}")
            if isinstance(page, Exception):
                raise page
            if callable(page):
                return page(url)
            return page
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_fetcher_cls():
    return FakeFetcher


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def no_sleep_fn():
    return no_sleep


@pytest.fixture
def stub_settings(tmp_path):
    """Settings for the markup-free stub site: no delay, no report file."""

    def _make(**overrides):
        kw = {
            "search_terms": ["python developer"],
            "site": "stub",
            "inter_page_delay_ms": 0,
            "page_size": 3,
            "max_items_per_term": 200,
            "report_dir": "",
        }
        kw.update(overrides)
        return Settings.from_env_and_kwargs(kw)

    return _make
