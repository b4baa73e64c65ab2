import asyncio
import json

import pytest

from modules.job_crawl.lib import engine
from modules.job_crawl.lib.config import ConfigError
from modules.job_crawl.lib.extractors.stub import StubExtractor
from modules.job_crawl.lib.fetchers import TransportError

EXTRACTOR = StubExtractor()


def _detail(title, posted, location):
    return json.dumps({"title": title, "posted_ago": posted, "location": location})


def _two_term_site():
    return {
        EXTRACTOR.listing_url("python developer", 0): json.dumps(["py-1", "py-2", "py-3"]),
        EXTRACTOR.listing_url("python developer", 3): json.dumps(["py-1"]),
        "py-1": _detail("Backend Engineer", "5 days ago", "Austin, TX, United States"),
        "py-2": _detail("Data Engineer", "6 weeks ago", "Berlin, Germany"),
        "py-3": _detail("Platform Engineer", "2 hours ago", "Remote"),
        EXTRACTOR.listing_url("data analyst", 0): json.dumps(["da-1", "da-2"]),
        EXTRACTOR.listing_url("data analyst", 3): "[]",
        "da-1": _detail("Analyst", "1 week ago", "London, England, United Kingdom"),
        "da-2": TransportError("HTTP 503"),
    }


def test_two_terms_end_to_end(fake_fetcher_cls, no_sleep_fn, stub_settings):
    settings = stub_settings(search_terms=["python developer", "data analyst"])
    fetcher = fake_fetcher_cls(_two_term_site())

    report = engine.run_once(settings, fetcher=fetcher, sleep=no_sleep_fn)

    assert [t.term for t in report.terms] == ["python developer", "data analyst"]
    py, da = report.terms

    # 6-week-old posting dropped; "Remote" lands in Unknown
    assert {k: [r.title for r in v] for k, v in py.jobs.items()} == {
        "United States": ["Backend Engineer"],
        "Unknown": ["Platform Engineer"],
    }
    assert py.fetched == 3
    assert py.stop_reason == "no_new_references"
    assert py.error is None

    assert list(da.jobs) == ["United Kingdom"]
    assert [f.reference for f in da.failed] == ["da-2"]
    assert report.job_count == 3
    assert report.failed_count == 1
    assert fetcher.closed is True


def test_always_failing_fetcher_yields_empty_report_per_term(fake_fetcher_cls, no_sleep_fn, stub_settings):
    settings = stub_settings(search_terms=["a", "b", "c"])
    fetcher = fake_fetcher_cls({})  # every URL raises TransportError

    report = engine.run_once(settings, fetcher=fetcher, sleep=no_sleep_fn)

    assert [t.term for t in report.terms] == ["a", "b", "c"]
    for t in report.terms:
        assert t.jobs == {}
        assert t.stop_reason == "listing_failed"
        assert t.error is None
    assert fetcher.closed is True


def test_unexpected_error_ends_only_that_term(fake_fetcher_cls, no_sleep_fn, stub_settings):
    class Flaky(StubExtractor):
        def listing_url(self, term, start):
            if term == "bad" and start > 0:
                raise RuntimeError("listing url exploded")
            return super().listing_url(term, start)

    ext = Flaky()
    pages = {
        ext.listing_url("bad", 0): json.dumps(["b1"]),
        "b1": _detail("Kept", "3 days ago", "Paris, France"),
        ext.listing_url("good", 0): json.dumps(["g1"]),
        ext.listing_url("good", 3): "[]",
        "g1": _detail("Also kept", "1 day ago", "Oslo, Norway"),
    }
    settings = stub_settings(search_terms=["bad", "good"])
    fetcher = fake_fetcher_cls(pages)

    report = engine.run_once(settings, fetcher=fetcher, extractor=ext, sleep=no_sleep_fn)

    bad, good = report.terms
    assert "listing url exploded" in bad.error
    assert [r.title for r in bad.jobs["France"]] == ["Kept"]
    assert good.error is None
    assert [r.title for r in good.jobs["Norway"]] == ["Also kept"]
    assert fetcher.closed is True


def test_invalid_limits_fail_before_any_fetch(fake_fetcher_cls, stub_settings):
    settings = stub_settings()
    settings.max_concurrent_detail_fetches = 0
    fetcher = fake_fetcher_cls({})

    with pytest.raises(ConfigError):
        engine.run_once(settings, fetcher=fetcher)
    assert fetcher.requests == []
    assert fetcher.closed is True


def test_unknown_site_is_config_error_and_closes_fetcher(fake_fetcher_cls, stub_settings):
    settings = stub_settings(site="nosuchboard")
    fetcher = fake_fetcher_cls({})

    with pytest.raises(ConfigError):
        engine.run_once(settings, fetcher=fetcher)
    assert fetcher.requests == []
    assert fetcher.closed is True


def test_skip_network_returns_empty_reports(fake_fetcher_cls, stub_settings):
    settings = stub_settings(search_terms=["x", "y"], skip_network=True)
    fetcher = fake_fetcher_cls({})

    report = asyncio.run(engine.run_crawl(settings, fetcher=fetcher))

    assert [t.term for t in report.terms] == ["x", "y"]
    assert report.job_count == 0
    assert fetcher.requests == []
    assert fetcher.closed is True


def test_report_serializes_to_plain_dict(fake_fetcher_cls, no_sleep_fn, stub_settings):
    settings = stub_settings(search_terms=["python developer", "data analyst"])
    report = engine.run_once(settings, fetcher=fake_fetcher_cls(_two_term_site()), sleep=no_sleep_fn)

    data = json.loads(json.dumps(report.to_dict()))
    assert data["terms"][0]["jobs"]["United States"][0]["kind"] == "job"
    assert data["terms"][1]["failed"][0] == {"kind": "failed", "reference": "da-2", "error": "TransportError('HTTP 503')"}
