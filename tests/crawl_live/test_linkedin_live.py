# tests/crawl_live/test_linkedin_live.py
from __future__ import annotations

import os

import pytest

from modules.job_crawl.lib.config import Settings
from modules.job_crawl.lib.engine import run_once


def _print_report(report) -> None:
    for t in report.terms:
        print(f"\n[{t.term}] fetched={t.fetched} fresh={t.job_count} failed={len(t.failed)} stop={t.stop_reason}")
        for category, records in t.jobs.items():
            print(f"  {category} ({len(records)})")
            for r in records[:3]:
                print(f"    - {r.title} @ {r.company} ({r.posted_ago})")


@pytest.mark.live
def test_linkedin_one_term_small_cap():
    """
    One real term, one small page. Uses the proxy when ZENROWS_API_KEY is set,
    otherwise a direct fetch (which LinkedIn may throttle).
    """
    use_proxy = bool(os.getenv("ZENROWS_API_KEY"))
    settings = Settings.from_env_and_kwargs({
        "search_terms": [os.getenv("LIVE_TERM", "python developer")],
        "max_items_per_term": 5,
        "page_size": 25,
        "max_concurrent_detail_fetches": 2,
        "inter_page_delay_ms": 2000,
        "fetcher": "proxy" if use_proxy else "direct",
        "proxy_api_key": os.getenv("ZENROWS_API_KEY", ""),
        "report_dir": "",
    })

    report = run_once(settings)
    _print_report(report)

    assert len(report.terms) == 1
    term = report.terms[0]
    assert term.error is None
    assert term.fetched <= 5
    assert term.stop_reason in {"cap_reached", "no_new_references", "listing_failed"}
