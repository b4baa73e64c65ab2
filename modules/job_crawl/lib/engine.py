"""
Crawl session: runs every configured search term and aggregates a CrawlReport.

Features:
  - Terms run in configuration order over one shared PageFetcher
  - Per-term pagination -> recency filter -> categorizer
  - Term-level isolation: an unexpected error ends only that term (partial results kept)
  - The fetcher is closed on every exit path
  - Dependency injection for testability (`fetcher`, `extractor`, `sleep`)
  - Structured logging via `logging_bridge`
"""

from __future__ import annotations

import asyncio
import time

from . import logging_bridge
from .categorize import categorize
from .config import ConfigError, Settings
from .extractors.base import BaseExtractor
from .fetchers import PageFetcher, build_fetcher
from .models import CrawlReport, TermReport
from .pagination import Sleep, TermCrawl, paginate_term
from .recency import filter_recent
from .utils import now_iso


# =============================================================================
# DEFAULT EXTRACTOR LOOKUP (PRODUCTION)
# =============================================================================
def _default_extractor(site: str) -> BaseExtractor:
    """Resolve and instantiate the extractor registered for `site`."""
    from .extractors.registry import get as get_extractor_class

    return get_extractor_class(site)()


# =============================================================================
# MAIN ORCHESTRATOR
# =============================================================================
async def run_crawl(
    settings: Settings,
    *,
    fetcher: PageFetcher | None = None,
    extractor: BaseExtractor | None = None,
    sleep: Sleep | None = None,
) -> CrawlReport:
    """
    Run one crawl session.

    Args:
        settings: validated Settings (re-validated here before any network use).
        fetcher: transport override; the session owns it and closes it on exit.
        extractor: site adapter override (defaults to the registry entry for settings.site).
        sleep: inter-page wait override (tests pass a no-op).

    Returns:
        CrawlReport with exactly one TermReport per configured term.

    Raises:
        ConfigError: invalid limits (before any fetch is made).
    """
    try:
        settings.validate()
    except ConfigError:
        if fetcher is not None:
            await fetcher.aclose()
        raise
    start_ns = time.perf_counter_ns()
    started_at = now_iso()

    logging_bridge.activity({
        "component": "job_crawl.engine",
        "op": "start",
        "terms": list(settings.search_terms),
        "site": settings.site,
        "fetcher": settings.fetcher,
        "skip_network": settings.skip_network,
        "limits": {
            "max_items_per_term": settings.max_items_per_term,
            "page_size": settings.page_size,
            "max_concurrent_detail_fetches": settings.max_concurrent_detail_fetches,
            "max_age_days": settings.max_age_days,
            "inter_page_delay_ms": settings.inter_page_delay_ms,
        },
    })

    # -------------------------------------------------------------------------
    # DRY RUN: no fetcher, one empty report per term
    # -------------------------------------------------------------------------
    if settings.skip_network:
        if fetcher is not None:
            await fetcher.aclose()
        reports = [TermReport(term=t) for t in settings.search_terms]
        return _finish(reports, started_at, start_ns)

    page_fetcher = fetcher or build_fetcher(settings)
    wait = sleep or asyncio.sleep

    reports: list[TermReport] = []
    async with page_fetcher:
        try:
            site_extractor = extractor or _default_extractor(settings.site)
        except KeyError as e:
            raise ConfigError(f"Unknown site {settings.site!r}: {e}") from e

        for term in settings.search_terms:
            reports.append(await _run_term(term, settings, page_fetcher, site_extractor, wait))

    return _finish(reports, started_at, start_ns)


def run_once(
    settings: Settings,
    *,
    fetcher: PageFetcher | None = None,
    extractor: BaseExtractor | None = None,
    sleep: Sleep | None = None,
) -> CrawlReport:
    """Synchronous wrapper around run_crawl (one event loop per call)."""
    return asyncio.run(run_crawl(settings, fetcher=fetcher, extractor=extractor, sleep=sleep))


# =============================================================================
# PER-TERM
# =============================================================================
async def _run_term(
    term: str,
    settings: Settings,
    fetcher: PageFetcher,
    extractor: BaseExtractor,
    sleep: Sleep,
) -> TermReport:
    t0 = time.perf_counter_ns()
    crawl = TermCrawl(term=term)
    error: str | None = None

    logging_bridge.activity({"component": "job_crawl.engine", "op": "term_start", "term": term})

    try:
        await paginate_term(
            crawl,
            fetcher=fetcher,
            extractor=extractor,
            max_items=settings.max_items_per_term,
            page_size=settings.page_size,
            concurrency=settings.max_concurrent_detail_fetches,
            delay_s=settings.inter_page_delay_s,
            sleep=sleep,
        )
    except Exception as e:
        error = repr(e)
        logging_bridge.error({
            "component": "job_crawl.engine",
            "op": "term_failed",
            "term": term,
            "offset": crawl.offset,
            "fetched": crawl.fetched,
            "error": error,
        })

    fresh = filter_recent(crawl.outcomes, settings.max_age_days)
    jobs = categorize(fresh)
    report = TermReport(
        term=term,
        jobs=jobs,
        failed=crawl.failed,
        fetched=crawl.fetched,
        pages=crawl.pages,
        stop_reason=crawl.stop_reason.value if crawl.stop_reason else None,
        error=error,
    )

    logging_bridge.activity({
        "component": "job_crawl.engine",
        "op": "term_done",
        "term": term,
        "fetched": report.fetched,
        "fresh": report.job_count,
        "failed": len(report.failed),
        "categories": {k: len(v) for k, v in jobs.items()},
        "stop_reason": report.stop_reason,
        "duration_us": int((time.perf_counter_ns() - t0) // 1000),
    })
    return report


def _finish(reports: list[TermReport], started_at: str, start_ns: int) -> CrawlReport:
    report = CrawlReport(terms=reports, started_at=started_at, finished_at=now_iso())
    logging_bridge.activity({
        "component": "job_crawl.engine",
        "op": "summary",
        "terms": len(reports),
        "jobs_by_term": {t.term: t.job_count for t in reports},
        "failed_total": report.failed_count,
        "errored_terms": [t.term for t in reports if t.error],
        "total_us": int((time.perf_counter_ns() - start_ns) // 1000),
    })
    return report
