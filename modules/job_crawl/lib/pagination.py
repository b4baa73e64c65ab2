"""
Pagination driver: walks one search term's listing in fixed-size pages.

Per iteration:
  FETCHING_LISTING -> EXTRACTING_REFS -> DETAIL_FETCHING -> ACCUMULATING -> loop | STOP

Stops when
  - the listing fetch/extraction for the current offset fails (partial results kept),
  - no reference on the page is new for this term (exhausted or repeated page),
  - the per-term cap of newly fetched references is reached.

Pages are requested strictly in increasing-offset order, one at a time: each
page's dedup decision depends on everything accumulated before it.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from . import logging_bridge
from .concurrency import ItemFailure, run_bounded
from .extractors.base import BaseExtractor, ExtractionError
from .fetchers import PageFetcher
from .models import FailedRecord, Outcome

Sleep = Callable[[float], Awaitable[None]]


class StopReason(str, Enum):
    LISTING_FAILED = "listing_failed"
    NO_NEW_REFERENCES = "no_new_references"
    CAP_REACHED = "cap_reached"


@dataclass
class TermCrawl:
    """
    Mutable accumulator for one term. The driver appends to it as it goes, so
    a caller that catches an unexpected error still holds the partial outcomes.
    """

    term: str
    outcomes: list[Outcome] = field(default_factory=list)
    seen: set[str] = field(default_factory=set)
    offset: int = 0
    pages: int = 0
    stop_reason: StopReason | None = None

    @property
    def fetched(self) -> int:
        return len(self.outcomes)

    @property
    def failed(self) -> list[FailedRecord]:
        return [o for o in self.outcomes if isinstance(o, FailedRecord)]


async def paginate_term(
    crawl: TermCrawl,
    *,
    fetcher: PageFetcher,
    extractor: BaseExtractor,
    max_items: int,
    page_size: int,
    concurrency: int,
    delay_s: float = 0.0,
    sleep: Sleep = asyncio.sleep,
) -> TermCrawl:
    """Drive `crawl` to a STOP state. Returns the same accumulator for convenience."""
    term = crawl.term

    async def _detail(reference: str) -> Outcome:
        raw = await fetcher.fetch_page(reference)
        try:
            return extractor.extract_detail_record(raw, reference)
        except ExtractionError as e:
            return FailedRecord(reference=reference, error=str(e))

    while True:
        # FETCHING_LISTING / EXTRACTING_REFS
        url = extractor.listing_url(term, crawl.offset)
        t0 = time.perf_counter_ns()
        try:
            raw_listing = await fetcher.fetch_page(url)
            new_refs = _dedupe(extractor.extract_listing_references(raw_listing), crawl.seen)
        except Exception as e:
            logging_bridge.error({
                "component": "job_crawl.pagination",
                "op": "listing_failed",
                "term": term,
                "offset": crawl.offset,
                "error": repr(e),
            })
            crawl.stop_reason = StopReason.LISTING_FAILED
            break

        if not new_refs:
            crawl.stop_reason = StopReason.NO_NEW_REFERENCES
            break

        remaining = max_items - crawl.fetched
        new_refs = new_refs[:remaining]
        crawl.seen.update(new_refs)
        crawl.offset += page_size

        # DETAIL_FETCHING
        results = await run_bounded(new_refs, concurrency, _detail)

        # ACCUMULATING
        page_outcomes: list[Outcome] = [
            FailedRecord(reference=ref, error=result.error) if isinstance(result, ItemFailure) else result
            for ref, result in zip(new_refs, results)
        ]
        crawl.outcomes.extend(page_outcomes)
        crawl.pages += 1

        logging_bridge.activity({
            "component": "job_crawl.pagination",
            "op": "listing_page",
            "term": term,
            "page": crawl.pages,
            "next_offset": crawl.offset,
            "new_refs": len(new_refs),
            "fetched_total": crawl.fetched,
            "failed_on_page": sum(1 for o in page_outcomes if isinstance(o, FailedRecord)),
            "duration_us": int((time.perf_counter_ns() - t0) // 1000),
        })

        if crawl.fetched >= max_items:
            crawl.stop_reason = StopReason.CAP_REACHED
            break

        if delay_s > 0:
            await sleep(delay_s)

    logging_bridge.activity({
        "component": "job_crawl.pagination",
        "op": "term_stop",
        "term": term,
        "reason": crawl.stop_reason.value if crawl.stop_reason else None,
        "pages": crawl.pages,
        "fetched": crawl.fetched,
    })
    return crawl


def _dedupe(references, seen: set[str]) -> list[str]:
    """New references in page order: not in `seen` and not repeated on the page."""
    out: list[str] = []
    page_seen: set[str] = set()
    for ref in references:
        if ref in seen or ref in page_seen:
            continue
        page_seen.add(ref)
        out.append(ref)
    return out
