from __future__ import annotations

import json
import os
from typing import Any

from .lib import render
from .lib.config import Settings
from .lib.engine import run_once as _run_engine
from .lib.logging_bridge import activity as log_activity
from .lib.models import CrawlReport
from .lib.utils import file_stamp


def run(**kwargs: Any) -> tuple[str, dict]:
    """
    Entry point for the 'job_crawl' module.

    Accepts kwargs (from scheduler/runner/CLI), see Settings.from_env_and_kwargs:
      search_terms, terms_path, max_items_per_term, page_size,
      max_concurrent_detail_fetches, max_age_days, inter_page_delay_ms,
      site, fetcher, proxy_endpoint, proxy_api_key_env, request_timeout_sec,
      report_dir, skip_network

    Returns:
      (html: str, meta: dict) - meta carries per-term counts, the report path
      (or None) and the full report under "report".
    """
    settings = Settings.from_env_and_kwargs(kwargs)

    report = _run_engine(settings)
    report_path = write_report(report, settings.report_dir) if settings.report_dir else None

    jobs_by_term = {t.term: t.job_count for t in report.terms}
    total = report.job_count
    message = f"{total} recent postings across {len(report.terms)} search terms"
    html = render.wrap_document(render.build_tables(report), heading="Job crawl", intro=message)

    meta = {
        "message": message,
        "subject": f"Job crawl: {total} recent postings",
        "jobs_total": total,
        "jobs_by_term": jobs_by_term,
        "failed_total": report.failed_count,
        "report_path": report_path,
        "report": report.to_dict(),
    }
    return html, meta


def write_report(report: CrawlReport, report_dir: str) -> str:
    """Write the report as crawl-<UTC stamp>.json under report_dir and return the path."""
    os.makedirs(report_dir, exist_ok=True)
    path = os.path.join(report_dir, f"crawl-{file_stamp()}.json")
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, ensure_ascii=False, indent=2)

    log_activity({
        "component": "job_crawl.main",
        "op": "report_written",
        "path": path,
        "terms": len(report.terms),
        "jobs_total": report.job_count,
    })
    return path
