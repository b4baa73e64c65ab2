# modules/job_crawl/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience. Importing `extractors`
# registers the built-in site adapters.
from .config import ConfigError, Settings
from .engine import run_crawl, run_once
from .extractors import BaseExtractor, ExtractionError
from .fetchers import PageFetcher, TransportError
from .models import CrawlReport, FailedRecord, JobRecord, TermReport

__all__ = [
    "BaseExtractor",
    "ConfigError",
    "CrawlReport",
    "ExtractionError",
    "FailedRecord",
    "JobRecord",
    "PageFetcher",
    "Settings",
    "TermReport",
    "TransportError",
    "run_crawl",
    "run_once",
]
