# modules/job_crawl/lib/extractors/__init__.py
from __future__ import annotations

# Importing the adapters registers them with the registry.
from .base import BaseExtractor, ExtractionError
from .linkedin import LinkedInExtractor
from .registry import all_kinds, get, register
from .stub import StubExtractor

__all__ = [
    "BaseExtractor",
    "ExtractionError",
    "LinkedInExtractor",
    "StubExtractor",
    "all_kinds",
    "get",
    "register",
]
