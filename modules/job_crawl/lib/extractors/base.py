from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator

from ..models import JobRecord


class ExtractionError(Exception):
    """Content was returned but the expected fields are absent."""


class BaseExtractor(ABC):
    """
    Site adapter: knows how to address a listing page and how to read both
    page types. It never fetches anything itself; the session hands it raw
    content obtained through a PageFetcher.

    Contract:
      - listing_url(term, start) builds the URL of the listing page at `start`.
      - extract_listing_references(raw) yields item references (href/id strings)
        lazily, in page order. Duplicates are tolerated; dedup happens upstream.
      - extract_detail_record(raw, reference) returns a JobRecord or raises
        ExtractionError. Other exceptions are treated as failures too, but
        ExtractionError is the documented signal.
    """

    # Concrete subclasses MUST set this to a stable string, e.g. "linkedin", "stub"
    kind: str = ""

    @abstractmethod
    def listing_url(self, term: str, start: int) -> str:
        raise NotImplementedError

    @abstractmethod
    def extract_listing_references(self, raw: str) -> Iterator[str]:
        raise NotImplementedError

    @abstractmethod
    def extract_detail_record(self, raw: str, reference: str) -> JobRecord:
        raise NotImplementedError
