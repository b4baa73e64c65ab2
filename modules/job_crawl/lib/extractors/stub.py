from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import fields
from urllib.parse import quote

from ..models import JobRecord
from .base import BaseExtractor, ExtractionError
from .registry import register

_RECORD_FIELDS = {f.name for f in fields(JobRecord)} - {"reference"}


@register
class StubExtractor(BaseExtractor):
    """
    A markup-free extractor used for tests and dry-runs.

    Page formats (JSON):
      - listing page: ["ref-1", "ref-2", ...]  or  {"references": [...]}
      - detail page:  {"title": "...", "location": "...", "posted_ago": "...", ...}
                      unknown keys are ignored; a missing/empty title is an ExtractionError.

    Listing URLs are synthetic (stub://listing/<term>?start=<n>) so a fake
    fetcher can serve them from a dict.
    """

    kind = "stub"

    def listing_url(self, term: str, start: int) -> str:
        return f"stub://listing/{quote(term)}?start={int(start)}"

    def extract_listing_references(self, raw: str) -> Iterator[str]:
        data = json.loads(raw or "[]")
        if isinstance(data, dict):
            data = data.get("references") or []
        if not isinstance(data, list):
            raise ValueError("stub listing page must be a JSON list")
        for ref in data:
            ref = str(ref).strip()
            if ref:
                yield ref

    def extract_detail_record(self, raw: str, reference: str) -> JobRecord:
        try:
            data = json.loads(raw or "{}")
        except json.JSONDecodeError as e:
            raise ExtractionError(f"detail page for {reference} is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise ExtractionError(f"detail page for {reference} must be a JSON object")

        title = str(data.get("title") or "").strip()
        if not title:
            raise ExtractionError(f"job title missing for {reference}")

        values = {k: v for k, v in data.items() if k in _RECORD_FIELDS}
        values["title"] = title
        values["easy_apply"] = bool(values.get("easy_apply", False))
        for k, v in list(values.items()):
            if k != "easy_apply":
                values[k] = "" if v is None else str(v)
        return JobRecord(reference=reference, **values)
