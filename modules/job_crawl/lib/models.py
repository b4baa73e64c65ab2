from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Union


@dataclass(frozen=True)
class JobRecord:
    """
    One successfully extracted detail page.
    All text fields are kept as the site rendered them (no parsing here);
    age and category are derived later by the recency filter and categorizer.
    """

    kind: ClassVar[str] = "job"

    reference: str  # originating href/URL, unique per term
    title: str
    company: str = ""
    company_link: str = ""
    location: str = ""
    address: str = ""
    applicants: str = ""
    posted_ago: str = ""  # e.g. "3 days ago"
    easy_apply: bool = False
    pay_range: str = ""
    employment_type: str = ""
    seniority_level: str = ""
    company_logo: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, **asdict(self)}


@dataclass(frozen=True)
class FailedRecord:
    """
    A detail fetch/extraction that did not produce a JobRecord.
    Kept in the term's outcomes so a single bad item never aborts the batch.
    """

    kind: ClassVar[str] = "failed"

    reference: str
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "reference": self.reference, "error": self.error}


Outcome = Union[JobRecord, FailedRecord]


@dataclass(frozen=True)
class TermReport:
    """
    Result for one search term.
    - jobs: category key -> records (fresh, successfully extracted only)
    - failed: FailedRecords seen while crawling the term (observability)
    """

    term: str
    jobs: dict[str, list[JobRecord]] = field(default_factory=dict)
    failed: list[FailedRecord] = field(default_factory=list)
    fetched: int = 0
    pages: int = 0
    stop_reason: str | None = None
    error: str | None = None

    @property
    def job_count(self) -> int:
        return sum(len(v) for v in self.jobs.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "term": self.term,
            "jobs": {key: [r.to_dict() for r in records] for key, records in self.jobs.items()},
            "failed": [f.to_dict() for f in self.failed],
            "fetched": self.fetched,
            "pages": self.pages,
            "stop_reason": self.stop_reason,
            "error": self.error,
        }


@dataclass(frozen=True)
class CrawlReport:
    """Ordered TermReports, one per configured search term (configuration order)."""

    terms: list[TermReport] = field(default_factory=list)
    started_at: str = ""
    finished_at: str = ""

    @property
    def job_count(self) -> int:
        return sum(t.job_count for t in self.terms)

    @property
    def failed_count(self) -> int:
        return sum(len(t.failed) for t in self.terms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "terms": [t.to_dict() for t in self.terms],
        }
