import pytest

from modules.job_crawl.lib.models import FailedRecord, JobRecord
from modules.job_crawl.lib.recency import AgeBucket, AgeUnit, classify_age, filter_recent, is_fresh


@pytest.mark.parametrize(
    "text, unit, days",
    [
        ("5 days ago", AgeUnit.DAYS, 5),
        ("1 day ago", AgeUnit.DAYS, 1),
        ("6 weeks ago", AgeUnit.WEEKS, 42),
        ("2 months ago", AgeUnit.MONTHS, 60),
        ("Just now", AgeUnit.RECENT, 0),
        ("35 minutes ago", AgeUnit.RECENT, 0),
        ("3 hours ago", AgeUnit.RECENT, 0),
        ("Reposted 2 Weeks Ago", AgeUnit.WEEKS, 14),
    ],
)
def test_classify_age(text, unit, days):
    bucket = classify_age(text)
    assert bucket.unit is unit
    assert bucket.days == days


@pytest.mark.parametrize("text", ["", None, "yesterday", "a while back"])
def test_unparseable_text_has_no_age(text):
    bucket = classify_age(text)
    assert bucket.unit is AgeUnit.UNPARSEABLE
    assert bucket.days is None
    assert is_fresh(bucket, 365) is False


def test_freshness_boundary_is_inclusive():
    assert is_fresh(AgeBucket(AgeUnit.DAYS, 30), 30)
    assert not is_fresh(AgeBucket(AgeUnit.DAYS, 31), 30)
    assert is_fresh(AgeBucket(AgeUnit.RECENT), 0)


def test_filter_recent_keeps_fresh_jobs_in_order_and_drops_failures():
    a = JobRecord(reference="a", title="A", posted_ago="5 days ago")
    b = JobRecord(reference="b", title="B", posted_ago="6 weeks ago")
    c = JobRecord(reference="c", title="C", posted_ago="just now")
    d = JobRecord(reference="d", title="D", posted_ago="")
    failed = FailedRecord(reference="e", error="timeout")

    assert filter_recent([a, failed, b, c, d], 30) == [a, c]
