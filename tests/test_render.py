from modules.job_crawl.lib import render
from modules.job_crawl.lib.models import CrawlReport, FailedRecord, JobRecord, TermReport


def _job(**kw):
    base = {"reference": "https://example.com/jobs/1", "title": "Engineer", "company": "Acme", "posted_ago": "1 day ago"}
    base.update(kw)
    return JobRecord(**base)


def test_term_section_has_category_headings_and_rows():
    term = TermReport(
        term="python developer",
        jobs={"United States": [_job(), _job(reference="https://example.com/jobs/2", easy_apply=True)]},
    )
    html = render.build_term_section(term)

    assert "<h3>python developer</h3>" in html
    assert "<h4>United States (2)</h4>" in html
    assert html.count("<tr><td>") == 2
    assert '<a href="https://example.com/jobs/2">open</a>' in html


def test_empty_term_and_failure_notes():
    term = TermReport(
        term="data analyst",
        failed=[FailedRecord(reference="x", error="HTTP 404")],
        error="RuntimeError('boom')",
    )
    html = render.build_term_section(term)
    assert "No recent postings." in html
    assert "1 posting(s) could not be extracted." in html
    assert "Crawl ended early" in html


def test_text_is_escaped():
    evil = _job(title="<script>alert(1)</script>", company='A "quoted" & co', reference='javascript:"x"')
    term = TermReport(term="<b>term</b>", jobs={"<i>Region</i>": [evil]})
    html = render.build_term_section(term)

    assert "<script>" not in html
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html
    assert "&lt;b&gt;term&lt;/b&gt;" in html
    assert "&lt;i&gt;Region&lt;/i&gt;" in html
    assert "A &quot;quoted&quot; &amp; co" in html


def test_wrap_document_with_heading_and_intro():
    report = CrawlReport(terms=[TermReport(term="a"), TermReport(term="b")])
    html = render.wrap_document(render.build_tables(report), heading="Job crawl", intro="0 recent postings")

    assert html.startswith("<div>")
    assert "<h2>Job crawl</h2>" in html
    assert html.index("<h3>a</h3>") < html.index("<h3>b</h3>")
