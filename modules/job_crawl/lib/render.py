from __future__ import annotations

from . import utils
from .models import CrawlReport, JobRecord, TermReport


def _row(r: JobRecord) -> str:
    link_html = f'<a href="{utils.esc(r.reference)}">open</a>'
    cells = [
        utils.esc(r.title or "(no title)"),
        utils.esc(r.company),
        utils.esc(r.location),
        utils.esc(r.posted_ago),
        utils.esc(r.pay_range),
        "yes" if r.easy_apply else "",
        link_html,
    ]
    return "<tr>" + "".join(f"<td>{c}</td>" for c in cells) + "</tr>"


def build_term_section(term: TermReport) -> str:
    """
    One section per term:
      <h3>{term}</h3>
      <h4>{category} (n)</h4>
      <table> Title | Company | Location | Posted | Pay | Easy apply | Link </table>
      ...
    """
    parts: list[str] = [f"<h3>{utils.esc(term.term)}</h3>"]
    if not term.jobs:
        parts.append("<p>No recent postings.</p>")
    for category, records in sorted(term.jobs.items()):
        table_html = (
            "<table border='1' cellspacing='0' cellpadding='6'>"
            "<tr><th>Title</th><th>Company</th><th>Location</th><th>Posted</th>"
            "<th>Pay</th><th>Easy apply</th><th>Link</th></tr>"
            + "".join(_row(r) for r in records)
            + "</table>"
        )
        parts.append(f"<h4>{utils.esc(category)} ({len(records)})</h4>\n{table_html}")
    if term.failed:
        parts.append(f"<p>{len(term.failed)} posting(s) could not be extracted.</p>")
    if term.error:
        parts.append(f"<p>Crawl ended early: {utils.esc(term.error)}</p>")
    return "\n".join(parts)


def build_tables(report: CrawlReport) -> str:
    """All term sections in configuration order."""
    return "\n".join(build_term_section(t) for t in report.terms)


def wrap_document(content_html: str, *, heading: str | None = None, intro: str | None = None) -> str:
    """Wrap sections in a minimal document with an optional heading and summary line."""
    parts: list[str] = ["<div>"]
    if heading:
        parts.append(f"<h2>{utils.esc(heading)}</h2>")
    if intro:
        parts.append(f"<p>{utils.esc(intro)}</p>")
    parts.append(content_html)
    parts.append("</div>")
    return "\n".join(parts)
