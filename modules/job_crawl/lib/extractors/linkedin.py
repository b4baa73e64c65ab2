# modules/job_crawl/lib/extractors/linkedin.py
from __future__ import annotations

from collections.abc import Iterator
from urllib.parse import urlencode

from bs4 import BeautifulSoup  # pip install beautifulsoup4 html5lib

from ..models import JobRecord
from .base import BaseExtractor, ExtractionError
from .registry import register

NOT_SPECIFIED = "Not specified"


def _text(soup: BeautifulSoup, selector: str) -> str:
    el = soup.select_one(selector)
    return el.get_text(" ", strip=True) if el else ""


def _attr(soup: BeautifulSoup, selector: str, attribute: str) -> str:
    el = soup.select_one(selector)
    if not el:
        return ""
    return str(el.get(attribute) or "").strip()


@register
class LinkedInExtractor(BaseExtractor):
    """
    Public (logged-out) LinkedIn job search.

    Listing pages:  /jobs/search/?keywords=<term>&start=<offset>
                    each result is a `.job-search-card` with an `a.base-card__full-link`.
    Detail pages:   top card + job criteria list inside `.details.mx-details-container-padding`.

    References are the hrefs exactly as the listing renders them.
    """

    kind = "linkedin"
    _BASE = "https://www.linkedin.com/jobs/search/"

    def __init__(self, base_url: str | None = None) -> None:
        self.base_url = base_url or self._BASE

    def listing_url(self, term: str, start: int) -> str:
        return f"{self.base_url}?{urlencode({'keywords': term, 'start': int(start)})}"

    def extract_listing_references(self, raw: str) -> Iterator[str]:
        soup = BeautifulSoup(raw or "", "html5lib")
        for card in soup.select(".job-search-card"):
            link = card.select_one("a.base-card__full-link")
            href = str(link.get("href") or "").strip() if link else ""
            if href:
                yield href

    def extract_detail_record(self, raw: str, reference: str) -> JobRecord:
        soup = BeautifulSoup(raw or "", "html5lib")

        if soup.select_one(".details.mx-details-container-padding") is None:
            raise ExtractionError(f"detail container missing for {reference}")

        title = _text(soup, ".top-card-layout__title")
        if not title:
            raise ExtractionError(f"job title missing for {reference}")

        company_tag = soup.select_one(".topcard__org-name-link, .top-card-layout__subtitle > a")
        if company_tag is not None:
            company = company_tag.get_text(" ", strip=True)
            company_link = str(company_tag.get("href") or "").strip()
        else:
            company = NOT_SPECIFIED
            company_link = NOT_SPECIFIED

        # Criteria list order on the page: seniority level, employment type, job function, industries
        criteria = [el.get_text(" ", strip=True) for el in soup.select(".description__job-criteria-text")]
        seniority_level, employment_type = (criteria + ["", ""])[:2]

        return JobRecord(
            reference=reference,
            title=title,
            company=company,
            company_link=company_link,
            location=_text(soup, ".topcard__flavor--bullet, .top-card-layout__first-subline"),
            address=_text(soup, ".top-card-layout__second-subline"),
            applicants=_text(soup, ".num-applicants__caption"),
            posted_ago=_text(soup, ".posted-time-ago__text, .topcard__flavor--metadata"),
            easy_apply=soup.select_one(".apply-button") is not None,
            pay_range=_text(soup, ".compensation__salary"),
            employment_type=employment_type,
            seniority_level=seniority_level,
            company_logo=_attr(soup, '[data-tracking-control-name="public_jobs_topcard_logo"] img', "src"),
        )
