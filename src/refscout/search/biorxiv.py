"""bioRxiv client.

The bioRxiv details API only lists preprints by date range, so keyword
matching happens client-side over title, abstract and category.
"""

import logging
import re
from datetime import date, timedelta
from typing import Optional

import requests

from refscout.models import Article, SearchIndex
from refscout.names import names_match
from refscout.search.base import BibliographicSearchClient
from refscout.search.ratelimit import RateLimiter

logger = logging.getLogger(__name__)


def query_terms(query: str) -> list[str]:
    return [t for t in re.split(r"\s+", query.lower().replace('"', " ")) if len(t) > 2]


def matches_query(record: dict, terms: list[str]) -> bool:
    """At least min(2, len(terms)) query terms must appear in the record."""
    if not terms:
        return False
    text = " ".join(
        [record.get("title") or "", record.get("abstract") or "", record.get("category") or ""]
    ).lower()
    hits = sum(1 for t in terms if t in text)
    return hits >= min(2, len(terms))


def _reorder(author: str) -> str:
    """bioRxiv lists authors as "Smith, J. Q."; convert to "J. Q. Smith"."""
    last, sep, given = author.partition(",")
    if not sep:
        return author.strip()
    return f"{given.strip()} {last.strip()}".strip()


def record_to_article(record: dict) -> Article:
    corresponding = (record.get("author_corresponding") or "").strip() or None
    institution = (record.get("author_corresponding_institution") or "").strip() or None
    authors = [_reorder(a) for a in (record.get("authors") or "").split(";") if a.strip()]
    if corresponding and not any(names_match(corresponding, a) for a in authors):
        authors.append(corresponding)
    date_str = record.get("date") or ""
    author_affiliations = {corresponding: institution} if corresponding and institution else {}
    return Article(
        id=record.get("doi") or "",
        title=(record.get("title") or "").strip(),
        authors=authors,
        year=int(date_str[:4]) if date_str[:4].isdigit() else None,
        affiliation=institution,
        author_affiliations=author_affiliations,
        abstract=(record.get("abstract") or "").strip(),
        terms=[record["category"]] if record.get("category") else [],
        doi=record.get("doi") or None,
        index=SearchIndex.BIORXIV,
        corresponding_author=corresponding,
    )


class BioRxivClient(BibliographicSearchClient):
    """bioRxiv search over the most recent ``window_years`` of preprints.

    Args:
        window_years: How far back the date-range listing reaches.
        max_pages: Listing pages (100 records each) to scan per query.
        today: Injectable end date for the listing window.
    """

    index = SearchIndex.BIORXIV
    BASE_URL = "https://api.biorxiv.org/details/biorxiv"
    PAGE_SIZE = 100

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
        window_years: int = 2,
        max_pages: int = 1,
        today: Optional[date] = None,
    ):
        super().__init__(rate_limiter=rate_limiter, timeout=timeout, session=session)
        self.window_years = window_years
        self.max_pages = max_pages
        self.today = today

    def _search(self, query: str, max_results: int) -> list[Article]:
        end = self.today or date.today()
        start = end - timedelta(days=365 * self.window_years)
        terms = query_terms(query)

        articles = []
        for page in range(self.max_pages):
            url = f"{self.BASE_URL}/{start.isoformat()}/{end.isoformat()}/{page * self.PAGE_SIZE}/json"
            data = self._get(url).json()
            collection = data.get("collection") or []
            for record in collection:
                if matches_query(record, terms) and record.get("doi"):
                    articles.append(record_to_article(record))
                    if len(articles) >= max_results:
                        return articles
            if len(collection) < self.PAGE_SIZE:
                break
        logger.debug("bioRxiv: %d matches for %r in %s..%s", len(articles), query, start, end)
        return articles
