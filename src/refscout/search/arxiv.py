"""arXiv client over the export API Atom feed."""

import re
import xml.etree.ElementTree as ET
from typing import Optional

import requests

from refscout.models import Article, SearchIndex
from refscout.search.base import BibliographicSearchClient
from refscout.search.ratelimit import RateLimiter

NS = {
    "atom": "http://www.w3.org/2005/Atom",
    "arxiv": "http://arxiv.org/schemas/atom",
}


def _clean(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def parse_arxiv_feed(xml_text: str) -> list[Article]:
    """Parse an arXiv Atom feed. Entries without an id or title are skipped."""
    root = ET.fromstring(xml_text)
    articles = []
    for entry in root.findall("atom:entry", NS):
        id_url = entry.findtext("atom:id", default="", namespaces=NS)
        arxiv_id = re.sub(r"v\d+$", "", id_url.rsplit("/abs/", 1)[-1]).strip()
        title = _clean(entry.findtext("atom:title", default="", namespaces=NS))
        if not arxiv_id or not title:
            continue

        authors = []
        author_affiliations = {}
        for author in entry.findall("atom:author", NS):
            name = _clean(author.findtext("atom:name", default="", namespaces=NS))
            if not name:
                continue
            authors.append(name)
            affiliation = _clean(author.findtext("arxiv:affiliation", default="", namespaces=NS))
            if affiliation:
                author_affiliations[name] = affiliation

        published = entry.findtext("atom:published", default="", namespaces=NS)
        year = int(published[:4]) if published[:4].isdigit() else None
        categories = [c.get("term") for c in entry.findall("atom:category", NS) if c.get("term")]

        articles.append(
            Article(
                id=arxiv_id,
                title=title,
                authors=authors,
                year=year,
                author_affiliations=author_affiliations,
                abstract=_clean(entry.findtext("atom:summary", default="", namespaces=NS)),
                terms=categories,
                journal=_clean(entry.findtext("arxiv:journal_ref", default="", namespaces=NS)) or None,
                doi=_clean(entry.findtext("arxiv:doi", default="", namespaces=NS)) or None,
                index=SearchIndex.ARXIV,
            )
        )
    return articles


class ArxivClient(BibliographicSearchClient):
    """arXiv search. Queries without a field prefix are searched across all fields."""

    index = SearchIndex.ARXIV
    BASE_URL = "http://export.arxiv.org/api/query"

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(rate_limiter=rate_limiter, timeout=timeout, session=session)

    def _search(self, query: str, max_results: int) -> list[Article]:
        search_query = query if re.search(r"\b(all|au|ti|abs|cat|submittedDate):", query) else f"all:{query}"
        response = self._get(
            self.BASE_URL,
            params={
                "search_query": search_query,
                "start": 0,
                "max_results": max_results,
                "sortBy": "relevance",
                "sortOrder": "descending",
            },
        )
        return parse_arxiv_feed(response.text)
