"""PubMed client over the NCBI E-utilities (esearch + efetch)."""

import logging
import os
import re
import xml.etree.ElementTree as ET
from typing import Optional

import requests

from refscout.models import Article, SearchIndex
from refscout.search.base import BibliographicSearchClient
from refscout.search.ratelimit import RateLimiter

logger = logging.getLogger(__name__)

EFETCH_CHUNK_SIZE = 200


def _text(elem: Optional[ET.Element]) -> str:
    """Flatten mixed content (titles can contain <i>, <sup>...)."""
    if elem is None:
        return ""
    return re.sub(r"\s+", " ", "".join(elem.itertext())).strip()


def _parse_year(article_elem: ET.Element) -> Optional[int]:
    for path in (
        "MedlineCitation/Article/Journal/JournalIssue/PubDate/Year",
        "MedlineCitation/Article/ArticleDate/Year",
        "MedlineCitation/DateCompleted/Year",
        "MedlineCitation/DateRevised/Year",
    ):
        value = article_elem.findtext(path)
        if value and value.strip().isdigit():
            return int(value.strip())
    medline_date = article_elem.findtext("MedlineCitation/Article/Journal/JournalIssue/PubDate/MedlineDate")
    if medline_date:
        match = re.search(r"\b(19|20)\d{2}\b", medline_date)
        if match:
            return int(match.group(0))
    return None


def parse_pubmed_xml(xml_text: str) -> list[Article]:
    """Parse an efetch PubmedArticleSet document into Articles.

    Authors are kept in published order as "ForeName LastName" (collective
    names as-is); each author's first listed affiliation goes into
    ``author_affiliations``. Raises ET.ParseError on malformed XML.
    """
    root = ET.fromstring(xml_text)
    articles = []
    for pubmed_article in root.iter("PubmedArticle"):
        pmid = (pubmed_article.findtext("MedlineCitation/PMID") or "").strip()
        article_elem = pubmed_article.find("MedlineCitation/Article")
        if not pmid or article_elem is None:
            continue

        authors = []
        author_affiliations = {}
        for author in article_elem.findall("AuthorList/Author"):
            last = (author.findtext("LastName") or "").strip()
            fore = (author.findtext("ForeName") or author.findtext("Initials") or "").strip()
            name = f"{fore} {last}".strip() or (author.findtext("CollectiveName") or "").strip()
            if not name:
                continue
            authors.append(name)
            affiliation = _text(author.find("AffiliationInfo/Affiliation"))
            if affiliation:
                author_affiliations[name] = affiliation

        abstract = " ".join(_text(t) for t in article_elem.findall("Abstract/AbstractText"))
        terms = [_text(d) for d in pubmed_article.findall("MedlineCitation/MeshHeadingList/MeshHeading/DescriptorName")]
        terms += [_text(k) for k in pubmed_article.findall("MedlineCitation/KeywordList/Keyword")]

        doi = None
        for article_id in pubmed_article.findall("PubmedData/ArticleIdList/ArticleId"):
            if article_id.get("IdType") == "doi" and article_id.text:
                doi = article_id.text.strip()
                break

        articles.append(
            Article(
                id=pmid,
                title=_text(article_elem.find("ArticleTitle")),
                authors=authors,
                year=_parse_year(pubmed_article),
                author_affiliations=author_affiliations,
                abstract=abstract,
                terms=[t for t in terms if t],
                journal=_text(article_elem.find("Journal/Title")) or None,
                doi=doi,
                index=SearchIndex.PUBMED,
            )
        )
    return articles


class PubMedClient(BibliographicSearchClient):
    """PubMed search: esearch for PMIDs by relevance, then efetch XML for details."""

    index = SearchIndex.PUBMED
    BASE_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"

    def __init__(
        self,
        api_key: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(rate_limiter=rate_limiter, timeout=timeout, session=session)
        self.api_key = api_key or os.getenv("NCBI_API_KEY")

    def _params(self, **params) -> dict:
        if self.api_key:
            params["api_key"] = self.api_key
        return params

    def search_ids(self, query: str, max_results: int) -> list[str]:
        response = self._get(
            f"{self.BASE_URL}/esearch.fcgi",
            params=self._params(
                db="pubmed", term=query, retmax=max_results, retmode="json", sort="relevance"
            ),
        )
        data = response.json()
        return list(data.get("esearchresult", {}).get("idlist", []))

    def fetch_articles(self, pmids: list[str]) -> list[Article]:
        articles = []
        for i in range(0, len(pmids), EFETCH_CHUNK_SIZE):
            chunk = pmids[i : i + EFETCH_CHUNK_SIZE]
            response = self._get(
                f"{self.BASE_URL}/efetch.fcgi",
                params=self._params(db="pubmed", id=",".join(chunk), retmode="xml"),
            )
            text = response.text.strip()
            if not text.startswith("<"):
                raise ValueError(f"non-XML efetch response: {text[:80]!r}")
            articles.extend(parse_pubmed_xml(text))
        return articles

    def _search(self, query: str, max_results: int) -> list[Article]:
        pmids = self.search_ids(query, max_results)
        logger.debug("PubMed esearch returned %d ids", len(pmids))
        if not pmids:
            return []
        articles = self.fetch_articles(pmids)
        # efetch does not preserve relevance order
        order = {pmid: i for i, pmid in enumerate(pmids)}
        articles.sort(key=lambda a: order.get(a.id, len(order)))
        return articles
