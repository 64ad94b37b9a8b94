"""Tests for the PubMed, arXiv and bioRxiv clients with a mocked HTTP session."""

from datetime import date
from unittest.mock import MagicMock

import pytest
import requests

from refscout.config import DiscoveryConfig
from refscout.errors import SearchError
from refscout.models import SearchIndex
from refscout.search import ArxivClient, BioRxivClient, PubMedClient, RateLimiter, create_clients
from refscout.search.arxiv import parse_arxiv_feed
from refscout.search.biorxiv import matches_query, query_terms, record_to_article
from refscout.search.pubmed import parse_pubmed_xml

PUBMED_XML = """<?xml version="1.0"?>
<PubmedArticleSet>
  <PubmedArticle>
    <MedlineCitation>
      <PMID>222</PMID>
      <Article>
        <Journal>
          <JournalIssue><PubDate><Year>2023</Year></PubDate></JournalIssue>
          <Title>The ISME Journal</Title>
        </Journal>
        <ArticleTitle>Phage <i>predation</i> in the ocean</ArticleTitle>
        <Abstract><AbstractText>Phages kill bacteria.</AbstractText></Abstract>
        <AuthorList>
          <Author>
            <LastName>Smith</LastName><ForeName>Jane Q</ForeName>
            <AffiliationInfo><Affiliation>Stanford University, Stanford, CA</Affiliation></AffiliationInfo>
          </Author>
          <Author><CollectiveName>Ocean Virome Consortium</CollectiveName></Author>
        </AuthorList>
      </Article>
      <MeshHeadingList>
        <MeshHeading><DescriptorName>Bacteriophages</DescriptorName></MeshHeading>
      </MeshHeadingList>
    </MedlineCitation>
    <PubmedData>
      <ArticleIdList><ArticleId IdType="doi">10.1038/ismej.2023.1</ArticleId></ArticleIdList>
    </PubmedData>
  </PubmedArticle>
  <PubmedArticle>
    <MedlineCitation>
      <PMID>111</PMID>
      <Article>
        <Journal>
          <JournalIssue><PubDate><MedlineDate>2019 Jan-Feb</MedlineDate></PubDate></JournalIssue>
        </Journal>
        <ArticleTitle>Lysogeny at sea</ArticleTitle>
        <AuthorList>
          <Author><LastName>Li</LastName><ForeName>Bo</ForeName></Author>
          <Author><LastName>Smith</LastName><Initials>JQ</Initials></Author>
        </AuthorList>
      </Article>
    </MedlineCitation>
  </PubmedArticle>
</PubmedArticleSet>
"""

ARXIV_FEED = """<?xml version="1.0"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:arxiv="http://arxiv.org/schemas/atom">
  <entry>
    <id>http://arxiv.org/abs/2301.01234v2</id>
    <published>2023-01-04T00:00:00Z</published>
    <title>Stochastic models of
      lysogeny</title>
    <summary>We model phage decisions.</summary>
    <author><name>Jane Smith</name><arxiv:affiliation>Stanford University</arxiv:affiliation></author>
    <author><name>Bo Li</name></author>
    <arxiv:doi>10.48550/xyz</arxiv:doi>
    <category term="q-bio.PE"/>
  </entry>
  <entry>
    <id>http://arxiv.org/abs/2302.00001v1</id>
    <title></title>
  </entry>
</feed>
"""

BIORXIV_RECORD = {
    "doi": "10.1101/2024.01.02.573001",
    "title": "Marine phage dynamics across seasons",
    "authors": "Smith, J.; Li, B.",
    "author_corresponding": "Bo Li",
    "author_corresponding_institution": "Salk Institute for Biological Studies",
    "date": "2024-01-03",
    "category": "microbiology",
    "abstract": "Seasonal turnover of phages.",
}


def _json_response(data):
    response = MagicMock()
    response.json.return_value = data
    return response


def _text_response(text):
    response = MagicMock()
    response.text = text
    return response


def _session(*responses, error=None):
    session = MagicMock()
    session.get.side_effect = error if error is not None else list(responses)
    return session


class TestParsePubmed:
    def test_fields(self):
        articles = {a.id: a for a in parse_pubmed_xml(PUBMED_XML)}
        first = articles["222"]
        assert first.title == "Phage predation in the ocean"
        assert first.authors == ["Jane Q Smith", "Ocean Virome Consortium"]
        assert first.author_affiliations == {"Jane Q Smith": "Stanford University, Stanford, CA"}
        assert first.year == 2023
        assert first.journal == "The ISME Journal"
        assert first.doi == "10.1038/ismej.2023.1"
        assert first.terms == ["Bacteriophages"]
        assert first.index == SearchIndex.PUBMED
        assert first.senior_author == "Ocean Virome Consortium"

    def test_medline_date_and_initials(self):
        articles = {a.id: a for a in parse_pubmed_xml(PUBMED_XML)}
        assert articles["111"].year == 2019
        assert articles["111"].authors == ["Bo Li", "JQ Smith"]


class TestPubMedClient:
    def test_search_preserves_relevance_order(self):
        session = _session(
            _json_response({"esearchresult": {"idlist": ["111", "222"]}}),
            _text_response(PUBMED_XML),
        )
        client = PubMedClient(api_key="k", rate_limiter=RateLimiter(delay=0), session=session, timeout=5)
        articles = client.search_or_raise("phage[Title]", max_results=10)

        assert [a.id for a in articles] == ["111", "222"]
        esearch = session.get.call_args_list[0]
        assert esearch.args[0].endswith("/esearch.fcgi")
        assert esearch.kwargs["params"]["term"] == "phage[Title]"
        assert esearch.kwargs["params"]["api_key"] == "k"
        assert esearch.kwargs["timeout"] == 5
        efetch = session.get.call_args_list[1]
        assert efetch.kwargs["params"]["id"] == "111,222"

    def test_no_ids_skips_efetch(self):
        session = _session(_json_response({"esearchresult": {"idlist": []}}))
        client = PubMedClient(rate_limiter=RateLimiter(delay=0), session=session)
        assert client.search_or_raise("nothing") == []
        assert session.get.call_count == 1

    def test_timeout_raises_search_error(self):
        client = PubMedClient(
            rate_limiter=RateLimiter(delay=0), session=_session(error=requests.Timeout("read timed out"))
        )
        with pytest.raises(SearchError) as exc_info:
            client.search_or_raise("phage")
        assert exc_info.value.index == "pubmed"
        assert "timed out" in exc_info.value.message

    def test_http_error(self):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
        client = PubMedClient(rate_limiter=RateLimiter(delay=0), session=_session(response))
        with pytest.raises(SearchError):
            client.search_or_raise("phage")

    def test_malformed_xml(self):
        session = _session(
            _json_response({"esearchresult": {"idlist": ["1"]}}),
            _text_response("<PubmedArticleSet><PubmedArticle>"),
        )
        client = PubMedClient(rate_limiter=RateLimiter(delay=0), session=session)
        with pytest.raises(SearchError) as exc_info:
            client.search_or_raise("phage")
        assert "malformed response" in exc_info.value.message

    def test_search_degrades_to_empty(self):
        client = PubMedClient(
            rate_limiter=RateLimiter(delay=0), session=_session(error=requests.ConnectionError("refused"))
        )
        assert client.search("phage") == []

    def test_empty_query_makes_no_request(self):
        session = _session()
        client = PubMedClient(rate_limiter=RateLimiter(delay=0), session=session)
        assert client.search_or_raise("  ") == []
        session.get.assert_not_called()


class TestArxiv:
    def test_parse_feed(self):
        articles = parse_arxiv_feed(ARXIV_FEED)
        assert len(articles) == 1
        article = articles[0]
        assert article.id == "2301.01234"
        assert article.title == "Stochastic models of lysogeny"
        assert article.authors == ["Jane Smith", "Bo Li"]
        assert article.author_affiliations == {"Jane Smith": "Stanford University"}
        assert article.year == 2023
        assert article.terms == ["q-bio.PE"]
        assert article.doi == "10.48550/xyz"
        assert article.url == "https://arxiv.org/abs/2301.01234"

    def test_adds_all_prefix(self):
        session = _session(_text_response(ARXIV_FEED))
        client = ArxivClient(rate_limiter=RateLimiter(delay=0), session=session)
        client.search_or_raise("phage lysogeny", max_results=5)
        params = session.get.call_args.kwargs["params"]
        assert params["search_query"] == "all:phage lysogeny"
        assert params["max_results"] == 5

    def test_keeps_field_prefix(self):
        session = _session(_text_response(ARXIV_FEED))
        client = ArxivClient(rate_limiter=RateLimiter(delay=0), session=session)
        client.search_or_raise('au:"Jane Smith"')
        assert session.get.call_args.kwargs["params"]["search_query"] == 'au:"Jane Smith"'


class TestBioRxiv:
    def test_record_to_article(self):
        article = record_to_article(BIORXIV_RECORD)
        assert article.id == "10.1101/2024.01.02.573001"
        assert article.authors == ["J. Smith", "B. Li"]
        assert article.corresponding_author == "Bo Li"
        assert article.senior_author == "Bo Li"
        assert article.affiliation == "Salk Institute for Biological Studies"
        assert article.year == 2024

    def test_corresponding_author_appended_when_missing(self):
        article = record_to_article({**BIORXIV_RECORD, "author_corresponding": "Ann Lee"})
        assert article.authors[-1] == "Ann Lee"

    def test_query_matching(self):
        terms = query_terms("marine phage ecology")
        assert matches_query(BIORXIV_RECORD, terms)
        assert not matches_query({"title": "Cardiac surgery"}, terms)
        assert not matches_query(BIORXIV_RECORD, [])

    def test_search_filters_client_side(self):
        unrelated = {**BIORXIV_RECORD, "doi": "10.1101/x", "title": "Cardiac surgery", "abstract": ""}
        session = _session(_json_response({"collection": [BIORXIV_RECORD, unrelated]}))
        client = BioRxivClient(rate_limiter=RateLimiter(delay=0), session=session, today=date(2025, 6, 1))
        articles = client.search_or_raise("marine phage")

        assert [a.id for a in articles] == ["10.1101/2024.01.02.573001"]
        assert session.get.call_args.args[0].endswith("/2025-06-01/0/json")


class TestCreateClients:
    def test_one_client_per_index(self, monkeypatch):
        monkeypatch.delenv("NCBI_API_KEY", raising=False)
        clients = create_clients(DiscoveryConfig(index_delay=0.5, request_timeout=7))
        assert set(clients) == set(SearchIndex)
        limiters = {id(c.rate_limiter) for c in clients.values()}
        assert len(limiters) == 1
        assert clients[SearchIndex.PUBMED].rate_limiter.delay_for("pubmed") == 0.5
        assert clients[SearchIndex.ARXIV].timeout == 7

    def test_api_key_speeds_up_pubmed_only(self, monkeypatch):
        monkeypatch.setenv("NCBI_API_KEY", "secret")
        limiter = create_clients(DiscoveryConfig())[SearchIndex.PUBMED].rate_limiter
        assert limiter.delay_for("pubmed") == 0.1
        assert limiter.delay_for("arxiv") == 0.4
