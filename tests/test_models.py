"""Tests for the core data models."""

from refscout.models import (
    AnalysisResult,
    Article,
    Candidate,
    CandidateSource,
    Coauthorship,
    DiscoveryResult,
    ProposalInfo,
    SearchIndex,
    SuggestedReviewer,
    SuggestionSource,
    VerificationStatus,
)


class TestEnums:
    def test_status_rank(self):
        ranks = [s.rank for s in (VerificationStatus.VERIFIED, VerificationStatus.DISCOVERED, VerificationStatus.UNVERIFIED)]
        assert ranks == [0, 1, 2]

    def test_suggestion_source_parse(self):
        assert SuggestionSource.parse("Mentioned in proposal") == SuggestionSource.MENTIONED_IN_PROPOSAL
        assert SuggestionSource.parse("**References**") == SuggestionSource.REFERENCES
        assert SuggestionSource.parse("Field leader") == SuggestionSource.FIELD_LEADER
        assert SuggestionSource.parse("Known expert") == SuggestionSource.KNOWN_EXPERT
        assert SuggestionSource.parse(None) == SuggestionSource.UNKNOWN
        assert SuggestionSource.parse("gut feeling") == SuggestionSource.UNKNOWN

    def test_index_label(self):
        assert SearchIndex.BIORXIV.label == "bioRxiv"


class TestArticle:
    def test_url(self):
        assert Article(id="123", title="t", index=SearchIndex.PUBMED).url == "https://pubmed.ncbi.nlm.nih.gov/123"
        assert Article(id="10.1101/x", title="t", doi="10.1101/x", index=SearchIndex.BIORXIV).url == (
            "https://doi.org/10.1101/x"
        )
        assert Article(id="x", title="t").url is None

    def test_senior_author(self):
        assert Article(id="1", title="t", authors=["A B", "C D"]).senior_author == "C D"
        assert Article(id="1", title="t", authors=["A B"], corresponding_author="E F").senior_author == "E F"
        assert Article(id="1", title="t").senior_author is None

    def test_searchable_text(self):
        article = Article(id="1", title="Phage", abstract="Ocean", terms=["Viruses"])
        assert article.searchable_text == "phage ocean viruses"


class TestCandidate:
    def test_to_dict_from_dict_roundtrip(self):
        candidate = Candidate(
            name="Jane Smith",
            status=VerificationStatus.VERIFIED,
            source=CandidateSource.SUGGESTION,
            name_variants=["Jane Smith", "J. Smith"],
            affiliation="Stanford University",
            articles=[Article(id="1", title="Phage", authors=["Jane Smith"], year=2024, index=SearchIndex.PUBMED)],
            confidence=0.75,
            suggestion_source=SuggestionSource.REFERENCES,
            found_via=[SearchIndex.PUBMED],
            has_coauthor_coi=True,
            coauthorships=[Coauthorship("Robert Chen", 1, ["Phage"])],
        )
        d = candidate.to_dict()
        assert d["article_count"] == 1
        assert d["status"] == "verified"
        assert d["articles"][0]["url"] == "https://pubmed.ncbi.nlm.nih.gov/1"

        restored = Candidate.from_dict(d)
        assert restored.name == candidate.name
        assert restored.status == candidate.status
        assert restored.articles[0].index == SearchIndex.PUBMED
        assert restored.coauthorships[0].proposal_author == "Robert Chen"
        assert restored.found_via == [SearchIndex.PUBMED]


class TestAnalysisResult:
    def test_search_queries_flattened_in_index_order(self):
        result = AnalysisResult(
            queries={SearchIndex.BIORXIV: ["b"], SearchIndex.PUBMED: ["p1", "p2"], SearchIndex.ARXIV: []}
        )
        assert [(q.index, q.text) for q in result.search_queries()] == [
            (SearchIndex.PUBMED, "p1"),
            (SearchIndex.PUBMED, "p2"),
            (SearchIndex.BIORXIV, "b"),
        ]

    def test_roundtrip(self):
        result = AnalysisResult(
            proposal=ProposalInfo(title="T", authors=("A B",), keywords=("k",)),
            suggestions=[SuggestedReviewer(name="Jane Smith", source=SuggestionSource.FIELD_LEADER)],
            queries={SearchIndex.PUBMED: ["q"], SearchIndex.ARXIV: [], SearchIndex.BIORXIV: []},
        )
        restored = AnalysisResult.from_dict(result.to_dict())
        assert restored.proposal == result.proposal
        assert restored.suggestions[0].source == SuggestionSource.FIELD_LEADER
        assert restored.queries[SearchIndex.PUBMED] == ["q"]


def test_discovery_result_degraded():
    assert not DiscoveryResult().degraded
    result = DiscoveryResult(warnings=["PubMed query failed"])
    assert result.degraded
    assert result.to_dict()["degraded"] is True
