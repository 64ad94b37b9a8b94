"""Shared pytest configuration and fixtures."""

import threading
from unittest.mock import MagicMock

import pytest

from refscout.models import (
    AnalysisResult,
    Article,
    Candidate,
    CandidateSource,
    ProposalInfo,
    SearchIndex,
    SuggestedReviewer,
    VerificationStatus,
)
from refscout.search.base import BibliographicSearchClient
from refscout.search.ratelimit import RateLimiter

CURRENT_YEAR = 2025

# ---------------------------------------------------------------------------
# FakeSearchClient: in-memory index with no network and no pacing
# ---------------------------------------------------------------------------


class FakeSearchClient(BibliographicSearchClient):
    """Search client that answers from a handler instead of HTTP.

    ``handler(query)`` returns a list of articles or raises. Without a handler
    every query returns ``articles``. All queries are recorded.
    """

    def __init__(self, index, articles=None, handler=None, error=None):
        super().__init__(rate_limiter=RateLimiter(delay=0), session=MagicMock())
        self.index = index
        self.articles = list(articles or [])
        self.handler = handler
        self.error = error
        self.queries = []
        self._lock = threading.Lock()

    def _search(self, query, max_results):
        with self._lock:
            self.queries.append(query)
        if self.error is not None:
            raise self.error
        if self.handler is not None:
            return self.handler(query)
        return list(self.articles)


class FakeLLM:
    """LLM stand-in returning canned responses in order."""

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.prompts = []

    def complete(self, prompt, max_tokens=4096, temperature=0.0):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if not self.responses:
            return ""
        return self.responses.pop(0)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_article(id, title="Untitled", authors=None, year=CURRENT_YEAR - 1, **kwargs):
    kwargs.setdefault("index", SearchIndex.PUBMED)
    return Article(id=id, title=title, authors=list(authors or []), year=year, **kwargs)


def make_candidate(name, status=VerificationStatus.VERIFIED, articles=None, **kwargs):
    source = kwargs.pop(
        "source",
        CandidateSource.TOPIC_SEARCH if status == VerificationStatus.DISCOVERED else CandidateSource.SUGGESTION,
    )
    return Candidate(name=name, status=status, source=source, articles=list(articles or []), **kwargs)


@pytest.fixture
def article_factory():
    return make_article


@pytest.fixture
def candidate_factory():
    return make_candidate


@pytest.fixture
def fake_client():
    return FakeSearchClient


@pytest.fixture
def fake_llm():
    return FakeLLM


@pytest.fixture
def proposal():
    return ProposalInfo(
        title="Phage predation and marine microbial community dynamics",
        authors=("Alice Walker", "Robert Chen"),
        institution="University of Michigan",
        primary_area="marine viral ecology",
        secondary_areas=("microbial community dynamics",),
        methodologies="metagenomics, mathematical modeling",
        keywords=("bacteriophage", "marine microbiome"),
    )


@pytest.fixture
def analysis(proposal):
    return AnalysisResult(
        proposal=proposal,
        suggestions=[
            SuggestedReviewer(
                name="Jane Q. Smith",
                expertise_areas=["marine viral ecology", "phage biology"],
                seniority="Senior",
                reasoning="Leads marine phage ecology work.",
                institution="Stanford University",
            ),
        ],
        queries={
            SearchIndex.PUBMED: ["marine bacteriophage ecology"],
            SearchIndex.ARXIV: [],
            SearchIndex.BIORXIV: [],
        },
    )
