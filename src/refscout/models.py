"""Core data models for reviewer discovery."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional


class VerificationStatus(str, Enum):
    """How well a candidate is backed by bibliographic evidence."""

    VERIFIED = "verified"
    DISCOVERED = "discovered"
    UNVERIFIED = "unverified"

    @property
    def rank(self) -> int:
        """Ordering used for tie-breaks (lower sorts first)."""
        return _STATUS_RANK[self]


_STATUS_RANK = {
    VerificationStatus.VERIFIED: 0,
    VerificationStatus.DISCOVERED: 1,
    VerificationStatus.UNVERIFIED: 2,
}


class CandidateSource(str, Enum):
    """Which track produced a candidate."""

    SUGGESTION = "suggestion"
    TOPIC_SEARCH = "topic_search"


class SuggestionSource(str, Enum):
    """Where the LLM says it found a suggested reviewer."""

    KNOWN_EXPERT = "known expert"
    REFERENCES = "references"
    MENTIONED_IN_PROPOSAL = "mentioned in proposal"
    FIELD_LEADER = "field leader"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, text: Optional[str]) -> SuggestionSource:
        """Map free-form source text ("Mentioned in proposal", "**References**") to a member."""
        if not text:
            return cls.UNKNOWN
        lowered = text.strip().strip("*\"'[]").lower()
        if "mention" in lowered or "proposal" in lowered:
            return cls.MENTIONED_IN_PROPOSAL
        if "reference" in lowered or "cited" in lowered or "citation" in lowered:
            return cls.REFERENCES
        if "leader" in lowered:
            return cls.FIELD_LEADER
        if "expert" in lowered or "known" in lowered:
            return cls.KNOWN_EXPERT
        return cls.UNKNOWN


class SearchIndex(str, Enum):
    """Supported bibliographic indices."""

    PUBMED = "pubmed"
    ARXIV = "arxiv"
    BIORXIV = "biorxiv"

    @property
    def label(self) -> str:
        return {"pubmed": "PubMed", "arxiv": "arXiv", "biorxiv": "bioRxiv"}[self.value]


@dataclass(frozen=True)
class ProposalInfo:
    """Proposal metadata extracted by the analysis stage. Read-only to the engine."""

    title: str = ""
    authors: tuple[str, ...] = ()
    institution: str = ""
    primary_area: str = ""
    secondary_areas: tuple[str, ...] = ()
    methodologies: str = ""
    keywords: tuple[str, ...] = ()
    abstract: str = ""

    @property
    def expertise_terms(self) -> list[str]:
        """Expertise areas used to score discovered candidates."""
        terms = []
        if self.primary_area:
            terms.append(self.primary_area)
        terms.extend(self.secondary_areas)
        terms.extend(self.keywords)
        return terms

    def to_dict(self) -> dict:
        d = asdict(self)
        d["authors"] = list(self.authors)
        d["secondary_areas"] = list(self.secondary_areas)
        d["keywords"] = list(self.keywords)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> ProposalInfo:
        return cls(
            title=d.get("title", ""),
            authors=tuple(d.get("authors", ())),
            institution=d.get("institution", ""),
            primary_area=d.get("primary_area", ""),
            secondary_areas=tuple(d.get("secondary_areas", ())),
            methodologies=d.get("methodologies", ""),
            keywords=tuple(d.get("keywords", ())),
            abstract=d.get("abstract", ""),
        )


@dataclass
class SuggestedReviewer:
    """A reviewer proposed by the LLM analysis stage (Track A input)."""

    name: str
    expertise_areas: list[str] = field(default_factory=list)
    seniority: str = ""
    reasoning: str = ""
    source: SuggestionSource = SuggestionSource.UNKNOWN
    institution: str = ""
    concerns: str = ""

    def to_dict(self) -> dict:
        d = asdict(self)
        d["source"] = self.source.value
        return d

    @classmethod
    def from_dict(cls, d: dict) -> SuggestedReviewer:
        return cls(
            name=d["name"],
            expertise_areas=list(d.get("expertise_areas", [])),
            seniority=d.get("seniority", ""),
            reasoning=d.get("reasoning", ""),
            source=SuggestionSource.parse(d.get("source")),
            institution=d.get("institution", ""),
            concerns=d.get("concerns", ""),
        )


@dataclass(frozen=True)
class SearchQuery:
    """A topic query for Track B."""

    text: str
    index: SearchIndex


@dataclass
class Article:
    """A publication returned by a bibliographic index."""

    id: str
    title: str
    authors: list[str] = field(default_factory=list)
    year: Optional[int] = None
    affiliation: Optional[str] = None  # article-level (e.g. bioRxiv corresponding institution)
    author_affiliations: dict[str, str] = field(default_factory=dict)
    abstract: str = ""
    terms: list[str] = field(default_factory=list)  # MeSH headings, categories, keywords
    journal: Optional[str] = None
    doi: Optional[str] = None
    index: Optional[SearchIndex] = None
    corresponding_author: Optional[str] = None

    @property
    def url(self) -> Optional[str]:
        if self.index == SearchIndex.PUBMED and self.id:
            return f"https://pubmed.ncbi.nlm.nih.gov/{self.id}"
        if self.index == SearchIndex.ARXIV and self.id:
            return f"https://arxiv.org/abs/{self.id}"
        if self.doi:
            return f"https://doi.org/{self.doi}"
        return None

    @property
    def senior_author(self) -> Optional[str]:
        """Corresponding author when the index reports one, else the last listed author."""
        if self.corresponding_author:
            return self.corresponding_author
        return self.authors[-1] if self.authors else None

    @property
    def searchable_text(self) -> str:
        """Lowercased title, abstract and topic terms for keyword matching."""
        return " ".join([self.title or "", self.abstract or "", " ".join(self.terms)]).lower()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "authors": self.authors,
            "year": self.year,
            "affiliation": self.affiliation,
            "author_affiliations": self.author_affiliations,
            "abstract": self.abstract,
            "terms": self.terms,
            "journal": self.journal,
            "doi": self.doi,
            "index": self.index.value if self.index else None,
            "corresponding_author": self.corresponding_author,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Article:
        return cls(
            id=d["id"],
            title=d.get("title", ""),
            authors=list(d.get("authors", [])),
            year=d.get("year"),
            affiliation=d.get("affiliation"),
            author_affiliations=dict(d.get("author_affiliations", {})),
            abstract=d.get("abstract", ""),
            terms=list(d.get("terms", [])),
            journal=d.get("journal"),
            doi=d.get("doi"),
            index=SearchIndex(d["index"]) if d.get("index") else None,
            corresponding_author=d.get("corresponding_author"),
        )


@dataclass
class Coauthorship:
    """Shared papers between a candidate and one proposal author."""

    proposal_author: str
    paper_count: int
    paper_titles: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Candidate:
    """A person being evaluated as a potential reviewer."""

    name: str
    status: VerificationStatus
    source: CandidateSource
    name_variants: list[str] = field(default_factory=list)
    affiliation: Optional[str] = None
    articles: list[Article] = field(default_factory=list)
    confidence: float = 0.0
    reasoning: Optional[str] = None
    seniority: str = ""
    suggestion_source: Optional[SuggestionSource] = None
    expertise_areas: list[str] = field(default_factory=list)
    suggested_institution: str = ""
    reason: str = ""  # why a suggestion could not be verified
    found_via: list[SearchIndex] = field(default_factory=list)
    is_relevant: Optional[bool] = None

    # Conflict-of-interest annotations
    has_coauthor_coi: bool = False
    coauthorships: list[Coauthorship] = field(default_factory=list)
    has_institution_coi: bool = False

    # Verification diagnostics
    institution_mismatch: bool = False
    expertise_mismatch: bool = False
    recent_publication_count: int = 0

    composite_score: float = 0.0

    @property
    def article_count(self) -> int:
        return len(self.articles)

    @property
    def has_evidence(self) -> bool:
        return bool(self.articles)

    def to_dict(self) -> dict:
        """Serialize for JSON output."""
        return {
            "name": self.name,
            "status": self.status.value,
            "source": self.source.value,
            "name_variants": self.name_variants,
            "affiliation": self.affiliation,
            "articles": [a.to_dict() for a in self.articles],
            "article_count": self.article_count,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "seniority": self.seniority,
            "suggestion_source": self.suggestion_source.value if self.suggestion_source else None,
            "expertise_areas": self.expertise_areas,
            "suggested_institution": self.suggested_institution,
            "reason": self.reason,
            "found_via": [i.value for i in self.found_via],
            "is_relevant": self.is_relevant,
            "has_coauthor_coi": self.has_coauthor_coi,
            "coauthorships": [c.to_dict() for c in self.coauthorships],
            "has_institution_coi": self.has_institution_coi,
            "institution_mismatch": self.institution_mismatch,
            "expertise_mismatch": self.expertise_mismatch,
            "recent_publication_count": self.recent_publication_count,
            "composite_score": self.composite_score,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Candidate:
        """Deserialize from JSON output."""
        return cls(
            name=d["name"],
            status=VerificationStatus(d["status"]),
            source=CandidateSource(d["source"]),
            name_variants=list(d.get("name_variants", [])),
            affiliation=d.get("affiliation"),
            articles=[Article.from_dict(a) for a in d.get("articles", [])],
            confidence=d.get("confidence", 0.0),
            reasoning=d.get("reasoning"),
            seniority=d.get("seniority", ""),
            suggestion_source=(
                SuggestionSource(d["suggestion_source"]) if d.get("suggestion_source") else None
            ),
            expertise_areas=list(d.get("expertise_areas", [])),
            suggested_institution=d.get("suggested_institution", ""),
            reason=d.get("reason", ""),
            found_via=[SearchIndex(i) for i in d.get("found_via", [])],
            is_relevant=d.get("is_relevant"),
            has_coauthor_coi=d.get("has_coauthor_coi", False),
            coauthorships=[Coauthorship(**c) for c in d.get("coauthorships", [])],
            has_institution_coi=d.get("has_institution_coi", False),
            institution_mismatch=d.get("institution_mismatch", False),
            expertise_mismatch=d.get("expertise_mismatch", False),
            recent_publication_count=d.get("recent_publication_count", 0),
            composite_score=d.get("composite_score", 0.0),
        )


@dataclass
class ValidationReport:
    """Issues found while parsing an analysis response."""

    issues: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues

    def to_dict(self) -> dict:
        return {"valid": self.valid, "issues": list(self.issues)}


@dataclass
class AnalysisResult:
    """Parsed output of the LLM analysis stage."""

    proposal: ProposalInfo = field(default_factory=ProposalInfo)
    suggestions: list[SuggestedReviewer] = field(default_factory=list)
    queries: dict[SearchIndex, list[str]] = field(
        default_factory=lambda: {index: [] for index in SearchIndex}
    )
    validation: ValidationReport = field(default_factory=ValidationReport)

    def search_queries(self) -> list[SearchQuery]:
        """Flatten per-index queries into SearchQuery records."""
        return [
            SearchQuery(text=text, index=index)
            for index in SearchIndex
            for text in self.queries.get(index, [])
        ]

    def to_dict(self) -> dict:
        return {
            "proposal": self.proposal.to_dict(),
            "suggestions": [s.to_dict() for s in self.suggestions],
            "queries": {index.value: list(self.queries.get(index, [])) for index in SearchIndex},
            "validation": self.validation.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> AnalysisResult:
        raw_queries = d.get("queries", {})
        return cls(
            proposal=ProposalInfo.from_dict(d.get("proposal", {})),
            suggestions=[SuggestedReviewer.from_dict(s) for s in d.get("suggestions", [])],
            queries={index: list(raw_queries.get(index.value, [])) for index in SearchIndex},
            validation=ValidationReport(issues=list(d.get("validation", {}).get("issues", []))),
        )


@dataclass
class DiscoveryStats:
    """Aggregate counters for one discovery run."""

    suggestions_total: int = 0
    suggestions_verified: int = 0
    suggestions_unverified: int = 0
    queries_per_index: dict[str, int] = field(default_factory=dict)
    candidates_per_index: dict[str, int] = field(default_factory=dict)
    total_before_merge: int = 0
    total_after_merge: int = 0
    proposal_authors_excluded: int = 0
    irrelevant_filtered: int = 0
    coauthor_coi: int = 0
    institution_coi: int = 0
    failed_searches: int = 0
    failed_reasoning_batches: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DiscoveryResult:
    """Caller-facing output of a discovery run."""

    verified: list[Candidate] = field(default_factory=list)
    unverified: list[Candidate] = field(default_factory=list)
    discovered: list[Candidate] = field(default_factory=list)
    ranked: list[Candidate] = field(default_factory=list)
    stats: DiscoveryStats = field(default_factory=DiscoveryStats)
    warnings: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        """True when some stage fell back to partial or default results."""
        return bool(self.warnings)

    def to_dict(self) -> dict:
        return {
            "verified": [c.to_dict() for c in self.verified],
            "unverified": [c.to_dict() for c in self.unverified],
            "discovered": [c.to_dict() for c in self.discovered],
            "ranked": [c.to_dict() for c in self.ranked],
            "stats": self.stats.to_dict(),
            "warnings": list(self.warnings),
            "degraded": self.degraded,
        }


@dataclass
class ProgressEvent:
    """A stage/status update emitted by the orchestrator."""

    stage: str
    status: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    track: Optional[str] = None
    index: Optional[SearchIndex] = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"stage": self.stage, "status": self.status, "message": self.message}
        if self.data:
            d["data"] = self.data
        if self.track:
            d["track"] = self.track
        if self.index:
            d["index"] = self.index.value
        return d
