"""Topical relevance scoring between a candidate's articles and expertise terms."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence

from refscout.models import Article

# Scientific near-synonyms accepted as alternates for an expertise term
SYNONYMS = {
    "viral": ["virus", "virology", "viruses", "phage", "bacteriophage"],
    "virus": ["viral", "virology", "viruses", "phage"],
    "virology": ["viral", "virus", "viruses"],
    "ecology": ["ecological", "ecosystem"],
    "ecological": ["ecology", "ecosystem"],
    "marine": ["ocean", "oceanic", "aquatic", "sea"],
    "ocean": ["marine", "oceanic", "aquatic", "sea"],
    "microbial": ["microbe", "microbiome", "bacterial", "bacteria"],
    "microbe": ["microbial", "microbiome", "bacterial"],
    "bacteria": ["bacterial", "microbial", "microbe"],
    "bacterial": ["bacteria", "microbial", "microbe"],
    "evolution": ["evolutionary", "evolve", "evolved"],
    "evolutionary": ["evolution", "evolve"],
    "phage": ["bacteriophage", "viral", "virus"],
    "bacteriophage": ["phage", "viral", "virus"],
    "population": ["populations", "community", "communities"],
    "community": ["communities", "population", "populations"],
    "dynamics": ["dynamic", "interactions", "interaction"],
    "modeling": ["model", "models", "mathematical", "computational"],
    "model": ["modeling", "models", "mathematical"],
    "quantitative": ["mathematical", "computational", "modeling"],
}

STOP_WORDS = frozenset(
    {"with", "from", "that", "this", "their", "into", "using", "based", "through",
     "between", "within", "other", "also", "such", "than", "these", "those", "about",
     "and", "for", "the"}
)

# Too broad to tell a wrong-person match from a right one
GENERIC_WORDS = frozenset(
    {"biology", "research", "science", "study", "analysis", "methods", "molecular",
     "cellular", "genetic", "genomic", "protein", "proteins", "mechanism", "mechanisms",
     "function", "regulation", "development", "evolution", "evolutionary", "structure",
     "structural", "model", "models"}
)


def expertise_terms(expertise_areas: Sequence[str]) -> list[str]:
    """Unique significant tokens (longer than three characters, stop words removed)."""
    terms = []
    for area in expertise_areas or []:
        for word in re.split(r"[\s,;/()]+", area.lower()):
            word = word.strip(".'\"-")
            if len(word) > 3 and word not in STOP_WORDS and word not in terms:
                terms.append(word)
    return terms


def _corpus(articles: Sequence[Article]) -> str:
    return " ".join(a.searchable_text for a in articles)


def _contains(word: str, text: str) -> bool:
    # Short words must start a word ("sea" should not hit "research")
    if len(word) < 5:
        return re.search(rf"\b{re.escape(word)}", text) is not None
    return word in text


def _term_found(term: str, text: str) -> bool:
    return _contains(term, text) or any(_contains(s, text) for s in SYNONYMS.get(term, ()))


def calculate_expertise_match(articles: Sequence[Article], expertise_areas: Sequence[str]) -> float:
    """Fraction of expertise terms found in the candidate's articles.

    A term counts as found when it, or one of its synonyms, occurs in any
    article's title, abstract or topic terms. Capped at 1.0 and rounded to
    two decimals. No terms or no articles scores 0.

    >>> calculate_expertise_match([], ["viral ecology"])
    0.0
    """
    terms = expertise_terms(expertise_areas)
    if not terms or not articles:
        return 0.0
    text = _corpus(articles)
    matched = sum(1 for t in terms if _term_found(t, text))
    return round(min(1.0, matched / len(terms)), 2)


@dataclass
class ExpertiseMismatch:
    has_mismatch: bool
    claimed_terms: list[str] = field(default_factory=list)
    matched_terms: list[str] = field(default_factory=list)


def _claimed_terms(claimed_expertise: Sequence[str]) -> list[str]:
    terms = []
    for area in claimed_expertise:
        for part in re.split(r"[,;/]+", area.lower()):
            words = [w for w in part.split() if len(w) > 3]
            candidates = words + ([" ".join(words)] if 2 <= len(words) <= 3 else [])
            for term in candidates:
                if len(term) > 4 and term not in GENERIC_WORDS and term not in terms:
                    terms.append(term)
    return terms


def check_expertise_mismatch(articles: Sequence[Article], claimed_expertise: Sequence[str]) -> ExpertiseMismatch:
    """Flag a suggestion whose specific claimed expertise never shows up in its articles.

    Generic words ("biology", "analysis") are ignored; if nothing specific
    remains there is nothing to contradict and no mismatch is reported.
    """
    if not claimed_expertise:
        return ExpertiseMismatch(False)
    if not articles:
        return ExpertiseMismatch(True, list(claimed_expertise), [])

    claimed = _claimed_terms(claimed_expertise)
    if not claimed:
        return ExpertiseMismatch(False)
    text = _corpus(articles)
    matched = [t for t in claimed if t in text]
    return ExpertiseMismatch(not matched, claimed, matched)


def keyword_overlap(articles: Sequence[Article], keywords: Sequence[str]) -> float:
    """Fraction of proposal keywords present in the articles.

    A multi-word keyword counts when the phrase appears or all of its
    significant words appear.
    """
    keywords = [k.strip().lower() for k in keywords or [] if k and k.strip()]
    if not keywords or not articles:
        return 0.0
    text = _corpus(articles)
    hits = 0
    for keyword in keywords:
        words = expertise_terms([keyword])
        if keyword in text or (words and all(_term_found(w, text) for w in words)):
            hits += 1
    return hits / len(keywords)
