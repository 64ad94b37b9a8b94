"""Filtering and selection of the articles attributed to one candidate."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Iterable, Optional, Sequence

from refscout.models import Article
from refscout.names import name_keys, names_match

# Labels recorded on the candidate for which article set won
SELECTED_DISAMBIGUATED = "disambiguated"
SELECTED_PLAIN_RELEVANT = "plain_relevance_filtered"
SELECTED_PLAIN = "plain"
SELECTED_LARGEST = "largest_raw"


def _match_variants(name_variants: Sequence[str]) -> list[str]:
    """Variants used for author matching.

    Initial-only renderings ("J. Smith") exist for querying; matching against
    them would accept any J. Smith, so they are used only when nothing fuller
    is available. names_match still accepts initial-only *authors*.
    """
    full = [v for v in name_variants if name_keys(v)]
    return full or [v for v in name_variants if v]


def matching_author(article: Article, name_variants: Sequence[str]) -> Optional[str]:
    """Return the author entry on ``article`` that matches one of the variants."""
    variants = _match_variants(name_variants)
    for author in article.authors:
        for variant in variants:
            if names_match(author, variant):
                return author
    return None


def filter_to_matching_author_multi_variant(
    articles: Iterable[Article], name_variants: Sequence[str]
) -> list[Article]:
    """Keep articles whose author list contains any of the name variants."""
    if not name_variants:
        return []
    return [a for a in articles if matching_author(a, name_variants) is not None]


def dedupe(articles: Iterable[Article]) -> list[Article]:
    """Remove duplicate articles by identifier; first occurrence wins."""
    seen = set()
    unique = []
    for article in articles:
        key = article.id or article.title.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(article)
    return unique


def expertise_keywords(expertise_areas: Sequence[str]) -> list[str]:
    """Lowercase words longer than three characters from the expertise areas."""
    words = []
    for area in expertise_areas or []:
        for word in re.split(r"[\s,;/]+", area.lower()):
            word = word.strip("()[]\"'.")
            if len(word) > 3 and word not in words:
                words.append(word)
    return words


def filter_by_expertise_relevance(
    articles: Sequence[Article], expertise_areas: Sequence[str]
) -> list[Article]:
    """Keep articles mentioning at least one expertise keyword.

    Returns the input unchanged when there are no usable keywords.
    """
    keywords = expertise_keywords(expertise_areas)
    if not keywords:
        return list(articles)
    return [a for a in articles if any(k in a.searchable_text for k in keywords)]


def select_article_set(
    disambiguated: Sequence[Article],
    plain: Sequence[Article],
    expertise_areas: Sequence[str],
    min_publications: int = 3,
) -> tuple[list[Article], str]:
    """Choose between the disambiguated and plain author result sets.

    1. The disambiguated set, if it meets ``min_publications``.
    2. The plain set narrowed by expertise relevance, if that still meets it.
    3. The plain set, if it meets it.
    4. Otherwise whichever raw set is larger.

    Returns:
        (articles, selection label)
    """
    if len(disambiguated) >= min_publications:
        return list(disambiguated), SELECTED_DISAMBIGUATED

    relevant = filter_by_expertise_relevance(plain, expertise_areas)
    if len(relevant) >= min_publications:
        return relevant, SELECTED_PLAIN_RELEVANT

    if len(plain) >= min_publications:
        return list(plain), SELECTED_PLAIN

    if len(disambiguated) >= len(plain):
        return list(disambiguated), SELECTED_LARGEST
    return list(plain), SELECTED_LARGEST


def count_recent_publications(
    articles: Iterable[Article], years: int = 5, current_year: Optional[int] = None
) -> int:
    """Count articles published within the last ``years`` years (inclusive)."""
    cutoff = (current_year or datetime.now().year) - years
    return sum(1 for a in articles if a.year is not None and a.year >= cutoff)
