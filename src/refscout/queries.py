"""Index-native query construction for author and topic searches.

All functions are pure: the current year is injectable so results are
reproducible in tests.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional, Sequence

from refscout.models import SearchIndex
from refscout.names import split_name, strip_honorifics


def _year_range(years_lookback: Optional[int], current_year: Optional[int]) -> Optional[tuple[int, int]]:
    if not years_lookback:
        return None
    end = current_year or datetime.now().year
    return end - years_lookback, end


def _date_filter(index: SearchIndex, years: Optional[tuple[int, int]]) -> str:
    """Date restriction clause, or "" when the index has no query-side filter."""
    if years is None:
        return ""
    start, end = years
    if index == SearchIndex.PUBMED:
        return f"({start}:{end}[pdat])"
    if index == SearchIndex.ARXIV:
        return f"submittedDate:[{start}01010000 TO {end}12312359]"
    return ""


def _author_clause(name_variant: str, index: SearchIndex) -> str:
    clean = strip_honorifics(name_variant)
    if index == SearchIndex.PUBMED:
        return f"{clean}[Author]"
    if index == SearchIndex.ARXIV:
        parts = split_name(clean)
        return f'au:"{clean}"' if parts.first else f"au:{parts.last}"
    return clean


def _term_clause(term: str, index: SearchIndex) -> str:
    if index == SearchIndex.PUBMED:
        return f"({term}[Title/Abstract])"
    if index == SearchIndex.ARXIV:
        return f'all:"{term}"'
    return term


def _join(clauses: Sequence[str], index: SearchIndex) -> str:
    parts = [c for c in clauses if c]
    if index == SearchIndex.BIORXIV:
        return " ".join(parts)
    return " AND ".join(parts)


def expertise_query_terms(expertise_areas: Sequence[str], limit: int = 2) -> list[str]:
    """First two words of each of the first ``limit`` expertise areas, dropping short ones."""
    terms = []
    for area in list(expertise_areas or [])[:limit]:
        words = [w for w in re.split(r"[\s,]+", area.strip()) if w]
        term = " ".join(words[:2])
        if len(term) > 2:
            terms.append(term)
    return terms


def build_author_query(
    name_variant: str,
    index: SearchIndex = SearchIndex.PUBMED,
    years_lookback: Optional[int] = 5,
    current_year: Optional[int] = None,
) -> str:
    """Minimal author-field query, restricted to recent years where the index supports it.

    >>> build_author_query("Dr. Jane Smith", current_year=2025)
    'Jane Smith[Author] AND (2020:2025[pdat])'
    """
    years = _year_range(years_lookback, current_year)
    return _join([_author_clause(name_variant, index), _date_filter(index, years)], index)


def build_disambiguated_author_query(
    name: str,
    expertise_areas: Sequence[str],
    index: SearchIndex = SearchIndex.PUBMED,
    years_lookback: Optional[int] = 5,
    current_year: Optional[int] = None,
) -> str:
    """Author query constrained by up to two of the candidate's expertise terms.

    Falls back to :func:`build_author_query` when no usable terms remain.
    """
    terms = expertise_query_terms(expertise_areas)
    if not terms:
        return build_author_query(name, index, years_lookback, current_year)

    years = _year_range(years_lookback, current_year)
    term_clauses = [_term_clause(t, index) for t in terms]
    if index == SearchIndex.BIORXIV:
        topic = " ".join(terms)
    else:
        topic = "(" + " OR ".join(term_clauses) + ")"
    return _join([_author_clause(name, index), topic, _date_filter(index, years)], index)


def build_topic_query(
    text: str,
    index: SearchIndex,
    years_lookback: Optional[int] = 5,
    current_year: Optional[int] = None,
) -> str:
    """Topic query for discovery. PubMed and arXiv get a date restriction appended."""
    text = text.strip().strip('"').strip()
    if not text:
        return ""
    years = _year_range(years_lookback, current_year)
    if index == SearchIndex.ARXIV:
        body = text if ":" in text else f"all:{text}"
        return _join([body, _date_filter(index, years)], index)
    if index == SearchIndex.PUBMED:
        return _join([text, _date_filter(index, years)], index)
    return text
