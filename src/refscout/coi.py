"""Conflict-of-interest checks against the proposal's own authors and institution.

Everything here works on the article sets already attached to candidates;
nothing re-queries an index. COI detection is a best-effort heuristic over
whatever author metadata the indices returned.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Iterable, Optional, Sequence

from refscout.affiliation import institutions_match
from refscout.articles import matching_author
from refscout.models import Candidate, Coauthorship, VerificationStatus
from refscout.names import generate_name_variants, names_match, strip_honorifics

logger = logging.getLogger(__name__)

_PLACEHOLDERS = {"not specified", "unknown", "n/a", "none", "not found"}


def parse_author_list(raw: Optional[str | Iterable[str]]) -> list[str]:
    """Split "A, B and C" (or an iterable of names) into cleaned author names."""
    if not raw:
        return []
    if isinstance(raw, str):
        pieces = re.split(r"\s*(?:,|;|&|\band\b)\s*", raw)
    else:
        pieces = list(raw)
    names = []
    for piece in pieces:
        name = strip_honorifics(piece or "")
        if name and name.lower() not in _PLACEHOLDERS and name not in names:
            names.append(name)
    return names


def filter_proposal_authors(
    candidates: Sequence[Candidate], proposal_authors: Sequence[str]
) -> tuple[list[Candidate], list[Candidate]]:
    """Split candidates into (kept, excluded); proposal authors cannot review."""
    authors = parse_author_list(proposal_authors)
    if not authors:
        return list(candidates), []
    kept, excluded = [], []
    for candidate in candidates:
        if any(names_match(candidate.name, author) for author in authors):
            excluded.append(candidate)
        else:
            kept.append(candidate)
    if excluded:
        logger.info("Excluded proposal authors from candidates: %s", [c.name for c in excluded])
    return kept, excluded


def mark_institution_coi(candidates: Sequence[Candidate], institution: Optional[str]) -> list[Candidate]:
    """Flag (not drop) candidates at the proposal's institution."""
    if not institution:
        return list(candidates)
    for candidate in candidates:
        if candidate.affiliation and institutions_match(candidate.affiliation, institution):
            candidate.has_institution_coi = True
    return list(candidates)


def check_coauthorships_for_candidates(
    candidates: Sequence[Candidate],
    proposal_author_names: Sequence[str],
    window_years: Optional[int] = None,
    current_year: Optional[int] = None,
) -> list[Candidate]:
    """Annotate candidates that share papers with a proposal author.

    Only verified and discovered candidates with matched articles are
    checked. With ``window_years`` set, only articles from the last N years
    count; articles with an unknown year are always kept.

    Returns:
        The same candidates, with ``coauthorships`` and ``has_coauthor_coi`` set.
    """
    authors = parse_author_list(proposal_author_names)
    if not authors:
        return list(candidates)

    author_variants = {author: generate_name_variants(author) for author in authors}
    cutoff = None
    if window_years is not None:
        cutoff = (current_year or datetime.now().year) - window_years

    for candidate in candidates:
        if candidate.status == VerificationStatus.UNVERIFIED or not candidate.has_evidence:
            continue

        articles = [
            a for a in candidate.articles if cutoff is None or a.year is None or a.year >= cutoff
        ]
        coauthorships = []
        for author, variants in author_variants.items():
            if names_match(candidate.name, author):
                continue
            shared = [a for a in articles if matching_author(a, variants) is not None]
            if shared:
                coauthorships.append(
                    Coauthorship(
                        proposal_author=author,
                        paper_count=len(shared),
                        paper_titles=[a.title for a in shared],
                    )
                )

        candidate.coauthorships = coauthorships
        candidate.has_coauthor_coi = bool(coauthorships)
        if coauthorships:
            logger.debug(
                "Coauthor COI: %s with %s",
                candidate.name,
                ", ".join(f"{c.proposal_author} ({c.paper_count})" for c in coauthorships),
            )
    return list(candidates)
