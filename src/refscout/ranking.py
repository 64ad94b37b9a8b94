"""Merging and final ordering of candidates from both discovery tracks."""

from __future__ import annotations

from typing import Sequence

from refscout.articles import dedupe
from refscout.models import Candidate, DiscoveryResult, VerificationStatus
from refscout.names import same_person_any
from refscout.scoring import keyword_overlap

VERIFIED_BOOST = 0.25
KEYWORD_BOOST = 0.10
KEYWORD_OVERLAP_THRESHOLD = 0.5


def _absorb(target: Candidate, other: Candidate) -> None:
    """Fold ``other``'s evidence into ``target`` (the better-status record)."""
    target.articles = dedupe(target.articles + other.articles)
    for variant in other.name_variants:
        if variant not in target.name_variants:
            target.name_variants.append(variant)
    for index in other.found_via:
        if index not in target.found_via:
            target.found_via.append(index)
    target.confidence = max(target.confidence, other.confidence)
    target.affiliation = target.affiliation or other.affiliation
    target.reasoning = target.reasoning or other.reasoning
    target.seniority = target.seniority or other.seniority
    target.has_institution_coi = target.has_institution_coi or other.has_institution_coi
    if other.has_coauthor_coi and not target.has_coauthor_coi:
        target.has_coauthor_coi = True
        target.coauthorships = list(other.coauthorships)
    target.recent_publication_count = max(target.recent_publication_count, other.recent_publication_count)


def _renderings(candidate: Candidate) -> list[str]:
    return [candidate.name, *candidate.name_variants]


def merge_candidates(candidates: Sequence[Candidate]) -> list[Candidate]:
    """Collapse records of the same person; the best verification status wins.

    Order of first appearance is kept for the surviving records.
    """
    merged: list[Candidate] = []
    for candidate in candidates:
        existing = next(
            (m for m in merged if same_person_any(_renderings(m), _renderings(candidate))), None
        )
        if existing is None:
            merged.append(candidate)
            continue
        if candidate.status.rank < existing.status.rank:
            _absorb(candidate, existing)
            merged[merged.index(existing)] = candidate
        else:
            _absorb(existing, candidate)
    return merged


def composite_score(candidate: Candidate, proposal_keywords: Sequence[str]) -> float:
    """Confidence plus boosts for verification and proposal-keyword overlap."""
    score = candidate.confidence
    if candidate.status == VerificationStatus.VERIFIED:
        score += VERIFIED_BOOST
    if proposal_keywords and keyword_overlap(candidate.articles, proposal_keywords) >= KEYWORD_OVERLAP_THRESHOLD:
        score += KEYWORD_BOOST
    return round(score, 4)


def _sort_key(candidate: Candidate) -> tuple:
    return (
        candidate.status == VerificationStatus.UNVERIFIED,
        -candidate.composite_score,
        candidate.status.rank,
        -candidate.confidence,
        -candidate.article_count,
    )


def rank_all_candidates(result: DiscoveryResult, proposal_keywords: Sequence[str] = ()) -> list[Candidate]:
    """Merge verified, discovered and unverified candidates into one ordered list.

    Evidence-backed candidates always precede unverified ones; within each
    group candidates sort by composite score, then status, confidence and
    matched-article count.
    """
    merged = merge_candidates([*result.verified, *result.discovered, *result.unverified])
    for candidate in merged:
        candidate.composite_score = composite_score(candidate, proposal_keywords)
    return sorted(merged, key=_sort_key)
