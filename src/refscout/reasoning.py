"""Relevance reasoning for topic-discovered candidates.

Candidates are sent to the LLM in small batches; each batch's answer is a
numbered list of ``RELEVANT | REASONING | SENIORITY`` lines. A failed batch
keeps its candidates with default annotations instead of dropping them.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, Optional, Sequence

from refscout.errors import ReasoningError
from refscout.models import Candidate, ProposalInfo

logger = logging.getLogger(__name__)

REASONING_UNAVAILABLE = "Reasoning not available"
REASONING_FAILED = "Relevant, reasoning unavailable"
UNKNOWN_SENIORITY = "Unknown"
MAX_PUBLICATIONS_IN_PROMPT = 3

REASONING_PROMPT = """\
You are helping identify qualified peer reviewers for a research proposal.

**PROPOSAL SUMMARY:**
{summary}

**CANDIDATE REVIEWERS FOUND VIA DATABASE SEARCH:**
These researchers were discovered through academic database searches. Some may be relevant \
reviewers, but others may have been found due to keyword overlap from unrelated fields.

{candidates}

**YOUR TASK:**
For each candidate, decide whether their research is RELEVANT to this specific proposal:
1. RELEVANT = publications in the same field or closely related methodologies
2. NOT RELEVANT = publications from a different field

**FORMAT (one per line, keep the numbering):**
1. RELEVANT: [Yes/No] | REASONING: [1-2 sentences] | SENIORITY: [Early-career/Mid-career/Senior]
2. RELEVANT: [Yes/No] | REASONING: [1-2 sentences] | SENIORITY: [Early-career/Mid-career/Senior]
...

Be strict about relevance."""

_LINE_NUMBER = re.compile(r"^[\s*_#>-]*\(?(\d+)\s*[.):]\s*(?:\*\*|__)?\s*")
# Labels count only at the start of the line or right after a | or ; separator
_FIELD = re.compile(r"(?:^|[|;])\s*(RELEVANT|REASONING|SENIORITY)\s*[:=]", re.IGNORECASE)


def create_proposal_summary(proposal: ProposalInfo) -> str:
    parts = []
    if proposal.title:
        parts.append(f"Title: {proposal.title}")
    if proposal.primary_area:
        parts.append(f"Research Area: {proposal.primary_area}")
    if proposal.methodologies:
        parts.append(f"Methods: {proposal.methodologies}")
    if proposal.keywords:
        parts.append(f"Keywords: {', '.join(proposal.keywords)}")
    return "\n".join(parts)


def _format_candidate(number: int, candidate: Candidate) -> str:
    recent = sorted(candidate.articles, key=lambda a: a.year or 0, reverse=True)[:MAX_PUBLICATIONS_IN_PROMPT]
    pubs = "\n".join(f'  - "{a.title}" ({a.year or "N/A"})' for a in recent) or "  (No publications available)"
    return (
        f"{number}. {candidate.name}\n"
        f"   Affiliation: {candidate.affiliation or 'Unknown'}\n"
        f"   Recent Publications:\n{pubs}"
    )


def create_reasoning_prompt(summary: str, candidates: Sequence[Candidate]) -> str:
    listing = "\n\n".join(_format_candidate(i + 1, c) for i, c in enumerate(candidates))
    return REASONING_PROMPT.format(summary=summary, candidates=listing)


def _strip_emphasis(text: str) -> str:
    return text.replace("**", "").replace("__", "").strip().strip("[]").strip()


def _split_fields(body: str) -> dict[str, str]:
    """Split "RELEVANT: Yes | REASONING: ... | SENIORITY: ..." in any field order."""
    matches = list(_FIELD.finditer(body))
    fields = {}
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(body)
        value = body[match.end() : end].strip().strip("|;,").strip()
        fields.setdefault(match.group(1).upper(), _strip_emphasis(value))
    return fields


def parse_reasoning_response(text: Optional[str], candidates: Sequence[Candidate]) -> list[int]:
    """Apply a reasoning response to ``candidates`` in place.

    Tolerates "1." / "1)" / "**1.**" numbering, fields in any order,
    markdown emphasis and stray punctuation. Lines that cannot be read
    are skipped and those candidates keep their current values.

    Returns:
        Zero-based positions of the candidates that were updated.
    """
    updated = []
    if not text or not isinstance(text, str):
        return updated

    for line in text.splitlines():
        number = _LINE_NUMBER.match(line)
        if not number:
            continue
        position = int(number.group(1)) - 1
        if position < 0 or position >= len(candidates):
            continue
        fields = _split_fields(_strip_emphasis(line[number.end() :]))
        if not fields:
            continue

        candidate = candidates[position]
        relevant = fields.get("RELEVANT", "").lower()
        if relevant.startswith(("no", "not")):
            candidate.is_relevant = False
        elif relevant.startswith("yes") or candidate.is_relevant is None:
            candidate.is_relevant = True
        if fields.get("REASONING"):
            candidate.reasoning = fields["REASONING"]
        if fields.get("SENIORITY"):
            candidate.seniority = fields["SENIORITY"]
        updated.append(position)
    return updated


class ReasoningEnhancer:
    """Batch discovered candidates through the LLM for relevance reasoning.

    Args:
        llm: Object with ``complete(prompt, max_tokens=...) -> str``.
        batch_size: Candidates per request.
        batch_pause: Seconds to wait between batches.
        sleep: Injectable sleep for the pause.
    """

    def __init__(
        self,
        llm,
        batch_size: int = 10,
        batch_pause: float = 0.5,
        max_tokens: int = 1024,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.llm = llm
        self.batch_size = max(1, batch_size)
        self.batch_pause = batch_pause
        self.max_tokens = max_tokens
        self._sleep = sleep
        self.failed_batches: list[str] = []

    def _enhance_batch(self, batch: Sequence[Candidate], summary: str) -> None:
        prompt = create_reasoning_prompt(summary, batch)
        try:
            response = self.llm.complete(prompt, max_tokens=self.max_tokens)
        except Exception as e:
            raise ReasoningError(str(e)) from e
        updated = set(parse_reasoning_response(response, batch))
        for i, candidate in enumerate(batch):
            if i not in updated or not candidate.reasoning:
                logger.debug("No reasoning parsed for %s", candidate.name)
                candidate.reasoning = candidate.reasoning or REASONING_UNAVAILABLE
                if candidate.is_relevant is None:
                    candidate.is_relevant = True

    def enhance(
        self,
        candidates: Sequence[Candidate],
        proposal: ProposalInfo,
        on_batch: Optional[Callable[[int, int], None]] = None,
    ) -> list[Candidate]:
        """Annotate candidates with relevance, reasoning and seniority.

        Every input candidate is returned. ``failed_batches`` lists a message
        for each batch whose request failed.
        """
        self.failed_batches = []
        candidates = list(candidates)
        if not candidates:
            return []

        summary = create_proposal_summary(proposal)
        total = (len(candidates) + self.batch_size - 1) // self.batch_size
        for number, start in enumerate(range(0, len(candidates), self.batch_size), 1):
            batch = candidates[start : start + self.batch_size]
            if on_batch:
                on_batch(number, total)
            try:
                self._enhance_batch(batch, summary)
            except ReasoningError as e:
                logger.warning("Reasoning batch %d/%d failed: %s", number, total, e)
                self.failed_batches.append(f"Reasoning batch {number}/{total} failed: {e}")
                for candidate in batch:
                    candidate.reasoning = REASONING_FAILED
                    candidate.is_relevant = True
                    candidate.seniority = candidate.seniority or UNKNOWN_SENIORITY
            if start + self.batch_size < len(candidates) and self.batch_pause > 0:
                self._sleep(self.batch_pause)
        return candidates
