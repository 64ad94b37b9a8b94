"""Proposal analysis: prompt construction and tolerant parsing of the model's answer.

The analysis response is treated as an untyped document. Each line is
reduced to an optional ``LABEL: value`` pair (bullets, headings and ``**``
emphasis stripped); labels switch the parser between the metadata section,
``REVIEWER:`` blocks and the numbered query lists. Anything unrecognised is
ignored, so a missing or garbled section only leaves its defaults in place.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from refscout.coi import parse_author_list
from refscout.errors import InvalidRequestError
from refscout.models import (
    AnalysisResult,
    ProposalInfo,
    SearchIndex,
    SuggestedReviewer,
    SuggestionSource,
    ValidationReport,
)
from refscout.names import names_match

logger = logging.getLogger(__name__)

MAX_PROPOSAL_CHARS = 15000
DEFAULT_REVIEWER_COUNT = 12

METADATA_LABELS = {
    "TITLE": "title",
    "PROPOSAL_AUTHORS": "authors",
    "AUTHOR_INSTITUTION": "institution",
    "PRIMARY_RESEARCH_AREA": "primary_area",
    "SECONDARY_AREAS": "secondary_areas",
    "KEY_METHODOLOGIES": "methodologies",
    "KEYWORDS": "keywords",
    "ABSTRACT": "abstract",
}

REVIEWER_LABELS = {
    "NAME": "name",
    "INSTITUTION": "institution",
    "EXPERTISE": "expertise",
    "SENIORITY": "seniority",
    "REASONING": "reasoning",
    "POTENTIAL_CONCERNS": "concerns",
    "CONCERNS": "concerns",
    "SOURCE": "source",
}

QUERY_LABELS = {
    "PUBMED_QUERIES": SearchIndex.PUBMED,
    "ARXIV_QUERIES": SearchIndex.ARXIV,
    "BIORXIV_QUERIES": SearchIndex.BIORXIV,
}

# Fields whose value may continue on following unlabeled lines
MULTILINE_FIELDS = {"abstract", "reasoning", "concerns"}

PLACEHOLDERS = {"not specified", "none", "n/a", "unknown", "none identified"}

_LABEL_LINE = re.compile(r"^([A-Za-z][A-Za-z _]{1,40}?)\s*(\d+)?\s*:\s*(.*)$")
_NUMBERED_LINE = re.compile(r"^\(?(\d+)[.)]\s*(.+)$")
_SECTION_BREAK = re.compile(r"^(-{3,}|={3,}|#+\s*PART\b.*)$", re.IGNORECASE)

ANALYSIS_PROMPT = """\
You are an expert at identifying qualified peer reviewers for scientific research proposals. \
Analyze this proposal and provide structured output for a reviewer discovery system.

**PROPOSAL TEXT:**
{proposal_text}
{notes_section}{excluded_section}
**YOUR TASK:**

Analyze this proposal and provide THREE types of output:

---

## PART 1: PROPOSAL METADATA

TITLE: [Complete proposal title]
PROPOSAL_AUTHORS: [Names of the proposal author(s), comma-separated. If not found, write "Not specified"]
AUTHOR_INSTITUTION: [University or organization name, or "Not specified"]
PRIMARY_RESEARCH_AREA: [Main scientific discipline]
SECONDARY_AREAS: [Comma-separated list of related fields]
KEY_METHODOLOGIES: [Main techniques/approaches used]
KEYWORDS: [5-8 specific technical terms for database searching, comma-separated]
ABSTRACT: [The proposal abstract verbatim if present, otherwise a 2-3 sentence summary]

---

## PART 2: REVIEWER SUGGESTIONS

Suggest {reviewer_count} potential expert reviewers. Prefer, in order: researchers named in the \
proposal, senior authors of cited work, then known field leaders. They must be established \
researchers with relevant expertise and must NOT be from the author's institution.

FORMAT (repeat for each reviewer):

REVIEWER:
NAME: [Full name in Western order: FirstName LastName]
INSTITUTION: [Current institution]
EXPERTISE: [2-4 specific areas, comma-separated]
SENIORITY: [Early-career / Mid-career / Senior]
REASONING: [2-3 sentences on why they are qualified for THIS proposal]
POTENTIAL_CONCERNS: [Any COI concerns, or "None identified"]
SOURCE: ["Mentioned in proposal", "References", "Known expert", or "Field leader"]

---

## PART 3: DATABASE SEARCH QUERIES

Queries of 3-6 words using specific technical terminology. Do NOT include author names.

PUBMED_QUERIES:
1. [specific topic query]
2. [second topic query]
3. [third topic query]

ARXIV_QUERIES:
1. [query focused on computational/theoretical aspects]
2. [second query]

BIORXIV_QUERIES:
1. [query focused on experimental biology]
2. [second query]

---

Now analyze the proposal and provide all three parts:"""


def create_analysis_prompt(
    proposal_text: str,
    notes: str = "",
    excluded_names: Sequence[str] = (),
    reviewer_count: int = DEFAULT_REVIEWER_COUNT,
) -> str:
    """Build the stage-1 prompt. Proposal text is truncated to 15,000 characters."""
    text = proposal_text or "No proposal text provided"
    if len(text) > MAX_PROPOSAL_CHARS:
        text = text[:MAX_PROPOSAL_CHARS] + "\n\n[...truncated for length...]"
    notes_section = f"\n**ADDITIONAL CONTEXT FROM USER:**\n{notes.strip()}\n" if notes and notes.strip() else ""
    excluded = [n for n in excluded_names if n and n.strip()]
    excluded_section = (
        "\n**EXCLUDED NAMES (conflicts of interest - do NOT suggest these):**\n" + ", ".join(excluded) + "\n"
        if excluded
        else ""
    )
    return ANALYSIS_PROMPT.format(
        proposal_text=text,
        notes_section=notes_section,
        excluded_section=excluded_section,
        reviewer_count=reviewer_count,
    )


def _clean_line(line: str) -> str:
    """Strip bullets, heading marks, blockquotes and bold markers."""
    line = line.strip()
    line = re.sub(r"^[-*•>#\s]+(?=\S)", "", line) if not _SECTION_BREAK.match(line) else line
    return line.replace("**", "").strip()


def _clean_value(value: str) -> str:
    value = value.strip().strip("*").strip()
    if len(value) >= 2 and value[0] in "[\"'" and value[-1] in "]\"'":
        value = value[1:-1].strip()
    return value


def _split_list(value: str) -> list[str]:
    return [v for v in (_clean_value(p) for p in re.split(r"[,;]", value)) if v]


def _is_placeholder(value: str) -> bool:
    return value.strip().strip(".").lower() in PLACEHOLDERS


@dataclass
class _Block:
    fields: dict[str, str] = field(default_factory=dict)

    def append(self, key: str, text: str) -> None:
        existing = self.fields.get(key, "")
        self.fields[key] = f"{existing}\n{text}".strip() if existing else text


def _reviewer_from_block(block: _Block) -> Optional[SuggestedReviewer]:
    f = block.fields
    name = _clean_value(f.get("name", ""))
    if not name:
        return None
    concerns = _clean_value(f.get("concerns", ""))
    return SuggestedReviewer(
        name=name,
        expertise_areas=_split_list(f.get("expertise", "")),
        seniority=_clean_value(f.get("seniority", "")),
        reasoning=_clean_value(f.get("reasoning", "")),
        source=SuggestionSource.parse(f.get("source")),
        institution="" if _is_placeholder(f.get("institution", "")) else _clean_value(f.get("institution", "")),
        concerns="" if _is_placeholder(concerns) else concerns,
    )


def _normalize_label(raw: str) -> str:
    return re.sub(r"[\s_]+", "_", raw.strip()).upper()


def parse_analysis_response(text: Optional[str]) -> AnalysisResult:
    """Decode a stage-1 analysis response into an AnalysisResult.

    Never raises on content. Missing sections keep their defaults and are
    reported by :func:`validate_analysis_result`.
    """
    result = AnalysisResult()
    if not text or not isinstance(text, str):
        result.validation = validate_analysis_result(result, sections_seen=set())
        return result

    metadata = _Block()
    reviewers: list[_Block] = []
    queries: dict[SearchIndex, list[str]] = {index: [] for index in SearchIndex}
    sections_seen: set[SearchIndex] = set()

    mode = "metadata"  # "metadata" | "reviewer" | "queries"
    current_index: Optional[SearchIndex] = None
    current_block: Optional[_Block] = None
    continuing: Optional[str] = None  # multi-line field receiving continuation lines

    for raw_line in text.splitlines():
        line = _clean_line(raw_line)
        if not line:
            continue
        if _SECTION_BREAK.match(raw_line.strip()):
            continuing = None
            if mode == "queries":
                mode = "metadata"
            continue

        match = _LABEL_LINE.match(line)
        label = _normalize_label(match.group(1)) if match else ""
        value = match.group(3).strip() if match else ""

        if label == "REVIEWER":
            current_block = _Block()
            reviewers.append(current_block)
            if value and not _is_placeholder(value):
                current_block.fields["name"] = value
            mode, continuing = "reviewer", None
            continue

        if label in QUERY_LABELS:
            mode, continuing = "queries", None
            current_index = QUERY_LABELS[label]
            sections_seen.add(current_index)
            if value and not value.startswith("["):
                queries[current_index].extend(_split_list(value) if "," in value else [_clean_value(value)])
            continue

        if label == "PART":
            continuing = None
            continue

        if label in METADATA_LABELS:
            key = METADATA_LABELS[label]
            metadata.fields[key] = value
            mode = "metadata"
            continuing = key if key in MULTILINE_FIELDS else None
            continue

        if label in REVIEWER_LABELS:
            if mode == "reviewer" and current_block is not None:
                key = REVIEWER_LABELS[label]
                current_block.fields[key] = value
                continuing = key if key in MULTILINE_FIELDS else None
            continue

        if mode == "queries" and current_index is not None:
            numbered = _NUMBERED_LINE.match(line)
            bulleted = re.match(r"^\s*[-*•]\s+", raw_line)
            if numbered or bulleted:
                query = _clean_value(numbered.group(2) if numbered else line)
                if len(query) > 2:
                    queries[current_index].append(query)
            continue

        if continuing:
            target = current_block if mode == "reviewer" and current_block is not None else metadata
            target.append(continuing, line)

    m = metadata.fields
    result.proposal = ProposalInfo(
        title=_clean_value(m.get("title", "")),
        authors=tuple(parse_author_list(m.get("authors", ""))),
        institution="" if _is_placeholder(m.get("institution", "")) else _clean_value(m.get("institution", "")),
        primary_area="" if _is_placeholder(m.get("primary_area", "")) else _clean_value(m.get("primary_area", "")),
        secondary_areas=tuple(_split_list(m.get("secondary_areas", ""))),
        methodologies=_clean_value(m.get("methodologies", "")),
        keywords=tuple(_split_list(m.get("keywords", ""))),
        abstract=_clean_value(m.get("abstract", "")),
    )
    result.suggestions = [r for r in (_reviewer_from_block(b) for b in reviewers) if r is not None]
    result.queries = queries
    result.validation = validate_analysis_result(result, sections_seen=sections_seen)
    logger.debug(
        "Parsed analysis: %d suggestions, %s",
        len(result.suggestions),
        {i.value: len(q) for i, q in queries.items()},
    )
    return result


def validate_analysis_result(result: AnalysisResult, sections_seen: Optional[set] = None) -> ValidationReport:
    """List the issues that make an analysis result partial.

    ``sections_seen`` (query indices whose heading appeared) lets the report
    say which query list was missing rather than merely empty.
    """
    issues = []
    if not result.proposal.title:
        issues.append("Missing proposal title")
    if not result.suggestions:
        issues.append("No reviewer suggestions generated")
    total_queries = sum(len(q) for q in result.queries.values())
    if total_queries == 0:
        issues.append("No search queries generated")
    else:
        for index in SearchIndex:
            if result.queries.get(index):
                continue
            if sections_seen is not None and index not in sections_seen:
                issues.append(f"Missing {index.label} search queries section")
            else:
                issues.append(f"No {index.label} search queries generated")
    return ValidationReport(issues=issues)


class ProposalAnalyzer:
    """Runs the stage-1 analysis through an LLM client."""

    def __init__(self, llm, reviewer_count: int = DEFAULT_REVIEWER_COUNT, max_tokens: int = 4096):
        self.llm = llm
        self.reviewer_count = reviewer_count
        self.max_tokens = max_tokens

    def analyze(self, text: str, notes: str = "", excluded_names: Sequence[str] = ()) -> AnalysisResult:
        """Analyze proposal text into metadata, suggestions and search queries.

        Raises:
            InvalidRequestError: If the proposal text is empty.
        """
        if not text or not text.strip():
            raise InvalidRequestError("Proposal text is empty")

        prompt = create_analysis_prompt(text, notes, excluded_names, self.reviewer_count)
        response = self.llm.complete(prompt, max_tokens=self.max_tokens)
        result = parse_analysis_response(response)

        if excluded_names:
            before = len(result.suggestions)
            result.suggestions = [
                s for s in result.suggestions if not any(names_match(s.name, n) for n in excluded_names)
            ]
            if len(result.suggestions) < before:
                logger.info("Dropped %d excluded names from suggestions", before - len(result.suggestions))

        if not result.validation.valid:
            logger.warning("Analysis validation issues: %s", result.validation.issues)
        logger.info(
            "Analysis found %d suggestions, %d queries",
            len(result.suggestions),
            len(result.search_queries()),
        )
        return result
