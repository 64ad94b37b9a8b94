"""Affiliation inference and institution comparison."""

from __future__ import annotations

import re
from collections import defaultdict
from typing import Optional, Sequence

from rapidfuzz.fuzz import token_sort_ratio

from refscout.articles import matching_author
from refscout.models import Article

# Minimum length for an affiliation string to be considered informative
MIN_AFFILIATION_LENGTH = 10

INSTITUTION_ALIASES = {
    "mit": ["massachusetts institute of technology", "mit"],
    "caltech": ["california institute of technology", "caltech"],
    "uc berkeley": ["university of california berkeley", "uc berkeley", "ucb", "berkeley"],
    "ucla": ["university of california los angeles", "ucla"],
    "ucsf": ["university of california san francisco", "ucsf"],
    "ucsd": ["university of california san diego", "ucsd"],
    "ucd": ["university of california davis", "uc davis", "ucd"],
    "uci": ["university of california irvine", "uc irvine", "uci"],
    "stanford": ["stanford university", "stanford"],
    "harvard": ["harvard university", "harvard medical school", "harvard"],
    "yale": ["yale university", "yale school of medicine", "yale"],
    "princeton": ["princeton university", "princeton"],
    "columbia": ["columbia university", "columbia"],
    "cornell": ["cornell university", "weill cornell", "cornell"],
    "upenn": ["university of pennsylvania", "upenn", "penn", "perelman school"],
    "brandeis": ["brandeis university", "brandeis"],
    "rockefeller": ["rockefeller university", "rockefeller"],
    "hhmi": ["howard hughes medical institute", "hhmi", "janelia"],
    "nih": ["national institutes of health", "nih", "niehs", "nimh", "nci"],
    "wustl": ["washington university", "wustl", "wash u", "washington university in st. louis"],
    "umich": ["university of michigan", "umich", "u-m", "michigan"],
    "uw": ["university of washington", "uw", "u washington"],
    "wisc": ["university of wisconsin", "uw-madison", "wisconsin"],
    "jhu": ["johns hopkins", "jhu", "hopkins"],
    "duke": ["duke university", "duke"],
    "unc": ["university of north carolina", "unc", "unc-chapel hill"],
    "emory": ["emory university", "emory"],
    "vanderbilt": ["vanderbilt university", "vanderbilt"],
    "northwestern": ["northwestern university", "northwestern"],
    "uchicago": ["university of chicago", "uchicago", "u chicago"],
    "nyu": ["new york university", "nyu"],
    "bu": ["boston university", "bu"],
    "bc": ["boston college", "bc"],
    "pitt": ["university of pittsburgh", "pitt"],
    "osu": ["ohio state university", "osu", "ohio state"],
    "psu": ["penn state", "pennsylvania state university", "psu"],
    "msu": ["michigan state university", "msu", "michigan state"],
    "uva": ["university of virginia", "uva"],
    "gt": ["georgia tech", "georgia institute of technology"],
    "ut austin": ["university of texas at austin", "ut austin", "texas"],
    "ucsb": ["university of california santa barbara", "ucsb"],
    "ucsc": ["university of california santa cruz", "ucsc"],
    "scripps": ["scripps research", "scripps institute", "scripps"],
    "salk": ["salk institute", "salk"],
    "broad": ["broad institute", "broad"],
    "whitehead": ["whitehead institute", "whitehead"],
    "cshl": ["cold spring harbor", "cshl"],
    "mbl": ["marine biological laboratory", "mbl", "woods hole"],
}

_INSTITUTION_PATTERNS = [
    re.compile(p)
    for p in (
        r"university of [\w\s]+",
        r"[\w\s]+ university",
        r"[\w\s]+ institute of technology",
        r"[\w\s]+ institute",
        r"[\w\s]+ college",
        r"[\w\s]+ school of medicine",
        r"[\w\s]+ medical school",
        r"[\w\s]+ medical center",
    )
]

_MISMATCH_STOP_WORDS = {
    "of", "the", "at", "in", "and", "for", "school", "department", "dept", "center", "centre",
    "university", "college", "institute", "institution",
}
_MATCH_STOP_WORDS = {"of", "the", "and", "at", "in", "for"}
# Words that make "X State University" a different place from "University of X"
_CONFLICTING_WORDS = {"state", "tech", "polytechnic", "community", "medical", "health", "am"}


def _alias_hit(alias: str, text: str) -> bool:
    """Short aliases ("mit", "bu") must match whole words; long ones may match anywhere."""
    if len(alias) <= 4:
        return re.search(rf"\b{re.escape(alias)}\b", text) is not None
    return alias in text


def normalize_affiliation(affiliation: Optional[str]) -> str:
    """Reduce an affiliation string to its core institution for grouping.

    >>> normalize_affiliation("Dept. of Biology, University of Michigan, Ann Arbor, MI, USA.")
    'university of michigan'
    """
    if not affiliation:
        return ""
    normalized = affiliation.lower()
    normalized = re.sub(r"\s*\.?\s*\S+@\S+", "", normalized)
    normalized = re.sub(r",?\s*(usa|united states|uk|france|germany|canada)\.?$", "", normalized)
    match = re.search(
        r"(university of [^,]+|[^,]+ university|[^,]+ institute of technology|[^,]+ institute)",
        normalized,
    )
    if match:
        return match.group(1).strip()
    return normalized[:50].strip()


def _affiliation_for(article: Article, name_variants: Sequence[str]) -> Optional[str]:
    author = matching_author(article, name_variants) if name_variants else None
    if author and article.author_affiliations.get(author):
        return article.author_affiliations[author]
    if author or not name_variants:
        return article.affiliation
    return None


def extract_best_affiliation_multi_variant(
    articles: Sequence[Article], name_variants: Sequence[str]
) -> Optional[str]:
    """Infer a candidate's most likely institution from their matched articles.

    Uses the matched author's own affiliation where the index provides
    per-author data, otherwise the article-level affiliation. Values are
    grouped by normalized institution; the most frequent group wins and ties
    go to the group seen in the most recent publication. The returned string
    is the most recent full text of the winning group.

    Returns:
        Affiliation string, or None when no article carries one.
    """
    counts: dict[str, int] = defaultdict(int)
    latest: dict[str, tuple[int, str]] = {}

    for article in articles:
        affiliation = _affiliation_for(article, name_variants)
        if not affiliation or len(affiliation.strip()) < MIN_AFFILIATION_LENGTH:
            continue
        key = normalize_affiliation(affiliation)
        counts[key] += 1
        year = article.year or 0
        if key not in latest or year > latest[key][0]:
            latest[key] = (year, affiliation.strip())

    if not counts:
        return None
    best = max(counts, key=lambda k: (counts[k], latest[k][0]))
    return latest[best][1]


def extract_institution(text: str) -> str:
    """Pull "University of X" / "X Institute"-style names out of free text."""
    lower = text.lower()
    for pattern in _INSTITUTION_PATTERNS:
        match = pattern.search(lower)
        if match:
            return match.group(0).strip()
    return lower


def _significant_words(text: str) -> list[str]:
    words = []
    for word in text.split():
        cleaned = re.sub(r"[^a-z]", "", word)
        if len(word) > 2 and word not in _MISMATCH_STOP_WORDS and cleaned:
            words.append(cleaned)
    return words


def check_institution_mismatch(verified_affiliation: Optional[str], claimed_institution: Optional[str]) -> bool:
    """True when the institution found in publications contradicts the claimed one.

    Missing data on either side is never a mismatch.
    """
    if not verified_affiliation or not claimed_institution:
        return False

    verified = verified_affiliation.lower()
    claimed = claimed_institution.lower().strip()
    if claimed in verified:
        return False

    for aliases in INSTITUTION_ALIASES.values():
        if any(_alias_hit(a, verified) for a in aliases) and any(_alias_hit(a, claimed) for a in aliases):
            return False

    verified_inst = extract_institution(verified)
    claimed_inst = extract_institution(claimed)
    if claimed_inst in verified_inst or verified_inst in claimed_inst:
        return False

    claimed_words = _significant_words(claimed_inst)
    common = [w for w in _significant_words(verified_inst) if w in claimed_words]
    if any(len(w) > 4 for w in common):
        return False
    return True


def _normalize_for_match(institution: str) -> str:
    text = institution.lower().replace("&", "")
    text = re.sub(r"[^\w\s]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def _key_words(text: str) -> list[str]:
    return [w for w in text.split() if (len(w) > 2 or w == "am") and w not in _MATCH_STOP_WORDS]


def institutions_match(inst1: Optional[str], inst2: Optional[str]) -> bool:
    """Strict same-institution test.

    "University of Michigan" matches "University of Michigan, Ann Arbor" but
    not "Michigan State University".
    """
    if not inst1 or not inst2:
        return False
    a = _normalize_for_match(normalize_affiliation(inst1) or inst1)
    b = _normalize_for_match(normalize_affiliation(inst2) or inst2)
    if not a or not b:
        return False
    if a == b:
        return True

    words1, words2 = _key_words(a), _key_words(b)
    if len(words1) == len(words2) and sorted(words1) == sorted(words2):
        return True

    shorter, longer = (words1, words2) if len(words1) <= len(words2) else (words2, words1)
    if any(w in _CONFLICTING_WORDS and w not in shorter for w in longer):
        return False
    if a in b or b in a:
        return True
    if len(shorter) >= 2 and all(w in longer for w in shorter):
        return True
    return token_sort_ratio(a, b) > 90
