"""Person-name normalization, variant generation and matching.

Bibliographic indices render the same person many ways ("Jane Q. Smith",
"Smith JQ", "Smith, Jane", "J. Smith"). Everything here is pure and
deterministic so it can be used both to build queries and to match the
authors that come back.
"""

from __future__ import annotations

import re
import unicodedata
from typing import NamedTuple, Sequence

_HONORIFIC_PATTERN = re.compile(
    r"^(?:dr|prof|professor|mr|mrs|ms|mx|sir|dame)\.?\s+", flags=re.IGNORECASE
)
_SUFFIX_PATTERN = re.compile(
    r",?\s+(?:jr|sr|ii|iii|iv|phd|ph\.d|md|m\.d|dphil|frs|facs)\.?$", flags=re.IGNORECASE
)

# Lowercase particles that belong to the surname ("Ludwig van Beethoven")
PARTICLES = frozenset(
    {"van", "von", "de", "der", "den", "del", "della", "da", "das", "dos", "di", "du",
     "la", "le", "ter", "ten", "bin", "ibn", "al", "st", "y"}
)

NICKNAMES = {
    "will": "William",
    "bill": "William",
    "bob": "Robert",
    "rob": "Robert",
    "mike": "Michael",
    "jim": "James",
    "joe": "Joseph",
    "tom": "Thomas",
    "dan": "Daniel",
    "dave": "David",
    "ed": "Edward",
    "ted": "Edward",
    "ben": "Benjamin",
    "matt": "Matthew",
    "chris": "Christopher",
    "alex": "Alexander",
    "nick": "Nicholas",
    "tony": "Anthony",
    "steve": "Steven",
    "tim": "Timothy",
    "sam": "Samuel",
    "andy": "Andrew",
    "drew": "Andrew",
    "pete": "Peter",
    "pat": "Patrick",
    "greg": "Gregory",
    "phil": "Philip",
    "ken": "Kenneth",
    "kate": "Katherine",
    "kathy": "Katherine",
    "cathy": "Catherine",
    "liz": "Elizabeth",
    "beth": "Elizabeth",
    "sue": "Susan",
    "jenny": "Jennifer",
    "jen": "Jennifer",
    "meg": "Margaret",
    "maggie": "Margaret",
    "peg": "Margaret",
    "sally": "Sarah",
    "vicky": "Victoria",
    "vic": "Victoria",
    "nicky": "Nicole",
}


class NameParts(NamedTuple):
    """A name split into given name, middle names/initials and surname."""

    first: str
    middles: tuple[str, ...]
    last: str


def strip_honorifics(name: str) -> str:
    """Remove titles ("Dr.", "Prof.") and suffixes ("Jr.", "PhD") and stray markdown."""
    if not name:
        return ""
    cleaned = name.strip().strip("*_\"'").strip()
    cleaned = re.sub(r"\s+", " ", cleaned)
    previous = None
    while previous != cleaned:
        previous = cleaned
        cleaned = _HONORIFIC_PATTERN.sub("", cleaned).strip()
        cleaned = _SUFFIX_PATTERN.sub("", cleaned).strip()
    return cleaned.strip(",").strip()


def _fold(text: str) -> str:
    """Lowercase, strip accents and drop periods/apostrophes."""
    text = unicodedata.normalize("NFKD", text)
    text = "".join(c for c in text if not unicodedata.combining(c))
    return re.sub(r"[.'’`]", "", text.lower()).strip()


def _is_initials(token: str) -> bool:
    """True for "J", "J.", "JQ", "J.Q." style tokens.

    Undotted capital runs longer than two letters ("LEE", "KIM") are surnames.
    """
    bare = token.replace(".", "").replace("-", "")
    if not bare or not bare.isalpha():
        return False
    if len(bare) == 1:
        return True
    if not bare.isupper():
        return False
    return len(bare) <= (3 if "." in token else 2)


def split_name(name: str) -> NameParts:
    """Split a display name into (first, middles, last).

    Handles "Last, First M." ordering, index-style "Smith JQ", surname
    particles and single-word names (returned as a bare surname).
    """
    cleaned = strip_honorifics(name)
    if not cleaned:
        return NameParts("", (), "")

    if "," in cleaned:
        last_part, _, given = cleaned.partition(",")
        given_tokens = given.split()
        if given_tokens:
            return NameParts(given_tokens[0], tuple(given_tokens[1:]), last_part.strip())
        cleaned = last_part.strip()

    tokens = cleaned.split()
    if len(tokens) == 1:
        return NameParts("", (), tokens[0])

    # Index format "Smith JQ": surname first, then run-together initials
    if (
        len(tokens) == 2
        and _is_initials(tokens[1])
        and "." not in tokens[1]
        and not _is_initials(tokens[0])
    ):
        initials = tokens[1]
        return NameParts(initials[0], tuple(initials[1:]), tokens[0])

    surname_start = len(tokens) - 1
    for i in range(1, len(tokens) - 1):
        if tokens[i].lower() in PARTICLES:
            surname_start = i
            break

    return NameParts(tokens[0], tuple(tokens[1:surname_start]), " ".join(tokens[surname_start:]))


def _initial(token: str) -> str:
    """First letter of each hyphen-separated part: "Jean-Pierre" -> "JP"."""
    return "".join(part[0].upper() for part in token.replace(".", "").split("-") if part)


def generate_name_variants(name: str) -> list[str]:
    """Plausible renderings of a name for querying and matching.

    Order: plain "First Last", "First M. Last", nickname expansion,
    "F. Last", "F Last", index form "Last FM". Deduplicated case-insensitively.

    >>> generate_name_variants("Dr. Jane Q. Smith")
    ['Jane Smith', 'Jane Q. Smith', 'J. Smith', 'J Smith', 'Smith JQ']
    """
    parts = split_name(name)
    if not parts.last:
        return []
    if not parts.first:
        return [parts.last]

    first, middles, last = parts
    first_display = first if not _is_initials(first) else f"{_initial(first)}."
    variants = [f"{first_display} {last}"]

    if middles:
        middle_initials = " ".join(f"{_initial(m)}." for m in middles)
        variants.append(f"{first_display} {middle_initials} {last}")

    expanded = NICKNAMES.get(_fold(first))
    if expanded:
        variants.append(f"{expanded} {last}")

    variants.append(f"{_initial(first)}. {last}")
    variants.append(f"{_initial(first)} {last}")
    variants.append(f"{last} {_initial(first)}{''.join(_initial(m) for m in middles)}")

    seen = set()
    ordered = []
    for v in variants:
        key = v.lower()
        if key not in seen:
            seen.add(key)
            ordered.append(v)
    return ordered


def _surname_key(last: str) -> str:
    return re.sub(r"[\s\-]", "", _fold(last))


def names_match(name1: str, name2: str) -> bool:
    """Check whether two rendered names plausibly refer to the same person.

    Surnames must agree. Given names must be equal, a nickname of one
    another, a prefix of one another ("Chris"/"Christopher"), or one must be
    an initial consistent with the other. When both sides carry a middle
    initial the initials must agree.
    """
    p1, p2 = split_name(name1), split_name(name2)
    if not p1.last or not p2.last:
        return False
    if _surname_key(p1.last) != _surname_key(p2.last):
        return False

    f1, f2 = _fold(p1.first), _fold(p2.first)
    if not f1 or not f2:
        return f1 == f2

    if p1.middles and p2.middles:
        if _fold(p1.middles[0])[:1] != _fold(p2.middles[0])[:1]:
            return False

    if f1 == f2:
        return True
    if _is_initials(p1.first) or _is_initials(p2.first):
        return f1[0] == f2[0]
    n1, n2 = NICKNAMES.get(f1, "").lower(), NICKNAMES.get(f2, "").lower()
    if n1 == f2 or n2 == f1 or (n1 and n1 == n2):
        return True
    if min(len(f1), len(f2)) >= 3 and (f1.startswith(f2) or f2.startswith(f1)):
        return True
    return False


def name_keys(name: str) -> set[str]:
    """Full-form keys ("first last") for merging records of the same person.

    Initial-only names ("J. Smith") produce no keys because they cannot be
    merged safely on their own.
    """
    parts = split_name(name)
    if not parts.first or not parts.last or _is_initials(parts.first):
        return set()
    last = _fold(parts.last)
    first = _fold(parts.first)
    keys = {f"{first} {last}"}
    expanded = NICKNAMES.get(first)
    if expanded:
        keys.add(f"{expanded.lower()} {last}")
    return keys


def same_person(name1: str, name2: str) -> bool:
    """Merge test used when combining candidates from different queries.

    Names whose full-form keys overlap are the same person. When either side
    is only an initial, fall back to names_match.
    """
    keys1, keys2 = name_keys(name1), name_keys(name2)
    if keys1 & keys2:
        return True
    if not keys1 or not keys2:
        return names_match(name1, name2)
    return False


def _merge_forms(names: Sequence[str]) -> list[str]:
    """Display name first, then only the alternates that carry a full given name."""
    names = [n for n in names if n]
    if not names:
        return []
    return [names[0]] + [n for n in names[1:] if name_keys(n)]


def same_person_any(names1: Sequence[str], names2: Sequence[str]) -> bool:
    """same_person across two records' renderings, display name first.

    Initial-only alternates ("J. Smith") are skipped; on their own they
    would merge any namesake.
    """
    forms2 = _merge_forms(names2)
    return any(same_person(a, b) for a in _merge_forms(names1) for b in forms2)
