"""Mention entities: data model, categorization and alias generation.

Regex + heuristics only (no ML disambiguation):
* Fixed-priority type categorization (date → person → place → concept)
* Alias variants for two-token names
* Candidate detection for capitalized names in free text
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

class EntityType(str, Enum):
    PERSON = "person"
    TOPIC = "topic"
    PLACE = "place"
    CONCEPT = "concept"
    DATE = "date"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "EntityType":
        """Map a stored type string back to an EntityType (unknown on junk)."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class Entity:
    """A recurring mention tracked in the corpus."""
    text: str
    type: EntityType = EntityType.UNKNOWN
    frequency: int = 1
    aliases: Set[str] = field(default_factory=set)
    first_seen: float = 0.0
    last_used: float = 0.0
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "type": self.type.value,
            "frequency": self.frequency,
            "aliases": sorted(self.aliases),
            "first_seen": self.first_seen,
            "last_used": self.last_used,
        }


# ---------------------------------------------------------------------------
# Categorization
# ---------------------------------------------------------------------------

# Short journal date: 9.14.25, 2.23.26
_DATE_RE = re.compile(r"^\d{1,2}\.\d{2}\.\d{2}$")

# Two capitalized words: "John Smith"
_PERSON_RE = re.compile(r"^[A-Z][a-z]+ [A-Z][a-z]+$")

_PLACE_RE = re.compile(
    r"National Park|2025|2026|Park$|Japan|Mt\.|Lake |River ",
    re.IGNORECASE,
)

CONCEPT_TERMS: Set[str] = {
    "lord", "christ", "god", "heavenly father", "holy ghost", "faith", "gospel",
}


def categorize(text: str) -> EntityType:
    """Classify mention text; first matching rule wins."""
    if _DATE_RE.match(text):
        return EntityType.DATE
    if _PERSON_RE.match(text):
        return EntityType.PERSON
    if _PLACE_RE.search(text):
        return EntityType.PLACE
    if text.lower() in CONCEPT_TERMS:
        return EntityType.CONCEPT
    return EntityType.UNKNOWN


# ---------------------------------------------------------------------------
# Aliases
# ---------------------------------------------------------------------------

def generate_aliases(text: str) -> Set[str]:
    """Return lowercase alias variants for *text*.

    "Nate Stapleton" → {"nate stapleton", "nate", "stapleton"}.
    Names with three or more tokens only get the full-text alias.
    """
    aliases = {text.lower()}
    parts = text.split(" ")
    if len(parts) == 2 and all(parts):
        aliases.update(p.lower() for p in parts)
    return aliases


# ---------------------------------------------------------------------------
# Candidate detection
# ---------------------------------------------------------------------------

_FULL_NAME_RE = re.compile(r"\b([A-Z][a-z]+ [A-Z][a-z]+)\b")
_CAPITALIZED_RE = re.compile(r"\b[A-Z][a-z]{2,}\b")
_SENTENCE_END_CHARS = ".!?"


def _opens_sentence(message: str, start: int) -> bool:
    # Walk back over whitespace only; each run is visited by one match.
    i = start - 1
    while i >= 0 and message[i].isspace():
        i -= 1
    return i < 0 or message[i] in _SENTENCE_END_CHARS


def extract_candidates(message: str) -> List[str]:
    """Find capitalized names/topics in *message* that could become mentions.

    Full names ("John Smith") are always candidates; single capitalized
    words count only when they do not open a sentence (start of text, or
    after ".", "!" or "?"), so "Today was long. Went out" yields nothing.
    """
    found: list[str] = []
    seen: set[str] = set()
    name_spans: list[tuple[int, int]] = []

    for match in _FULL_NAME_RE.finditer(message):
        name_spans.append(match.span(1))
        if match.group(1) not in seen:
            seen.add(match.group(1))
            found.append(match.group(1))

    # Both scans run left to right, so one cursor over name_spans suffices.
    span_idx = 0
    for match in _CAPITALIZED_RE.finditer(message):
        start, end = match.span()
        while span_idx < len(name_spans) and name_spans[span_idx][1] < end:
            span_idx += 1
        if span_idx < len(name_spans):
            s, e = name_spans[span_idx]
            if s <= start and end <= e:
                continue
        if _opens_sentence(message, start):
            continue
        if match.group() not in seen:
            seen.add(match.group())
            found.append(match.group())

    return found
