"""``[[mention]]`` markup: extraction and auto-linking.

Auto-linking tracks spans explicitly instead of relying on regex
lookaround: existing links are located first, candidate matches are
accepted longest-text-first only where they overlap neither an existing
link nor an earlier accepted match, and all replacements are spliced in
one pass.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Set, Tuple

from .entities import Entity

# Content between double brackets: [[Nate Stapleton]]
MENTION_PATTERN = re.compile(r"\[\[([^\]]+)\]\]")

Span = Tuple[int, int]


def extract_mentions(text: str) -> Set[str]:
    """Return every distinct non-empty ``[[...]]`` mention text in *text*."""
    mentions: set[str] = set()
    for match in MENTION_PATTERN.finditer(text):
        mention = match.group(1).strip()
        if mention:
            mentions.add(mention)
    return mentions


def find_linked_spans(text: str) -> List[Span]:
    """Character ranges already wrapped in ``[[...]]`` (brackets included)."""
    return [m.span() for m in MENTION_PATTERN.finditer(text)]


def _overlaps(span: Span, others: Iterable[Span]) -> bool:
    start, end = span
    return any(start < o_end and o_start < end for o_start, o_end in others)


def _mention_regex(canonical: str) -> re.Pattern[str]:
    # Word boundaries only where the edge character is a word character,
    # so texts like "Mt." still match before punctuation.
    prefix = r"\b" if re.match(r"\w", canonical[0]) else ""
    suffix = r"\b" if re.match(r"\w", canonical[-1]) else ""
    return re.compile(prefix + re.escape(canonical) + suffix, re.IGNORECASE)


def _linkable_texts(entities: Iterable[Entity]) -> List[str]:
    texts: list[str] = []
    seen: set[str] = set()
    for entity in entities:
        canonical = entity.text
        if not canonical.strip() or canonical in seen:
            continue
        if "[" in canonical or "]" in canonical:
            continue
        seen.add(canonical)
        texts.append(canonical)
    # Longest first so "Nate Stapleton" claims its span before "Nate".
    texts.sort(key=len, reverse=True)
    return texts


def auto_link(text: str, entities: Iterable[Entity]) -> str:
    """Wrap each unlinked occurrence of an entity's canonical text in ``[[...]]``.

    Matching is case-insensitive; the inserted link always uses the
    canonical spelling. Running the function on its own output returns it
    unchanged.
    """
    protected = find_linked_spans(text)
    accepted: list[tuple[int, int, str]] = []

    for canonical in _linkable_texts(entities):
        taken = [(s, e) for s, e, _ in accepted]
        for match in _mention_regex(canonical).finditer(text):
            span = match.span()
            if _overlaps(span, protected) or _overlaps(span, taken):
                continue
            accepted.append((span[0], span[1], canonical))
            taken.append(span)

    if not accepted:
        return text

    accepted.sort()
    parts: list[str] = []
    cursor = 0
    for start, end, canonical in accepted:
        parts.append(text[cursor:start])
        parts.append(f"[[{canonical}]]")
        cursor = end
    parts.append(text[cursor:])
    return "".join(parts)
