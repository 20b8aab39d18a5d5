"""Resolve free-text fragments to known entities.

Priority: exact canonical → stored alias → partial (substring) match.
Partial ties are broken by frequency, then key length, then text, so the
result never depends on dict iteration order.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import List, Optional

from .cache import EntityCache
from .entities import Entity
from .storage import CorpusStore

logger = logging.getLogger(__name__)

DEFAULT_SUGGEST_LIMIT = 5


class Matcher:
    """Reads through the EntityCache, falling back to the store's alias index."""

    def __init__(self, store: CorpusStore, cache: EntityCache) -> None:
        self.store = store
        self.cache = cache

    async def find_match(self, text: str) -> Optional[Entity]:
        """Return the best entity for *text*, or None."""
        lower = text.strip().lower()
        if not lower:
            return None

        await self.cache.load()

        exact = self.cache.get_canonical(lower)
        if exact is not None:
            return exact

        try:
            by_alias = self.store.find_by_alias(lower)
        except sqlite3.Error as exc:
            logger.warning("Alias lookup failed for %r: %s", lower, exc)
            by_alias = None
        if by_alias is not None:
            return by_alias

        return self._partial_match(lower)

    def _partial_match(self, lower: str) -> Optional[Entity]:
        candidates = [
            (key, entity)
            for key, entity in self.cache.items()
            if key in lower or lower in key
        ]
        if not candidates:
            return None
        _, best = min(
            candidates,
            key=lambda kv: (-kv[1].frequency, -len(kv[0]), kv[1].text),
        )
        return best

    async def suggest_links(
        self, partial: str, limit: int = DEFAULT_SUGGEST_LIMIT
    ) -> List[Entity]:
        """Autocomplete: up to *limit* entities, most frequent first."""
        lower = partial.strip().lower()
        if not lower or limit < 1:
            return []

        await self.cache.load()

        seen: set[str] = set()
        results: list[Entity] = []
        for key, entity in self.cache.items():
            if entity.text in seen:
                continue
            if key.startswith(lower) or lower in entity.text.lower():
                seen.add(entity.text)
                results.append(entity)

        results.sort(key=lambda e: (-e.frequency, e.text))
        return results[:limit]
