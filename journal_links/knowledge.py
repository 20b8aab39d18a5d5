"""High-level API over the mention corpus.

Wires CorpusStore, EntityCache, Matcher and ScanAggregator together and
adds the operations the journaling flow needs: explicit adds, post-save
mention recording, generation context and cache-backed auto-linking.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from typing import Any, Dict, List, Optional

from .cache import DEFAULT_TTL_SECONDS, EntityCache
from .entities import Entity, EntityType, categorize, extract_candidates, generate_aliases
from .linker import auto_link, extract_mentions
from .matcher import DEFAULT_SUGGEST_LIMIT, Matcher
from .scan import ProgressCallback, ScanAggregator
from .storage import CorpusStore
from .vault import DocumentSource, PathLike

logger = logging.getLogger(__name__)


class KnowledgeBase:
    """Service object shared by the API, the scan script and entry saving."""

    def __init__(
        self,
        store: CorpusStore,
        cache: Optional[EntityCache] = None,
        suggest_limit: int = DEFAULT_SUGGEST_LIMIT,
    ) -> None:
        self.store = store
        self.cache = cache if cache is not None else EntityCache(store, ttl_seconds=DEFAULT_TTL_SECONDS)
        self.matcher = Matcher(store, self.cache)
        self.scanner = ScanAggregator(store, self.cache)
        self.suggest_limit = suggest_limit

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_entity(
        self, text: str, entity_type: Optional[EntityType] = None
    ) -> Optional[Entity]:
        """Add *text* to the corpus (or bump its frequency if present).

        Returns the entity as stored (current frequency and timestamps), or
        None when the store write failed.
        """
        text = text.strip()
        if not text:
            raise ValueError("Entity text must not be blank")

        now = time.time()
        entity = Entity(
            text=text,
            type=entity_type or categorize(text),
            frequency=1,
            aliases=generate_aliases(text),
            first_seen=now,
            last_used=now,
        )
        try:
            entity.id = self.store.upsert_entity(entity)
            for alias in entity.aliases:
                self.store.insert_alias(entity.id, alias)
            saved = self.store.get_entity(entity.id)
        except sqlite3.Error as exc:
            logger.warning("Failed to add entity %r: %s", text, exc)
            return None
        finally:
            self.cache.invalidate()
        return saved

    async def record_entry(self, saved_text: str) -> Dict[str, List[str]]:
        """Post-save hook: add every mention in *saved_text* not yet known.

        Write failures are logged and skipped so the save itself never fails.
        """
        mentions = sorted(extract_mentions(saved_text))
        await self.cache.load()

        added: list[str] = []
        for mention in mentions:
            if self.cache.get_canonical(mention) is not None:
                continue
            if await self.add_entity(mention) is not None:
                added.append(mention)
                # Keep later lookups in this entry aware of what was just added.
                await self.cache.load()

        return {"mentions": mentions, "added": added}

    async def clear(self) -> None:
        """Delete the whole corpus (used before a fresh scan)."""
        try:
            self.store.clear_all()
        finally:
            self.cache.invalidate()

    async def scan(
        self,
        source: DocumentSource,
        root: PathLike,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        return await self.scanner.scan(source, root, on_progress)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_match(self, text: str) -> Optional[Entity]:
        return await self.matcher.find_match(text)

    async def suggest_links(self, partial: str, limit: Optional[int] = None) -> List[Entity]:
        return await self.matcher.suggest_links(partial, self.suggest_limit if limit is None else limit)

    async def get_all_entities(self) -> List[Entity]:
        """Every entity, most frequent first (empty if the store is down)."""
        try:
            return self.store.get_all_entities()
        except sqlite3.Error as exc:
            logger.warning("Could not read entities: %s", exc)
            return []

    async def context_mentions(self, limit: int = 100) -> List[str]:
        """Canonical texts of the most frequent entities, for prompt seeding."""
        entities = await self.get_all_entities()
        return [e.text for e in entities[:limit]]

    async def link_text(self, text: str) -> str:
        """Auto-link *text* against every cached entity."""
        await self.cache.load()
        return auto_link(text, self.cache.entities())

    async def candidate_mentions(self, message: str) -> List[str]:
        """Capitalized names in *message* that are not in the corpus yet."""
        await self.cache.load()
        return [
            c for c in extract_candidates(message)
            if self.cache.get(c) is None
        ]

    def stats(self) -> Dict[str, Any]:
        s = self.store.stats()
        s["cache_keys"] = len(self.cache)
        s["cache_expired"] = self.cache.is_expired
        if self.scanner.last_stats:
            s["last_scan"] = dict(self.scanner.last_stats)
        return s
