"""Vault scanning.

Walks every document of a DocumentSource, aggregates ``[[mention]]``
occurrences by raw text, then rebuilds the corpus from the aggregate.

* Documents are processed strictly in order, one at a time
* Unreadable documents are skipped; the rest still commit
* Failing to enumerate the vault aborts before anything is written
* The commit is a destructive replace (clear, then upsert everything)
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

from .cache import EntityCache
from .entities import Entity, categorize, generate_aliases
from .linker import MENTION_PATTERN
from .storage import CorpusStore
from .vault import DocumentSource, PathLike

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class ScanError(Exception):
    """Raised when the document collection cannot be enumerated."""


def aggregate_mentions(
    content: str,
    found: Dict[str, Entity],
    now: Optional[float] = None,
) -> None:
    """Fold every mention in *content* into *found*, keyed by raw text."""
    ts = now if now is not None else time.time()
    for match in MENTION_PATTERN.finditer(content):
        text = match.group(1).strip()
        if not text:
            continue
        existing = found.get(text)
        if existing is not None:
            existing.frequency += 1
            continue
        found[text] = Entity(
            text=text,
            type=categorize(text),
            frequency=1,
            aliases=generate_aliases(text),
            first_seen=ts,
            last_used=ts,
        )


class ScanAggregator:
    """Rebuilds the corpus from a full walk of a document source."""

    def __init__(self, store: CorpusStore, cache: EntityCache) -> None:
        self.store = store
        self.cache = cache
        self.last_stats: Dict[str, Any] = {}

    async def scan(
        self,
        source: DocumentSource,
        root: PathLike,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """Scan *root* and replace the corpus. Returns unique mention count."""
        try:
            documents = list(source.list_documents(root))
        except Exception as exc:
            raise ScanError(f"Cannot enumerate documents under {root}: {exc}") from exc

        total = len(documents)
        found: dict[str, Entity] = {}
        skipped = 0
        t0 = time.time()

        for index, path in enumerate(documents, start=1):
            if on_progress:
                on_progress(index, total)

            try:
                content = await source.read_text(path)
            except (OSError, UnicodeError, ValueError) as exc:
                logger.debug("Skipping unreadable document %s: %s", path, exc)
                content = None
            if content is None:
                skipped += 1
                continue

            aggregate_mentions(content, found)

        self._commit(found)

        self.last_stats = {
            "documents": total,
            "skipped": skipped,
            "found": len(found),
            "elapsed_seconds": round(time.time() - t0, 3),
        }
        logger.info(
            "Scan complete: %d unique mentions from %d documents (%d skipped)",
            len(found), total, skipped,
        )
        return len(found)

    def _commit(self, found: Dict[str, Entity]) -> None:
        try:
            self.store.clear_all()
            for entity in found.values():
                eid = self.store.upsert_entity(entity)
                entity.id = eid
                for alias in entity.aliases:
                    self.store.insert_alias(eid, alias)
        finally:
            self.cache.invalidate()
