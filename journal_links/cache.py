"""TTL-bound read-through cache over the corpus store.

Keys are lowercased canonical texts and aliases. A reload builds a new
snapshot and swaps it in with one assignment, so readers only ever see a
complete snapshot.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .entities import Entity
from .storage import CorpusStore

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60


@dataclass(frozen=True)
class _Snapshot:
    keys: Dict[str, Entity] = field(default_factory=dict)
    canonical: Dict[str, Entity] = field(default_factory=dict)
    entities: Tuple[Entity, ...] = ()


def _build_snapshot(entities: List[Entity]) -> _Snapshot:
    canonical: Dict[str, Entity] = {}
    for ent in entities:
        canonical.setdefault(ent.text.lower(), ent)

    # Canonical keys first; on alias collisions the first (most frequent) owner wins.
    keys: Dict[str, Entity] = dict(canonical)
    for ent in entities:
        for alias in sorted(ent.aliases):
            keys.setdefault(alias.lower(), ent)

    return _Snapshot(keys=keys, canonical=canonical, entities=tuple(entities))


class EntityCache:
    """In-memory key → Entity map reloaded from a CorpusStore on expiry."""

    def __init__(
        self,
        store: CorpusStore,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot = _Snapshot()
        self._expires_at = 0.0

    @property
    def is_expired(self) -> bool:
        return self._clock() >= self._expires_at

    def __len__(self) -> int:
        return len(self._snapshot.keys)

    async def load(self) -> None:
        """Reload from the store unless the cache is populated and fresh.

        On a store error the previous snapshot stays in place and the
        expiry is left untouched so the next call retries.
        """
        if self._snapshot.keys and not self.is_expired:
            return

        try:
            entities = self.store.get_all_entities()
        except sqlite3.Error as exc:
            logger.warning("Entity cache reload failed, keeping previous snapshot: %s", exc)
            return

        self._snapshot = _build_snapshot(entities)
        self._expires_at = self._clock() + self.ttl_seconds
        logger.debug(
            "Entity cache loaded: %d entities, %d keys",
            len(entities), len(self._snapshot.keys),
        )

    def invalidate(self) -> None:
        """Force the next load() to hit the store."""
        self._expires_at = 0.0

    # ------------------------------------------------------------------
    # Lookups (on the current snapshot)
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[Entity]:
        """Lookup by any key (canonical text or alias)."""
        return self._snapshot.keys.get(key.lower())

    def get_canonical(self, key: str) -> Optional[Entity]:
        """Lookup by canonical text only, case-insensitive."""
        return self._snapshot.canonical.get(key.lower())

    def items(self) -> List[Tuple[str, Entity]]:
        return list(self._snapshot.keys.items())

    def entities(self) -> List[Entity]:
        """Unique cached entities, most frequent first."""
        return list(self._snapshot.entities)
