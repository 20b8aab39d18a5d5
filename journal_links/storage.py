"""SQLite storage layer for the mention corpus.

Single-file database with:
* ``entities`` table keyed by exact canonical text
* ``aliases`` table (cascading delete, unique per entity)
* Auto-create schema on first use
"""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from .entities import Entity, EntityType

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS entities (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    text TEXT UNIQUE NOT NULL,
    type TEXT,
    frequency INTEGER DEFAULT 1,
    first_seen REAL,
    last_used REAL
);

CREATE TABLE IF NOT EXISTS aliases (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    entity_id INTEGER NOT NULL REFERENCES entities(id) ON DELETE CASCADE,
    alias TEXT NOT NULL,
    UNIQUE (entity_id, alias)
);

CREATE INDEX IF NOT EXISTS idx_entities_text ON entities(text);
CREATE INDEX IF NOT EXISTS idx_aliases_entity ON aliases(entity_id);
CREATE INDEX IF NOT EXISTS idx_aliases_alias ON aliases(alias)
"""


class CorpusStore:
    """SQLite-backed entity + alias storage."""

    def __init__(self, db_path: Optional[str] = None) -> None:
        if db_path is None:
            from .config import load_config

            db_path = load_config().db_path
        self.db_path = db_path

        # Ensure parent directory exists
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn: Optional[sqlite3.Connection] = None
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Connection helpers
    # ------------------------------------------------------------------

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
        return self._conn

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        for stmt in _SCHEMA_SQL.split(";"):
            stmt = stmt.strip()
            if stmt:
                conn.execute(stmt)
        conn.commit()

    # ------------------------------------------------------------------
    # Row helpers
    # ------------------------------------------------------------------

    def _aliases_for(self, entity_id: int) -> set[str]:
        rows = self._get_conn().execute(
            "SELECT alias FROM aliases WHERE entity_id = ?", (entity_id,)
        ).fetchall()
        return {r["alias"] for r in rows}

    def _row_to_entity(self, row: sqlite3.Row) -> Entity:
        return Entity(
            id=row["id"],
            text=row["text"],
            type=EntityType.parse(row["type"]),
            frequency=row["frequency"],
            aliases=self._aliases_for(row["id"]),
            first_seen=row["first_seen"] or 0.0,
            last_used=row["last_used"] or 0.0,
        )

    # ------------------------------------------------------------------
    # Entity CRUD
    # ------------------------------------------------------------------

    def upsert_entity(self, entity: Entity) -> int:
        """Merge by exact canonical text. Returns the entity ID.

        An existing row gets ``frequency + 1`` and a fresh ``last_used``;
        a new row is inserted with the entity's own frequency.
        """
        conn = self._get_conn()
        now = time.time()

        existing = conn.execute(
            "SELECT id FROM entities WHERE text = ?", (entity.text,)
        ).fetchone()

        if existing:
            eid = existing["id"]
            conn.execute(
                """UPDATE entities
                   SET frequency = frequency + 1, last_used = ?, type = ?
                   WHERE id = ?""",
                (now, entity.type.value, eid),
            )
            conn.commit()
            return eid

        cur = conn.execute(
            """INSERT INTO entities (text, type, frequency, first_seen, last_used)
               VALUES (?, ?, ?, ?, ?)""",
            (
                entity.text,
                entity.type.value,
                max(0, entity.frequency),
                entity.first_seen or now,
                entity.last_used or now,
            ),
        )
        conn.commit()
        return cur.lastrowid

    def insert_alias(self, entity_id: int, alias: str) -> None:
        """Attach *alias* (lowercased) to an entity. Duplicates are ignored."""
        conn = self._get_conn()
        conn.execute(
            "INSERT OR IGNORE INTO aliases (entity_id, alias) VALUES (?, ?)",
            (entity_id, alias.lower()),
        )
        conn.commit()

    def get_entity(self, entity_id: int) -> Optional[Entity]:
        """Return an entity by ID or None."""
        row = self._get_conn().execute(
            "SELECT * FROM entities WHERE id = ?", (entity_id,)
        ).fetchone()
        return self._row_to_entity(row) if row else None

    def get_by_text(self, text: str) -> Optional[Entity]:
        """Return the entity whose canonical text equals *text* exactly."""
        row = self._get_conn().execute(
            "SELECT * FROM entities WHERE text = ?", (text,)
        ).fetchone()
        return self._row_to_entity(row) if row else None

    def get_all_entities(self) -> List[Entity]:
        """All entities, most frequent first, with aliases attached."""
        rows = self._get_conn().execute(
            "SELECT * FROM entities ORDER BY frequency DESC, id ASC"
        ).fetchall()
        return [self._row_to_entity(r) for r in rows]

    def find_by_alias(self, alias: str) -> Optional[Entity]:
        """Case-insensitive alias lookup, falling back to canonical text."""
        conn = self._get_conn()
        key = alias.lower()
        row = conn.execute(
            """SELECT e.* FROM aliases a JOIN entities e ON e.id = a.entity_id
               WHERE a.alias = ? ORDER BY a.id LIMIT 1""",
            (key,),
        ).fetchone()
        if row is None:
            row = conn.execute(
                "SELECT * FROM entities WHERE lower(text) = ? ORDER BY id LIMIT 1",
                (key,),
            ).fetchone()
        return self._row_to_entity(row) if row else None

    def clear_all(self) -> None:
        """Delete every entity and alias."""
        conn = self._get_conn()
        conn.execute("DELETE FROM aliases")
        conn.execute("DELETE FROM entities")
        conn.commit()
        logger.info("Corpus cleared: %s", self.db_path)

    def count(self) -> int:
        row = self._get_conn().execute("SELECT COUNT(*) AS c FROM entities").fetchone()
        return row["c"]

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        """Return corpus statistics."""
        conn = self._get_conn()
        alias_count = conn.execute("SELECT COUNT(*) AS c FROM aliases").fetchone()["c"]
        by_type = conn.execute(
            "SELECT type, COUNT(*) AS c FROM entities GROUP BY type"
        ).fetchall()
        return {
            "entities": self.count(),
            "aliases": alias_count,
            "by_type": {r["type"]: r["c"] for r in by_type},
        }
