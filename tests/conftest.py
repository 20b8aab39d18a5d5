"""Shared fixtures for Journal Links tests."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import pytest

from journal_links.cache import EntityCache
from journal_links.entities import Entity, categorize, generate_aliases
from journal_links.knowledge import KnowledgeBase
from journal_links.storage import CorpusStore


# ---------------------------------------------------------------------------
# Keep tests away from the real ~/.journal-links database
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _set_test_env(monkeypatch, tmp_path):
    monkeypatch.setenv("JOURNAL_LINKS_DB", str(tmp_path / "env-default.sqlite"))
    monkeypatch.delenv("JOURNAL_LINKS_CONFIG", raising=False)
    monkeypatch.delenv("JOURNAL_LINKS_VAULT", raising=False)


# ---------------------------------------------------------------------------
# Storage / cache fixtures (temporary DB)
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_store(tmp_path):
    """A fresh CorpusStore backed by a temp SQLite file."""
    s = CorpusStore(db_path=str(tmp_path / "corpus.sqlite"))
    yield s
    s.close()


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(tmp_store, clock):
    return EntityCache(tmp_store, ttl_seconds=3600, clock=clock)


@pytest.fixture
def kb(tmp_store, cache):
    return KnowledgeBase(tmp_store, cache)


def make_entity(text: str, frequency: int = 1) -> Entity:
    return Entity(
        text=text,
        type=categorize(text),
        frequency=frequency,
        aliases=generate_aliases(text),
    )


def seed(store: CorpusStore, *entities: Entity) -> None:
    """Insert entities with their aliases directly into *store*."""
    for ent in entities:
        ent.id = store.upsert_entity(ent)
        for alias in ent.aliases:
            store.insert_alias(ent.id, alias)


@pytest.fixture
def entity_factory():
    return make_entity


@pytest.fixture
def seed_store(tmp_store):
    """seed_store(("Nate Stapleton", 3), "Climbing") -> list of saved entities."""

    def _seed(*items) -> List[Entity]:
        entities = []
        for item in items:
            text, freq = (item, 1) if isinstance(item, str) else item
            entities.append(make_entity(text, freq))
        seed(tmp_store, *entities)
        return entities

    return _seed


# ---------------------------------------------------------------------------
# Document source
# ---------------------------------------------------------------------------

class FakeDocumentSource:
    """In-memory document source; ``None`` content means unreadable."""

    def __init__(
        self,
        documents: Dict[str, Optional[str]],
        fail_listing: bool = False,
    ) -> None:
        self.documents = documents
        self.fail_listing = fail_listing
        self.reads: List[Path] = []

    def list_documents(self, root) -> List[Path]:
        if self.fail_listing:
            raise PermissionError(f"cannot list {root}")
        return [Path(name) for name in self.documents]

    async def read_text(self, path: Path) -> Optional[str]:
        self.reads.append(path)
        return self.documents[str(path)]


@pytest.fixture
def sample_source():
    return FakeDocumentSource({
        "2025/9.14.25.md": "Climbed with [[Nate Stapleton]] today. [[Climbing]] was great.",
        "2025/9.15.25.md": "[[Nate]] said [[Climbing]] again tomorrow.",
    })


@pytest.fixture
def make_source():
    """make_source({"a.md": "..."}, fail_listing=False) -> FakeDocumentSource."""
    return FakeDocumentSource
