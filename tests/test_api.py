"""Tests for the FastAPI HTTP API.

Uses httpx AsyncClient against the FastAPI app. We manually initialise
the module-level state that normally comes from the lifespan handler,
pointing it at a temp database so the production DB is untouched.
"""

from __future__ import annotations

import sqlite3
import time
from unittest.mock import patch

import pytest
from httpx import AsyncClient, ASGITransport

import journal_links.api as api_module
from journal_links.api import app
from journal_links.cache import EntityCache
from journal_links.config import Config
from journal_links.knowledge import KnowledgeBase
from journal_links.storage import CorpusStore
from journal_links.vault import MarkdownVault


@pytest.fixture(autouse=True)
def _init_api_state(tmp_path):
    """Wire the api module globals to a temp DB so every test starts clean."""
    store = CorpusStore(db_path=str(tmp_path / "api.sqlite"))

    api_module._config = Config(db_path=store.db_path)
    api_module._kb = KnowledgeBase(store, EntityCache(store))
    api_module._vault = MarkdownVault()
    api_module._start_time = time.time()

    yield

    store.close()
    api_module._kb = None
    api_module._vault = None
    api_module._config = None


@pytest.fixture
async def client():
    """Create a test HTTP client against the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def vault_dir(tmp_path):
    root = tmp_path / "vault"
    (root / "2025").mkdir(parents=True)
    (root / "2025" / "9.14.25.md").write_text("With [[Nate Stapleton]]. [[Climbing]]!")
    (root / "2025" / "9.15.25.md").write_text("[[Nate]] and [[Climbing]]")
    return root


# ---------------------------------------------------------------------------
# /v1/health, /v1/stats
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
class TestHealth:
    async def test_health_returns_ok(self, client):
        resp = await client.get("/v1/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["checks"]["storage"] is True
        assert "uptime_seconds" in data

    async def test_health_down_without_kb(self, client):
        api_module._kb = None
        data = (await client.get("/v1/health")).json()
        assert data["status"] == "down"

    async def test_uninitialised_returns_503(self, client):
        api_module._kb = None
        resp = await client.get("/v1/stats")
        assert resp.status_code == 503
        assert resp.json()["status_code"] == 503


@pytest.mark.asyncio
class TestStats:
    async def test_stats_after_add(self, client):
        await client.post("/v1/entities", json={"text": "Nate Stapleton"})
        data = (await client.get("/v1/stats")).json()
        assert data["entities"] == 1
        assert data["aliases"] == 3
        assert data["by_type"] == {"person": 1}


# ---------------------------------------------------------------------------
# /v1/entities
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
class TestEntities:
    async def test_add_entity(self, client):
        resp = await client.post("/v1/entities", json={"text": "Yellowstone National Park"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["stored"] is True
        assert data["entity"]["type"] == "place"

    async def test_add_existing_reports_frequency(self, client):
        await client.post("/v1/entities", json={"text": "Climbing"})
        resp = await client.post("/v1/entities", json={"text": "Climbing"})
        assert resp.json()["entity"]["frequency"] == 2

    async def test_add_with_type(self, client):
        resp = await client.post("/v1/entities", json={"text": "Climbing", "type": "topic"})
        assert resp.json()["entity"]["type"] == "topic"

    async def test_add_bad_type(self, client):
        resp = await client.post("/v1/entities", json={"text": "Climbing", "type": "animal"})
        assert resp.status_code == 422

    async def test_add_validation_error(self, client):
        resp = await client.post("/v1/entities", json={})
        assert resp.status_code == 422

    async def test_add_blank(self, client):
        resp = await client.post("/v1/entities", json={"text": "   "})
        assert resp.status_code == 400

    async def test_add_store_failure(self, client):
        store = api_module._kb.store
        with patch.object(store, "upsert_entity", side_effect=sqlite3.OperationalError("locked")):
            resp = await client.post("/v1/entities", json={"text": "Climbing"})
        assert resp.status_code == 500

    async def test_list_by_frequency(self, client):
        await client.post("/v1/entities", json={"text": "Hiking"})
        for _ in range(3):
            await client.post("/v1/entities", json={"text": "Climbing"})
        data = (await client.get("/v1/entities")).json()
        assert data["total"] == 2
        assert [e["text"] for e in data["entities"]] == ["Climbing", "Hiking"]
        assert data["entities"][0]["frequency"] == 3

    async def test_list_limit(self, client):
        for text in ("A1", "B2", "C3"):
            await client.post("/v1/entities", json={"text": text})
        data = (await client.get("/v1/entities", params={"limit": 2})).json()
        assert len(data["entities"]) == 2
        assert data["total"] == 3

    async def test_clear(self, client):
        await client.post("/v1/entities", json={"text": "Climbing"})
        resp = await client.delete("/v1/entities")
        assert resp.json() == {"cleared": 1}
        assert (await client.get("/v1/entities")).json()["total"] == 0


# ---------------------------------------------------------------------------
# /v1/match, /v1/suggest
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
class TestMatch:
    async def test_match_alias(self, client):
        await client.post("/v1/entities", json={"text": "Nate Stapleton"})
        data = (await client.get("/v1/match", params={"text": "NATE"})).json()
        assert data["query"] == "NATE"
        assert data["match"]["text"] == "Nate Stapleton"

    async def test_no_match(self, client):
        data = (await client.get("/v1/match", params={"text": "nobody"})).json()
        assert data["match"] is None

    async def test_match_requires_text(self, client):
        assert (await client.get("/v1/match")).status_code == 422

    async def test_suggest(self, client):
        await client.post("/v1/entities", json={"text": "Nate Stapleton"})
        await client.post("/v1/entities", json={"text": "Climbing"})
        data = (await client.get("/v1/suggest", params={"q": "nat"})).json()
        assert [e["text"] for e in data["suggestions"]] == ["Nate Stapleton"]


# ---------------------------------------------------------------------------
# Text endpoints
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
class TestText:
    async def test_link(self, client):
        await client.post("/v1/entities", json={"text": "Nate"})
        await client.post("/v1/entities", json={"text": "Nate Stapleton"})
        resp = await client.post("/v1/link", json={"text": "Met nate stapleton and Nate"})
        assert resp.json()["text"] == "Met [[Nate Stapleton]] and [[Nate]]"

    async def test_mentions(self, client):
        resp = await client.post("/v1/mentions", json={"text": "[[B]] then [[A]] and [[B]]"})
        assert resp.json() == {"mentions": ["A", "B"]}

    async def test_record_entry(self, client):
        await client.post("/v1/entities", json={"text": "Climbing"})
        resp = await client.post("/v1/entries", json={"text": "[[Climbing]] with [[Nate]]"})
        assert resp.json() == {"mentions": ["Climbing", "Nate"], "added": ["Nate"]}

    async def test_context(self, client):
        api_module._config = Config(context_limit=1)
        await client.post("/v1/entities", json={"text": "Hiking"})
        for _ in range(2):
            await client.post("/v1/entities", json={"text": "Climbing"})
        assert (await client.get("/v1/context")).json() == {"mentions": ["Climbing"]}
        data = (await client.get("/v1/context", params={"limit": 5})).json()
        assert data["mentions"] == ["Climbing", "Hiking"]

    async def test_candidates(self, client):
        await client.post("/v1/entities", json={"text": "Nate"})
        resp = await client.post("/v1/candidates", json={"text": "Lunch with Nate and John Smith"})
        assert resp.json() == {"candidates": ["John Smith"]}


# ---------------------------------------------------------------------------
# /v1/scan
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
class TestScan:
    async def test_scan_given_root(self, client, vault_dir):
        resp = await client.post("/v1/scan", json={"root": str(vault_dir)})
        assert resp.status_code == 200
        data = resp.json()
        assert data["found"] == 3
        assert data["documents"] == 2
        ents = (await client.get("/v1/entities")).json()["entities"]
        assert ents[0]["text"] == "Climbing"
        assert ents[0]["frequency"] == 2

    async def test_scan_configured_root(self, client, vault_dir):
        api_module._config = Config(vault_path=str(vault_dir))
        resp = await client.post("/v1/scan", json={})
        assert resp.json()["found"] == 3

    async def test_scan_no_root(self, client):
        resp = await client.post("/v1/scan", json={})
        assert resp.status_code == 400

    async def test_scan_missing_root(self, client, tmp_path):
        await client.post("/v1/entities", json={"text": "Climbing"})
        resp = await client.post("/v1/scan", json={"root": str(tmp_path / "nope")})
        assert resp.status_code == 400
        assert "error" in resp.json()
        assert (await client.get("/v1/entities")).json()["total"] == 1
