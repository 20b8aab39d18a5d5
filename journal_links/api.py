"""FastAPI HTTP API for the journal link corpus.

Endpoints:
    GET    /v1/health       -- Health check
    GET    /v1/stats        -- Corpus statistics
    GET    /v1/entities     -- List entities (most frequent first)
    POST   /v1/entities     -- Add one entity
    DELETE /v1/entities     -- Clear the whole corpus
    GET    /v1/match        -- Resolve a text fragment to an entity
    GET    /v1/suggest      -- Autocomplete suggestions
    POST   /v1/link         -- Auto-link text with [[mentions]]
    POST   /v1/mentions     -- Extract [[mentions]] from text
    POST   /v1/entries      -- Record a saved entry's new mentions
    GET    /v1/context      -- Most frequent mention texts for prompt seeding
    POST   /v1/candidates   -- Capitalized names not yet in the corpus
    POST   /v1/scan         -- Rebuild the corpus from the vault

Run: ``python -m journal_links.api``
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from .cache import EntityCache
from .config import Config, load_config
from .entities import EntityType
from .knowledge import KnowledgeBase
from .linker import extract_mentions
from .scan import ScanError
from .storage import CorpusStore
from .vault import MarkdownVault

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared state (initialised in lifespan)
# ---------------------------------------------------------------------------

_config: Optional[Config] = None
_kb: Optional[KnowledgeBase] = None
_vault: Optional[MarkdownVault] = None
_start_time: float = 0.0


def _get_kb() -> KnowledgeBase:
    if _kb is None:
        raise HTTPException(503, "Knowledge base not initialised")
    return _kb


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown logic."""
    global _config, _kb, _vault, _start_time

    _config = load_config()
    errors = _config.validate()
    if errors:
        logger.warning("Config validation warnings: %s", errors)

    store = CorpusStore(db_path=_config.db_path)
    cache = EntityCache(store, ttl_seconds=_config.cache_ttl_seconds)
    _kb = KnowledgeBase(store, cache, suggest_limit=_config.suggest_limit)
    _vault = MarkdownVault(extension=_config.document_extension)
    _start_time = time.time()

    logger.info("Corpus opened: %s (%d entities)", store.db_path, store.count())

    yield

    store.close()
    _kb = None
    _vault = None


app = FastAPI(
    title="Journal Links API",
    description="Mention corpus, matching and auto-linking for a journal vault",
    version="0.1.0",
    lifespan=lifespan,
)


# --- Centralized error handling ---

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc):
    logger.warning("HTTP %d: %s (path=%s)", exc.status_code, exc.detail, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "status_code": exc.status_code},
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    logger.warning("Validation error: %s (path=%s)", str(exc)[:200], request.url.path)
    return JSONResponse(
        status_code=422,
        content={"error": "Validation error", "detail": exc.errors()},
    )

@app.exception_handler(ScanError)
async def scan_exception_handler(request, exc):
    logger.warning("Scan aborted: %s", exc)
    return JSONResponse(
        status_code=400,
        content={"error": str(exc), "status_code": 400},
    )

@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    logger.exception("Unhandled error: %s (path=%s)", exc, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"},
    )


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class AddEntityRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=500)
    type: Optional[EntityType] = None


class TextRequest(BaseModel):
    text: str = Field(..., max_length=100000)


class ScanRequest(BaseModel):
    root: Optional[str] = Field(default=None, description="Vault directory (defaults to config)")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/v1/health")
async def health() -> Dict[str, Any]:
    """Health check: can we read the corpus?"""
    checks: Dict[str, bool] = {"storage": False}
    if _kb is not None:
        try:
            _kb.store.count()
            checks["storage"] = True
        except Exception as exc:
            logger.warning("Health probe failed: %s", exc)

    return {
        "status": "ok" if all(checks.values()) else "down",
        "checks": checks,
        "uptime_seconds": round(time.time() - _start_time, 1),
    }


@app.get("/v1/stats")
async def stats() -> Dict[str, Any]:
    """Corpus statistics."""
    return _get_kb().stats()


@app.get("/v1/entities")
async def list_entities(
    limit: int = Query(default=100, ge=1, le=10000),
) -> Dict[str, Any]:
    """Entities ordered by frequency, most frequent first."""
    entities = await _get_kb().get_all_entities()
    return {
        "entities": [e.to_dict() for e in entities[:limit]],
        "total": len(entities),
    }


@app.post("/v1/entities")
async def add_entity(req: AddEntityRequest) -> Dict[str, Any]:
    """Add an entity (or bump its frequency)."""
    try:
        entity = await _get_kb().add_entity(req.text, req.type)
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    if entity is None:
        raise HTTPException(500, "Entity could not be stored")
    return {"stored": True, "entity": entity.to_dict()}


@app.delete("/v1/entities")
async def clear_entities() -> Dict[str, Any]:
    """Delete every entity and alias."""
    kb = _get_kb()
    before = kb.store.count()
    await kb.clear()
    return {"cleared": before}


@app.get("/v1/match")
async def match(text: str = Query(..., min_length=1, max_length=500)) -> Dict[str, Any]:
    """Resolve *text* to a known entity."""
    entity = await _get_kb().find_match(text)
    return {"query": text, "match": entity.to_dict() if entity else None}


@app.get("/v1/suggest")
async def suggest(
    q: str = Query(..., min_length=1, max_length=200),
    limit: Optional[int] = Query(default=None, ge=1, le=50),
) -> Dict[str, Any]:
    """Autocomplete suggestions, most frequent first."""
    entities = await _get_kb().suggest_links(q, limit)
    return {"query": q, "suggestions": [e.to_dict() for e in entities]}


@app.post("/v1/link")
async def link(req: TextRequest) -> Dict[str, Any]:
    """Wrap recognized mentions in [[...]]."""
    return {"text": await _get_kb().link_text(req.text)}


@app.post("/v1/mentions")
async def mentions(req: TextRequest) -> Dict[str, Any]:
    """List the [[mentions]] present in the text."""
    return {"mentions": sorted(extract_mentions(req.text))}


@app.post("/v1/entries")
async def record_entry(req: TextRequest) -> Dict[str, Any]:
    """Record mentions of a saved entry; unknown ones are added."""
    return await _get_kb().record_entry(req.text)


@app.get("/v1/context")
async def context(limit: Optional[int] = Query(default=None, ge=1, le=10000)) -> Dict[str, Any]:
    """Most frequent mention texts, for seeding a generation prompt."""
    if limit is None:
        limit = _config.context_limit if _config else 100
    return {"mentions": await _get_kb().context_mentions(limit)}


@app.post("/v1/candidates")
async def candidates(req: TextRequest) -> Dict[str, Any]:
    """Capitalized names/topics that are not in the corpus yet."""
    return {"candidates": await _get_kb().candidate_mentions(req.text)}


@app.post("/v1/scan")
async def scan(req: ScanRequest = ScanRequest()) -> Dict[str, Any]:
    """Rebuild the corpus from the vault (destructive replace)."""
    kb = _get_kb()
    root = req.root or (_config.vault_path if _config else "")
    if not root:
        raise HTTPException(400, "No vault path given or configured")

    vault = _vault or MarkdownVault()
    found = await kb.scan(vault, root)
    return {"found": found, **kb.scanner.last_stats}


# ---------------------------------------------------------------------------
# CLI entry-point
# ---------------------------------------------------------------------------

def main() -> None:
    """Run the API server via uvicorn."""
    import uvicorn

    cfg = load_config()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    logger.info("Starting Journal Links API on %s:%d", cfg.api_host, cfg.api_port)
    uvicorn.run(
        "journal_links.api:app",
        host=cfg.api_host,
        port=cfg.api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
