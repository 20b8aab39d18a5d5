"""Configuration for the journal link corpus.

Loads from environment variables with sensible defaults.
Optionally reads a config.json file.

Note:
    Environment variables use the ``JOURNAL_LINKS_*`` prefix.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class Config:
    """Central configuration for the corpus, scanner and API."""

    # Storage (resolved in load_config())
    db_path: str = ""

    # Vault scanning
    vault_path: str = ""
    document_extension: str = ".md"

    # Entity cache
    cache_ttl_seconds: float = 3600.0

    # Matching / generation context
    suggest_limit: int = 5
    context_limit: int = 100

    # API
    # Security: bind to localhost by default. Override with JOURNAL_LINKS_HOST if needed.
    api_host: str = "127.0.0.1"
    api_port: int = 8790

    def validate(self) -> list[str]:
        """Return a list of validation errors (empty == OK)."""
        errors: list[str] = []
        if not self.document_extension.startswith("."):
            errors.append("JOURNAL_LINKS_EXTENSION must start with '.'")
        if self.cache_ttl_seconds <= 0:
            errors.append("JOURNAL_LINKS_CACHE_TTL must be > 0")
        if self.suggest_limit < 1:
            errors.append("JOURNAL_LINKS_SUGGEST_LIMIT must be >= 1")
        if self.api_port < 1 or self.api_port > 65535:
            errors.append("JOURNAL_LINKS_PORT must be 1-65535")
        if self.vault_path and not Path(self.vault_path).is_dir():
            errors.append(f"Vault directory not found: {self.vault_path}")
        return errors


def load_config(config_path: Optional[str] = None) -> Config:
    """Build a Config from environment variables, optionally overlaid with a JSON file.

    Environment variables (all optional):
        JOURNAL_LINKS_CONFIG
        JOURNAL_LINKS_DB
        JOURNAL_LINKS_VAULT
        JOURNAL_LINKS_EXTENSION
        JOURNAL_LINKS_CACHE_TTL
        JOURNAL_LINKS_SUGGEST_LIMIT
        JOURNAL_LINKS_CONTEXT_LIMIT
        JOURNAL_LINKS_HOST
        JOURNAL_LINKS_PORT
    """
    cfg = Config()

    # --- JSON file overlay ------------------------------------------------
    json_path = config_path or os.environ.get("JOURNAL_LINKS_CONFIG")
    if json_path and Path(json_path).is_file():
        with open(json_path, "r") as fh:
            data = json.load(fh)
        for key, val in data.items():
            if hasattr(cfg, key):
                expected_type = type(getattr(cfg, key))
                try:
                    setattr(cfg, key, expected_type(val))
                except (ValueError, TypeError):
                    pass  # skip bad values

    # --- Environment variable overlay -------------------------------------
    env_map: dict[str, tuple[str, type]] = {
        "JOURNAL_LINKS_DB": ("db_path", str),
        "JOURNAL_LINKS_VAULT": ("vault_path", str),
        "JOURNAL_LINKS_EXTENSION": ("document_extension", str),
        "JOURNAL_LINKS_CACHE_TTL": ("cache_ttl_seconds", float),
        "JOURNAL_LINKS_SUGGEST_LIMIT": ("suggest_limit", int),
        "JOURNAL_LINKS_CONTEXT_LIMIT": ("context_limit", int),
        "JOURNAL_LINKS_HOST": ("api_host", str),
        "JOURNAL_LINKS_PORT": ("api_port", int),
    }

    for env_key, (attr, cast) in env_map.items():
        val = os.environ.get(env_key)
        if val is not None:
            try:
                setattr(cfg, attr, cast(val))
            except (ValueError, TypeError):
                pass

    # --- Default db_path resolution ---------------------------------------
    if not cfg.db_path:
        cfg.db_path = str(Path.home() / ".journal-links" / "corpus.sqlite")

    return cfg
