#!/usr/bin/env python3
"""Rebuild the mention corpus from every [[mention]] in a markdown vault.

The existing corpus is replaced, not merged.

Usage:
    python scripts/scan_vault.py [--vault PATH] [--db PATH]
    python scripts/scan_vault.py --dry-run        # list documents only, no writes
    python scripts/scan_vault.py --top 20         # print the 20 most frequent mentions
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

sys.path.insert(0, str(__import__("pathlib").Path(__file__).resolve().parent.parent))

from journal_links.cache import EntityCache
from journal_links.config import load_config
from journal_links.knowledge import KnowledgeBase
from journal_links.scan import ScanError
from journal_links.storage import CorpusStore
from journal_links.vault import MarkdownVault


def _progress(done: int, total: int) -> None:
    pct = (done / total * 100) if total else 0
    bar_len = 30
    filled = int(bar_len * done / total) if total else 0
    bar = "█" * filled + "░" * (bar_len - filled)
    print(f"\r  {bar} {done}/{total} ({pct:.0f}%)", end="", flush=True)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Rebuild the journal mention corpus from a vault")
    parser.add_argument("--vault", help="Override vault directory")
    parser.add_argument("--db", help="Override database path")
    parser.add_argument("--extension", help="Document extension (default from config, .md)")
    parser.add_argument("--dry-run", action="store_true", help="List documents only, don't touch the corpus")
    parser.add_argument("--top", type=int, default=10, help="Show the N most frequent mentions afterwards")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    logger = logging.getLogger("scan_vault")

    cfg = load_config()
    vault_path = args.vault or cfg.vault_path
    if not vault_path:
        print("No vault given. Use --vault or set JOURNAL_LINKS_VAULT.")
        return 2

    vault = MarkdownVault(extension=args.extension or cfg.document_extension)
    db_path = args.db or cfg.db_path

    print("=" * 60)
    print("  Journal Links: Vault Scan")
    print("=" * 60)
    print(f"  Vault:     {vault_path}")
    print(f"  Extension: {vault.extension}")
    print(f"  Database:  {db_path}")
    print(f"  Mode:      {'DRY RUN' if args.dry_run else 'REPLACE corpus'}")
    print("=" * 60)
    print()

    if args.dry_run:
        try:
            documents = vault.list_documents(vault_path)
        except OSError as exc:
            logger.error("Cannot list vault: %s", exc)
            return 1
        print(f"  {len(documents)} documents would be scanned.")
        for path in documents[:10]:
            print(f"    {path}")
        print("\n  DRY RUN complete, corpus untouched.")
        return 0

    store = CorpusStore(db_path=db_path)
    kb = KnowledgeBase(store, EntityCache(store, ttl_seconds=cfg.cache_ttl_seconds))
    before = store.count()

    try:
        found = await kb.scan(vault, vault_path, on_progress=_progress)
    except ScanError as exc:
        print()
        logger.error("%s", exc)
        store.close()
        return 1
    print()

    stats = kb.scanner.last_stats
    print()
    print(f"  Documents:       {stats['documents']} ({stats['skipped']} unreadable)")
    print(f"  Unique mentions: {found} (was {before})")
    print(f"  Elapsed:         {stats['elapsed_seconds']}s")

    if args.top > 0:
        print(f"\n  Top {args.top} mentions:")
        for entity in (await kb.get_all_entities())[:args.top]:
            print(f"    {entity.frequency:5d}  {entity.text}  ({entity.type.value})")

    store.close()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
