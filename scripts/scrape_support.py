#!/usr/bin/env python3
"""
Scrape the support page into a validated snapshot.

Usage:
    python scripts/scrape_support.py
    python scripts/scrape_support.py --max-retries 5 --filename faqs.json
    python scripts/scrape_support.py --no-save
"""

import argparse
import asyncio
import logging
import os
import sys

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from support_rag_server.config import settings
from support_rag_server.content.exa_client import ExaClient
from support_rag_server.core.errors import SupportBotError
from support_rag_server.core.log_config import configure_logging
from support_rag_server.ingestion.orchestrator import ScrapeOrchestrator
from support_rag_server.ingestion.snapshots import SnapshotStore

logger = logging.getLogger("support.scripts.scrape")


async def main(args: argparse.Namespace) -> int:
    orchestrator = ScrapeOrchestrator(
        ExaClient(),
        SnapshotStore(args.data_dir),
        source_url=args.url,
        persistence_policy=settings.snapshot_failure_policy,
    )

    print(f"Scraping {args.url} ...")
    try:
        result = await orchestrator.scrape_with_retry(
            max_retries=args.max_retries,
            save_raw=not args.no_save,
            save_processed=not args.no_save,
            filename=args.filename,
        )
    except SupportBotError as e:
        logger.error("Scrape failed: %s", e)
        return 1

    snapshot = result.snapshot
    print("\nScrape Complete!")
    print("-" * 50)
    print(f"Total FAQs: {len(snapshot.faqs)}")
    for category, count in snapshot.category_distribution().items():
        print(f"  {category}: {count}")

    if result.raw_file:
        print(f"Raw payload: {result.raw_file}")
    if result.processed_file:
        print(f"Snapshot: {result.processed_file}")

    for faq in snapshot.faqs[:3]:
        print(f"\n[{faq.category}] {faq.question}")
        print(f"  {faq.chunk_text[:200]}...")

    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Scrape the support page into a snapshot")
    parser.add_argument("--url", default=settings.support_url, help="Support page URL")
    parser.add_argument(
        "--max-retries", type=int, default=settings.scrape_max_retries,
        help=f"Scrape attempts (default: {settings.scrape_max_retries})",
    )
    parser.add_argument("--filename", help="Snapshot file name (default: timestamped)")
    parser.add_argument("--data-dir", default=settings.data_dir, help="Snapshot root directory")
    parser.add_argument("--no-save", action="store_true", help="Do not write snapshot files")

    configure_logging(settings.log_level)
    sys.exit(asyncio.run(main(parser.parse_args())))
