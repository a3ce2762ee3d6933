#!/usr/bin/env python3
"""
Vector Index CLI

Command-line tool for managing the support index.

Usage:
    python scripts/setup_index.py create
    python scripts/setup_index.py ingest --data-file scraped/aven-support-scraped-....json
    python scripts/setup_index.py stats
    python scripts/setup_index.py search "How do I make a payment?" --category Payments
    python scripts/setup_index.py clear --confirm
"""

import argparse
import asyncio
import logging
import os
import sys
import time

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from support_rag_server.api.dependencies import default_index_config
from support_rag_server.config import settings
from support_rag_server.core.errors import SupportBotError
from support_rag_server.core.log_config import configure_logging
from support_rag_server.core.retry import RetryPolicy
from support_rag_server.ingestion.indexing import IndexingService
from support_rag_server.ingestion.snapshots import SnapshotStore
from support_rag_server.search.models import SearchConfig
from support_rag_server.search.service import SearchService
from support_rag_server.store.pinecone import PineconeClient
from support_rag_server.store.writer import IndexWriter

logger = logging.getLogger("support.scripts.index")


def _writer(store: PineconeClient) -> IndexWriter:
    return IndexWriter(
        store,
        retry_policy=RetryPolicy(max_attempts=settings.upsert_max_attempts),
        batch_delay=settings.upsert_batch_delay,
        default_batch_size=settings.upsert_batch_size,
    )


def _indexing(store: PineconeClient) -> IndexingService:
    return IndexingService(
        store, _writer(store), SnapshotStore(settings.data_dir), default_index_config()
    )


async def cmd_create(args: argparse.Namespace, store: PineconeClient) -> int:
    created = await _indexing(store).ensure_index(args.index, force_recreate=args.force)
    print(f"Index {args.index} {'created' if created else 'already exists'}")
    return 0


async def cmd_ingest(args: argparse.Namespace, store: PineconeClient) -> int:
    deadline = time.monotonic() + args.deadline if args.deadline else None
    report = await _indexing(store).ingest(
        args.index,
        args.namespace,
        data_file=args.data_file,
        force_recreate=args.force,
        batch_size=args.batch_size,
        deadline=deadline,
    )

    print("\nIngestion Complete!")
    print("-" * 50)
    print(f"Data file: {report.data_file}")
    print(f"Processed: {report.processed}")
    print(f"Failed: {report.failed}")
    print(f"Rejected by validation: {report.rejected}")
    print(f"Vectors in index: {report.stats.total_vector_count}")
    for error in report.errors:
        print(f"  - batch {error.batch_index}: [{error.code}] {error.message}")

    return 0 if report.success else 1


async def cmd_stats(args: argparse.Namespace, store: PineconeClient) -> int:
    stats = await store.get_stats(args.index)
    print(f"Index Statistics: {args.index}")
    print("-" * 50)
    print(f"Dimension: {stats.dimension}")
    print(f"Total vectors: {stats.total_vector_count}")
    print(f"Fullness: {stats.index_fullness}")
    for name, ns in stats.namespaces.items():
        print(f"  {name or '(default)'}: {ns.vector_count}")
    return 0


async def cmd_search(args: argparse.Namespace, store: PineconeClient) -> int:
    query = " ".join(args.query)
    search = SearchService(
        store, rerank_model=settings.rerank_model, default_namespace=args.namespace
    )
    config = SearchConfig(top_k=args.top_k, namespace=args.namespace, rerank=not args.no_rerank)

    if args.category:
        response = await search.category_search(args.index, query, args.category, config)
    else:
        response = await search.semantic_search(args.index, query, config)

    print(f"Query: {query}")
    print(f"Results: {response.total_results} ({response.processing_time:.0f} ms, rerank: {response.rerank_mode})")
    print("-" * 50)
    for i, result in enumerate(response.results, start=1):
        print(f"\n--- Result {i} (score: {result.score:.3f}) [{result.category}] ---")
        print(result.metadata.get("question", ""))
        print(result.text[:300])
    return 0


async def cmd_clear(args: argparse.Namespace, store: PineconeClient) -> int:
    if not args.confirm:
        print("Error: Use --confirm flag to clear the namespace")
        return 1
    await _writer(store).delete_all(args.index, args.namespace)
    print(f"Cleared namespace {args.namespace} of {args.index}")
    return 0


COMMANDS = {
    "create": cmd_create,
    "ingest": cmd_ingest,
    "stats": cmd_stats,
    "search": cmd_search,
    "clear": cmd_clear,
}


async def main(args: argparse.Namespace) -> int:
    try:
        store = PineconeClient()
        return await COMMANDS[args.command](args, store)
    except SupportBotError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Support vector index CLI")
    parser.add_argument("--index", default=settings.pinecone_index_name, help="Index name")
    parser.add_argument("--namespace", default=settings.pinecone_namespace, help="Namespace")

    subparsers = parser.add_subparsers(dest="command", required=True)

    create_parser = subparsers.add_parser("create", help="Create the index if missing")
    create_parser.add_argument("--force", action="store_true", help="Delete and recreate")

    ingest_parser = subparsers.add_parser("ingest", help="Load a snapshot into the index")
    ingest_parser.add_argument("--data-file", help="Snapshot path (default: latest)")
    ingest_parser.add_argument("--batch-size", type=int, help="Records per upsert")
    ingest_parser.add_argument("--force", action="store_true", help="Recreate the index first")
    ingest_parser.add_argument(
        "--deadline", type=float,
        help="Stop starting new batches after this many seconds",
    )

    subparsers.add_parser("stats", help="Show index statistics")

    search_parser = subparsers.add_parser("search", help="Query the index")
    search_parser.add_argument("query", nargs="+", help="Query text")
    search_parser.add_argument("--top-k", "-k", type=int, default=5)
    search_parser.add_argument("--category", help="Restrict to one category")
    search_parser.add_argument("--no-rerank", action="store_true")

    clear_parser = subparsers.add_parser("clear", help="Delete all records in the namespace")
    clear_parser.add_argument("--confirm", action="store_true")

    configure_logging(settings.log_level)
    sys.exit(asyncio.run(main(parser.parse_args())))
