"""
CLI commands - entry points for the knowledge engine.

Each command follows a consistent pattern:
1. Parse arguments
2. Build the engine from environment config
3. Run one engine operation
4. Print results
5. Return exit code

Commands are thin wrappers: all behavior lives in the engine so it can
be tested without a terminal.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from nutrition_rag.core.errors import RetrievalError

logger = logging.getLogger(__name__)


def _load_env() -> None:
    """Load environment variables from .env file."""
    load_dotenv()


def _configure_logging() -> None:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_engine(records_path: str | None = None):
    from nutrition_rag.engine import create_engine
    from nutrition_rag.ingestion.records import JsonRecordSource

    records = JsonRecordSource(records_path) if records_path else None
    return create_engine(records=records)


def run_ingest_cli() -> int:
    """CLI entry point for a full ingestion run."""
    parser = argparse.ArgumentParser(description="Ingest records and seed documents")
    parser.add_argument("--records", metavar="FILE", help="JSON export of source records")
    args = parser.parse_args()

    print("=" * 60)
    print("KNOWLEDGE INGESTION")
    print("=" * 60)

    engine = _build_engine(args.records)
    try:
        result = asyncio.run(engine.ingest_all())
    finally:
        engine.close()

    print(f"\nDocuments indexed: {result.total_documents}")
    for error in result.errors:
        print(f"  [FAIL] {error}")

    if result.success:
        print("\n>>> INGESTION: COMPLETED <<<")
        return 0
    print("\n>>> INGESTION: COMPLETED WITH ERRORS <<<")
    return 1


def run_search_cli() -> int:
    """CLI entry point for a similarity search."""
    from nutrition_rag.retrieval.filters import type_filter

    parser = argparse.ArgumentParser(description="Search the knowledge index")
    parser.add_argument("query", help="Free-text query")
    parser.add_argument("--type", dest="doc_type", help="Restrict to one document type")
    parser.add_argument("--top-k", type=int, default=None, help="Maximum results")
    parser.add_argument("--min-similarity", type=float, default=None, help="Admission threshold")
    args = parser.parse_args()

    filter = type_filter(args.doc_type) if args.doc_type else None

    engine = _build_engine()
    try:
        result = asyncio.run(
            engine.search_similar(
                args.query,
                top_k=args.top_k,
                filter=filter,
                min_similarity=args.min_similarity,
            )
        )
    finally:
        engine.close()

    for doc, score in zip(result.documents, result.similarity_scores):
        print(f"  {score:.3f}  [{doc.metadata.type.value}] {doc.title} ({doc.id})")

    print(f"\n{result.total_results} results in {result.search_time_ms:.1f}ms")
    return 0


def run_context_cli() -> int:
    """CLI entry point for context assembly."""
    from nutrition_rag.retrieval.context import UserContextHints

    parser = argparse.ArgumentParser(description="Assemble a context block for a query")
    parser.add_argument("query", help="Free-text query")
    parser.add_argument("--goal", action="append", default=[], help="User goal (repeatable)")
    parser.add_argument("--max-tokens", type=int, default=None, help="Token budget")
    args = parser.parse_args()

    hints = UserContextHints(goals=args.goal) if args.goal else None

    engine = _build_engine()
    try:
        retrieved = asyncio.run(engine.retrieve(args.query, hints, args.max_tokens))
    finally:
        engine.close()

    if not retrieved.rag_used:
        print("No relevant knowledge found.")
    else:
        print(retrieved.text)

    print("\n" + "-" * 60)
    print(f"Documents: {retrieved.documents_found}  Confidence: {retrieved.confidence:.2f}  "
          f"Time: {retrieved.search_time_ms:.1f}ms")
    return 0


def run_stats_cli() -> int:
    """CLI entry point for index statistics."""
    engine = _build_engine()
    try:
        stats = engine.stats()
    finally:
        engine.close()

    print(f"Backend:    {stats['backend']}")
    print(f"Collection: {stats['collection_name']}")
    print(f"Documents:  {stats['total_documents']}")
    return 0


def run_clear_cli() -> int:
    """CLI entry point for clearing the index."""
    parser = argparse.ArgumentParser(description="Remove every document from the index")
    parser.add_argument("--yes", action="store_true", help="Confirm deletion")
    args = parser.parse_args()

    if not args.yes:
        print("Refusing to clear the index without --yes")
        return 1

    engine = _build_engine()
    try:
        asyncio.run(engine.clear())
    finally:
        engine.close()

    print("Index cleared")
    return 0


def main() -> int:
    """
    Main CLI entry point with subcommands.

    Usage:
        nutrition-rag ingest --records export.json
        nutrition-rag search "high protein breakfast" --type recipe
        nutrition-rag context "how much protein do I need" --goal muscle_gain
        nutrition-rag stats
        nutrition-rag clear --yes
    """
    _load_env()
    _configure_logging()

    parser = argparse.ArgumentParser(
        description="Nutrition knowledge retrieval engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  ingest    Index records and the curated seed library
  search    Rank documents by similarity to a query
  context   Assemble a token-bounded context block
  stats     Show backend and document count
  clear     Remove every document from the index

Examples:
  nutrition-rag ingest --records export.json
  nutrition-rag context "vitamin d dosage" --max-tokens 500
        """,
    )

    parser.add_argument(
        "command",
        choices=["ingest", "search", "context", "stats", "clear"],
        help="Operation to run",
    )

    # Parse just the command first
    args, remaining = parser.parse_known_args()

    commands = {
        "ingest": run_ingest_cli,
        "search": run_search_cli,
        "context": run_context_cli,
        "stats": run_stats_cli,
        "clear": run_clear_cli,
    }

    # Re-inject remaining args for the subcommand
    sys.argv = [sys.argv[0]] + remaining

    from nutrition_rag.observability import init_tracing, shutdown_tracing

    init_tracing()
    try:
        return commands[args.command]()
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130
    except (RetrievalError, ValueError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        shutdown_tracing()


if __name__ == "__main__":
    sys.exit(main())
