"""
CLI module - command-line interface for the knowledge engine.

Provides entry points for:
- Ingesting records and seed documents
- Searching the index and assembling context
- Inspecting and clearing the index
"""

from nutrition_rag.cli.commands import (
    main,
    run_clear_cli,
    run_context_cli,
    run_ingest_cli,
    run_search_cli,
    run_stats_cli,
)

__all__ = [
    "main",
    "run_ingest_cli",
    "run_search_cli",
    "run_context_cli",
    "run_stats_cli",
    "run_clear_cli",
]
