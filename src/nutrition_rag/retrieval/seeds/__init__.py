"""
Seed data for the retrieval system.

Curated documents that ship with the engine rather than coming from a
record source. Keeping them apart from the adapters means content can
change without touching ingestion code.
"""

from nutrition_rag.retrieval.seeds.reference_library import (
    get_reference_documents,
    get_supplement_documents,
)

__all__ = ["get_reference_documents", "get_supplement_documents"]
