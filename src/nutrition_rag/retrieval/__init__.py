"""
Retrieval module - vector similarity search and context assembly.

This module provides:
- Document / Metadata: The document model
- Filter, Equals, In: Typed metadata filters
- VectorStoreConfig: Configuration for stores
- InMemoryVectorStore / FileVectorStore: Local stores
- open_vector_store(): Backend fallback chain (pgvector -> file -> memory)
- SimilaritySearch: Query embedding + ranked search
- ContextAssembler: Token-bounded context blocks

ARCHITECTURE:
-------------
1. Protocol defines the contract (in core.protocols)
2. Multiple implementations (PgVectorStore, FileVectorStore, InMemoryVectorStore)
3. Factory function for instantiation
4. Test doubles for fast unit tests
"""

# Document model
from nutrition_rag.retrieval.document import (
    Difficulty,
    Document,
    DocumentType,
    Goal,
    Macros,
    Metadata,
)

# Filters
from nutrition_rag.retrieval.filters import (
    Equals,
    Filter,
    In,
    goals_filter,
    type_filter,
)

# Store implementations and factory
from nutrition_rag.retrieval.store import (
    BackendKind,
    FileVectorStore,
    InMemoryVectorStore,
    VectorStoreConfig,
    open_vector_store,
)

# Query side
from nutrition_rag.retrieval.search import SimilaritySearch
from nutrition_rag.retrieval.context import (
    ContextAssembler,
    RetrievedContext,
    UserContextHints,
)

# Seed data
from nutrition_rag.retrieval.seeds import (
    get_reference_documents,
    get_supplement_documents,
)

__all__ = [
    # Document
    "Document",
    "DocumentType",
    "Metadata",
    "Macros",
    "Goal",
    "Difficulty",
    # Filters
    "Filter",
    "Equals",
    "In",
    "type_filter",
    "goals_filter",
    # Config
    "VectorStoreConfig",
    "BackendKind",
    # Implementations
    "InMemoryVectorStore",
    "FileVectorStore",
    # Factory
    "open_vector_store",
    # Query side
    "SimilaritySearch",
    "ContextAssembler",
    "RetrievedContext",
    "UserContextHints",
    # Seeds
    "get_reference_documents",
    "get_supplement_documents",
]
