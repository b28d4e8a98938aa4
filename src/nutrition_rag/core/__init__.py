"""
Core module - shared protocols, result types and errors.

USAGE:
------
from nutrition_rag.core import VectorStore, EmbeddingProvider

class MyVectorStore:
    '''Implements VectorStore protocol.'''
    ...
"""

from nutrition_rag.core.errors import (
    BackendUnavailable,
    DimensionMismatch,
    EmbeddingFailure,
    InvalidFilter,
    RetrievalError,
    StoreReadError,
    StoreWriteError,
)
from nutrition_rag.core.protocols import (
    # Protocols
    EmbeddingProvider,
    VectorStore,
    # Data classes
    ScoredDocument,
    SearchResult,
    StoreStats,
)

__all__ = [
    # Protocols
    "EmbeddingProvider",
    "VectorStore",
    # Data classes
    "ScoredDocument",
    "SearchResult",
    "StoreStats",
    # Errors
    "RetrievalError",
    "EmbeddingFailure",
    "BackendUnavailable",
    "StoreWriteError",
    "StoreReadError",
    "InvalidFilter",
    "DimensionMismatch",
]
