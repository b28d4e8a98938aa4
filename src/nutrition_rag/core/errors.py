"""
Error taxonomy for the retrieval engine.

Which layer handles what:
- EmbeddingFailure: raised by remote providers, always recovered by
  FallbackEmbeddings (never reaches the caller)
- BackendUnavailable: raised by a backend's open(), recovered by the
  backend selection chain at startup
- StoreWriteError: surfaced to the ingestion step that issued the write
- StoreReadError: surfaced from search_similar()
- InvalidFilter / DimensionMismatch: programming errors, raised eagerly

An empty result is NOT an error.
"""

from __future__ import annotations


class RetrievalError(Exception):
    """Base class for all engine errors."""


class EmbeddingFailure(RetrievalError):
    """Remote embedding call failed, timed out or returned a bad shape."""


class BackendUnavailable(RetrievalError):
    """A vector store backend could not be initialized."""

    def __init__(self, backend: str, reason: str):
        super().__init__(f"{backend} backend unavailable: {reason}")
        self.backend = backend
        self.reason = reason


class StoreWriteError(RetrievalError):
    """A write to the active backend failed."""


class StoreReadError(RetrievalError):
    """The active backend failed while answering a search."""


class InvalidFilter(RetrievalError, ValueError):
    """Filter clause does not match the metadata schema."""


class DimensionMismatch(RetrievalError, ValueError):
    """Vector length differs from the store's fixed dimension."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Expected vector of dimension {expected}, got {actual}")
        self.expected = expected
        self.actual = actual
