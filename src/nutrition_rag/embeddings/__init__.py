"""
Embeddings module - text embedding generation.

Pattern:
1. Protocol (EmbeddingProvider, in core.protocols) defines the interface
2. Production implementation (OpenAIEmbeddings)
3. Deterministic local implementation (LocalEmbeddings), also the test double
4. Never-failing wrapper (FallbackEmbeddings)
5. Factory function (get_embedding_provider)
"""

from nutrition_rag.embeddings.local import (
    NUTRITION_VOCABULARY,
    local_embedding,
    tokenize,
)
from nutrition_rag.embeddings.openai_embeddings import (
    FallbackEmbeddings,
    LocalEmbeddings,
    OpenAIEmbeddings,
    get_embedding_provider,
    normalize_text,
)

__all__ = [
    "OpenAIEmbeddings",
    "LocalEmbeddings",
    "FallbackEmbeddings",
    "get_embedding_provider",
    "normalize_text",
    "local_embedding",
    "tokenize",
    "NUTRITION_VOCABULARY",
]
