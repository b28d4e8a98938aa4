"""
Deterministic local embedding.

A bag-of-words projection over a small fixed nutrition vocabulary. Used when
no remote credential is configured or the remote call fails, so retrieval
keeps working fully offline. Recall is weaker than a sentence model, but the
function is pure: the same text always yields a bit-identical vector.
"""

from __future__ import annotations

import re
from collections import Counter

import numpy as np

# Order matters: a term's index fixes its position in the vector.
NUTRITION_VOCABULARY: tuple[str, ...] = (
    "protein", "carbohydrate", "fat", "calorie", "vitamin", "mineral",
    "nutrition", "diet", "healthy", "meal", "food", "supplement",
    "weight", "loss", "gain", "muscle", "fiber", "sodium", "sugar",
    "organic", "exercise", "metabolism", "energy", "antioxidant",
)

STRIDE = 16
SPREAD = 3  # neighbors that receive a decayed share of each term's weight
DECAY = 0.2
MIN_TOKEN_LENGTH = 3

_VOCAB_INDEX = {term: i for i, term in enumerate(NUTRITION_VOCABULARY)}
_PUNCTUATION = re.compile(r"[^\w\s]")


def tokenize(text: str) -> list[str]:
    """Lower-case, strip punctuation, split on whitespace, drop short tokens."""
    words = _PUNCTUATION.sub("", text.lower()).split()
    return [w for w in words if len(w) >= MIN_TOKEN_LENGTH]


def _vocab_term(token: str) -> str | None:
    if token in _VOCAB_INDEX:
        return token
    # plural folding: "calories" -> "calorie", "vitamins" -> "vitamin"
    if token.endswith("s") and token[:-1] in _VOCAB_INDEX:
        return token[:-1]
    return None


def local_embedding(text: str, dimensions: int = 384) -> np.ndarray:
    """
    Embed text without any external service.

    Each vocabulary term's term frequency is written at position
    (vocab_index * STRIDE) % dimensions and spread over the next SPREAD
    positions with linear decay; the result is L2-normalized. Text with no
    vocabulary hit maps to the zero vector.
    """
    vector = np.zeros(dimensions, dtype=np.float64)
    words = tokenize(text)
    if not words:
        return vector.astype(np.float32)

    counts = Counter(term for term in map(_vocab_term, words) if term is not None)
    total = len(words)

    for term, index in _VOCAB_INDEX.items():
        count = counts.get(term, 0)
        if count == 0:
            continue
        tf = count / total
        position = (index * STRIDE) % dimensions
        vector[position] += tf
        for i in range(1, SPREAD + 1):
            if position + i < dimensions:
                vector[position + i] += tf * (1 - i * DECAY)

    magnitude = np.linalg.norm(vector)
    if magnitude > 0:
        vector /= magnitude
    return vector.astype(np.float32)
