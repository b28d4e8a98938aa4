"""
Document model for the retrieval system.

Single responsibility: Define the structure of documents
stored in vector stores.

Documents are immutable values. A store never patches one in place;
re-adding an id replaces the whole record (upsert).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable

import numpy as np

MIN_CREDIBILITY = 0.3
MAX_CREDIBILITY = 1.0


class DocumentType(str, Enum):
    """Kinds of knowledge the index holds."""

    FACT = "fact"
    CATALOG_ITEM = "catalog_item"
    RECIPE = "recipe"
    REFERENCE = "reference"
    SUPPLEMENT_INFO = "supplement_info"
    PLAN = "plan"


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Goal(str, Enum):
    WEIGHT_LOSS = "weight_loss"
    MUSCLE_GAIN = "muscle_gain"
    MAINTENANCE = "maintenance"
    GENERAL_HEALTH = "general_health"

    @classmethod
    def parse(cls, value: str) -> Goal | None:
        """Parse loose goal strings ("Weight Loss", "WEIGHT_LOSS"); None if unknown."""
        key = value.strip().lower().replace(" ", "_").replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            return None


def clamp_credibility(score: float) -> float:
    """Clamp a credibility score into [0.3, 1.0]."""
    return max(MIN_CREDIBILITY, min(MAX_CREDIBILITY, float(score)))


def normalize_tags(tags: Iterable[str]) -> frozenset[str]:
    """Trim tags and drop empty ones."""
    return frozenset(t.strip() for t in tags if t and t.strip())


@dataclass(frozen=True)
class Macros:
    """Macronutrients in grams."""
    protein: float
    carbs: float
    fat: float

    def to_dict(self) -> dict:
        return {"protein": self.protein, "carbs": self.carbs, "fat": self.fat}


@dataclass(frozen=True)
class Metadata:
    """
    Searchable metadata attached to every document.

    Coerces loose input on construction: enum fields accept their string
    values, tags are trimmed, and credibility is clamped.
    """
    type: DocumentType
    title: str
    source: str
    tags: frozenset[str] = frozenset()
    calories: float | None = None
    macros: Macros | None = None
    difficulty: Difficulty | None = None
    goals: frozenset[Goal] = frozenset()
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    credibility_score: float = 0.6

    def __post_init__(self):
        # frozen dataclass: coerce through object.__setattr__
        object.__setattr__(self, "type", DocumentType(self.type))
        object.__setattr__(self, "tags", normalize_tags(self.tags))
        object.__setattr__(self, "goals", frozenset(Goal(g) for g in self.goals))
        if self.difficulty is not None:
            object.__setattr__(self, "difficulty", Difficulty(self.difficulty))
        object.__setattr__(self, "credibility_score", clamp_credibility(self.credibility_score))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary (sets become sorted lists)."""
        return {
            "type": self.type.value,
            "title": self.title,
            "source": self.source,
            "tags": sorted(self.tags),
            "calories": self.calories,
            "macros": self.macros.to_dict() if self.macros else None,
            "difficulty": self.difficulty.value if self.difficulty else None,
            "goals": sorted(g.value for g in self.goals),
            "last_updated": self.last_updated.isoformat(),
            "credibility_score": self.credibility_score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Metadata:
        macros = data.get("macros")
        last_updated = data.get("last_updated")
        return cls(
            type=data["type"],
            title=data["title"],
            source=data["source"],
            tags=data.get("tags") or (),
            calories=data.get("calories"),
            macros=Macros(**macros) if macros else None,
            difficulty=data.get("difficulty"),
            goals=data.get("goals") or (),
            last_updated=(
                datetime.fromisoformat(last_updated)
                if last_updated
                else datetime.now(timezone.utc)
            ),
            credibility_score=data.get("credibility_score", 0.6),
        )


@dataclass(frozen=True)
class Document:
    """A unit of indexed knowledge."""
    id: str
    content: str
    metadata: Metadata

    def __post_init__(self):
        if not self.id:
            raise ValueError("Document id must be a non-empty string")

    @property
    def title(self) -> str:
        return self.metadata.title

    @property
    def credibility(self) -> float:
        return self.metadata.credibility_score

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "content": self.content,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Document:
        return cls(
            id=data["id"],
            content=data["content"],
            metadata=Metadata.from_dict(data["metadata"]),
        )


@dataclass(frozen=True, eq=False)
class StoredDocument:
    """
    A document with its embedding, as held inside a vector store.

    The embedding is already validated and L2-normalized by the store.
    """
    document: Document
    embedding: np.ndarray

    @property
    def id(self) -> str:
        return self.document.id

    def to_dict(self) -> dict[str, Any]:
        data = self.document.to_dict()
        data["embedding"] = [float(x) for x in self.embedding]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoredDocument:
        return cls(
            document=Document.from_dict(data),
            embedding=np.asarray(data["embedding"], dtype=np.float32),
        )
