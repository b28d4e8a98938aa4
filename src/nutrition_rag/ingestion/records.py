"""
Source records and record sources.

Records are the raw rows the rest of the application owns (facts, catalog
entries, recipes, meal plans). The engine only reads them; it never writes
back to a record source.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, Sequence, runtime_checkable

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return _now()
    # fromisoformat only accepts a trailing "Z" from Python 3.11
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


# ---------------------------------------------------------------------------
# RECORD TYPES
# ---------------------------------------------------------------------------


@dataclass
class FactRecord:
    id: str
    title: str
    content: str
    tags: str = ""  # comma-separated
    is_active: bool = True
    updated_at: datetime = field(default_factory=_now)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FactRecord:
        return cls(
            id=str(data["id"]),
            title=data["title"],
            content=data["content"],
            tags=data.get("tags") or "",
            is_active=data.get("is_active", True),
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


@dataclass
class CatalogRecord:
    """A food with nutrition values per 100g."""
    id: str
    name: str
    calories_per_100g: float
    protein_per_100g: float
    carbs_per_100g: float
    fat_per_100g: float
    fiber_per_100g: float | None = None
    tags: str = ""
    updated_at: datetime = field(default_factory=_now)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogRecord:
        return cls(
            id=str(data["id"]),
            name=data["name"],
            calories_per_100g=data["calories_per_100g"],
            protein_per_100g=data["protein_per_100g"],
            carbs_per_100g=data["carbs_per_100g"],
            fat_per_100g=data["fat_per_100g"],
            fiber_per_100g=data.get("fiber_per_100g"),
            tags=data.get("tags") or "",
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


@dataclass
class RecipeRecord:
    id: str
    name: str
    category: str
    ingredients: str
    instructions: str
    calories: float
    protein: float
    carbs: float
    fat: float
    prep_time: int = 0
    cook_time: int = 0
    servings: int = 1
    cuisine: str | None = None
    dietary_tags: str = ""
    goal_tags: str = ""
    difficulty: str | None = None
    is_active: bool = True
    updated_at: datetime = field(default_factory=_now)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecipeRecord:
        return cls(
            id=str(data["id"]),
            name=data["name"],
            category=data["category"],
            ingredients=data["ingredients"],
            instructions=data["instructions"],
            calories=data["calories"],
            protein=data["protein"],
            carbs=data["carbs"],
            fat=data["fat"],
            prep_time=data.get("prep_time", 0),
            cook_time=data.get("cook_time", 0),
            servings=data.get("servings", 1),
            cuisine=data.get("cuisine"),
            dietary_tags=data.get("dietary_tags") or "",
            goal_tags=data.get("goal_tags") or "",
            difficulty=data.get("difficulty"),
            is_active=data.get("is_active", True),
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


@dataclass
class MealRecord:
    name: str
    calories: float
    protein: float
    carbs: float
    fat: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MealRecord:
        return cls(
            name=data["name"],
            calories=data["calories"],
            protein=data["protein"],
            carbs=data["carbs"],
            fat=data["fat"],
        )


@dataclass
class MealPlanRecord:
    """A diet plan; `type` names its goal (e.g. WEIGHT_LOSS)."""
    id: str
    name: str
    type: str
    description: str
    calories: float
    meals_per_day: int
    duration: int  # days
    meals: list[MealRecord] = field(default_factory=list)
    updated_at: datetime = field(default_factory=_now)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MealPlanRecord:
        return cls(
            id=str(data["id"]),
            name=data["name"],
            type=data["type"],
            description=data.get("description", ""),
            calories=data["calories"],
            meals_per_day=data.get("meals_per_day", 3),
            duration=data.get("duration", 0),
            meals=[MealRecord.from_dict(m) for m in data.get("meals", [])],
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


# ---------------------------------------------------------------------------
# RECORD SOURCE PROTOCOL
# ---------------------------------------------------------------------------


@runtime_checkable
class RecordSource(Protocol):
    """
    Read-only access to the application's records.

    Listing methods return active records only. Accessors are synchronous;
    the ingestion pipeline calls them from a worker thread.
    """

    def facts(self) -> list[FactRecord]:
        ...

    def catalog_items(self, limit: int) -> list[CatalogRecord]:
        ...

    def recipes(self) -> list[RecipeRecord]:
        ...

    def meal_plans(self, limit: int) -> list[MealPlanRecord]:
        ...

    def get_fact(self, record_id: str) -> FactRecord | None:
        ...

    def get_catalog_item(self, record_id: str) -> CatalogRecord | None:
        ...

    def get_recipe(self, record_id: str) -> RecipeRecord | None:
        ...

    def get_meal_plan(self, record_id: str) -> MealPlanRecord | None:
        ...


# ---------------------------------------------------------------------------
# IMPLEMENTATIONS
# ---------------------------------------------------------------------------


class InMemoryRecordSource:
    """Record source over plain lists. Used in tests and for JSON exports."""

    def __init__(
        self,
        facts: Sequence[FactRecord] = (),
        catalog: Sequence[CatalogRecord] = (),
        recipes: Sequence[RecipeRecord] = (),
        meal_plans: Sequence[MealPlanRecord] = (),
    ):
        self._facts = list(facts)
        self._catalog = list(catalog)
        self._recipes = list(recipes)
        self._meal_plans = list(meal_plans)

    def facts(self) -> list[FactRecord]:
        return [f for f in self._facts if f.is_active]

    def catalog_items(self, limit: int) -> list[CatalogRecord]:
        return self._catalog[:limit]

    def recipes(self) -> list[RecipeRecord]:
        return [r for r in self._recipes if r.is_active]

    def meal_plans(self, limit: int) -> list[MealPlanRecord]:
        return self._meal_plans[:limit]

    def get_fact(self, record_id: str) -> FactRecord | None:
        return next((f for f in self._facts if f.id == record_id), None)

    def get_catalog_item(self, record_id: str) -> CatalogRecord | None:
        return next((c for c in self._catalog if c.id == record_id), None)

    def get_recipe(self, record_id: str) -> RecipeRecord | None:
        return next((r for r in self._recipes if r.id == record_id), None)

    def get_meal_plan(self, record_id: str) -> MealPlanRecord | None:
        return next((p for p in self._meal_plans if p.id == record_id), None)


class JsonRecordSource(InMemoryRecordSource):
    """
    Record source loaded from a JSON export.

    Expected shape (every key optional):
        {"facts": [...], "catalog": [...], "recipes": [...], "meal_plans": [...]}
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)

        super().__init__(
            facts=[FactRecord.from_dict(d) for d in data.get("facts", [])],
            catalog=[CatalogRecord.from_dict(d) for d in data.get("catalog", [])],
            recipes=[RecipeRecord.from_dict(d) for d in data.get("recipes", [])],
            meal_plans=[MealPlanRecord.from_dict(d) for d in data.get("meal_plans", [])],
        )
        logger.info(
            f"Loaded records from {self.path}: {len(self._facts)} facts, "
            f"{len(self._catalog)} catalog items, {len(self._recipes)} recipes, "
            f"{len(self._meal_plans)} meal plans"
        )
