"""
Record -> Document adapters.

One pure function per record type. Each formats the searchable content,
derives tags and goals, and scores credibility. Document ids are prefixed
with the record type so ids from different sources never collide.
"""

from __future__ import annotations

from typing import Iterable

from nutrition_rag.ingestion.credibility import (
    CATALOG_SOURCE,
    INTERNAL_FACTS_SOURCE,
    INTERNAL_PLANS_SOURCE,
    INTERNAL_RECIPES_SOURCE,
    calculate_credibility,
)
from nutrition_rag.ingestion.records import (
    CatalogRecord,
    FactRecord,
    MealPlanRecord,
    RecipeRecord,
)
from nutrition_rag.retrieval.document import (
    Difficulty,
    Document,
    DocumentType,
    Goal,
    Macros,
    Metadata,
)


def split_tags(value: str | None) -> list[str]:
    """Split a comma-separated field, trimming and dropping empty entries."""
    if not value:
        return []
    return [t.strip() for t in value.split(",") if t.strip()]


def parse_goals(values: Iterable[str]) -> frozenset[Goal]:
    """Known goals only; unrecognized values are dropped."""
    return frozenset(g for g in (Goal.parse(v) for v in values) if g is not None)


def _difficulty(value: str | None, default: Difficulty) -> Difficulty:
    try:
        return Difficulty(value.strip().lower()) if value else default
    except ValueError:
        return default


def fact_to_document(fact: FactRecord) -> Document:
    return Document(
        id=f"fact_{fact.id}",
        content=f"{fact.title}\n\n{fact.content}\n\nTags: {fact.tags}",
        metadata=Metadata(
            type=DocumentType.FACT,
            title=fact.title,
            source=INTERNAL_FACTS_SOURCE,
            tags=frozenset(split_tags(fact.tags)),
            last_updated=fact.updated_at,
            credibility_score=calculate_credibility(INTERNAL_FACTS_SOURCE, DocumentType.FACT),
        ),
    )


def catalog_to_document(item: CatalogRecord) -> Document:
    content = (
        f"{item.name}\n\n"
        f"Nutrition per 100g:\n"
        f"• Calories: {item.calories_per_100g}\n"
        f"• Protein: {item.protein_per_100g}g\n"
        f"• Carbohydrates: {item.carbs_per_100g}g\n"
        f"• Fat: {item.fat_per_100g}g\n"
        f"• Fiber: {item.fiber_per_100g or 0}g\n\n"
        f"Tags: {item.tags}"
    )
    return Document(
        id=f"catalog_{item.id}",
        content=content,
        metadata=Metadata(
            type=DocumentType.CATALOG_ITEM,
            title=item.name,
            source=CATALOG_SOURCE,
            tags=frozenset(split_tags(item.tags)),
            calories=item.calories_per_100g,
            macros=Macros(
                protein=item.protein_per_100g,
                carbs=item.carbs_per_100g,
                fat=item.fat_per_100g,
            ),
            last_updated=item.updated_at,
            credibility_score=calculate_credibility(CATALOG_SOURCE, DocumentType.CATALOG_ITEM),
        ),
    )


def recipe_to_document(recipe: RecipeRecord) -> Document:
    content = (
        f"{recipe.name}\n\n"
        f"Category: {recipe.category}\n"
        f"Cuisine: {recipe.cuisine or 'Various'}\n\n"
        f"Ingredients: {recipe.ingredients}\n\n"
        f"Instructions: {recipe.instructions}\n\n"
        f"Nutrition:\n"
        f"• Calories: {recipe.calories}\n"
        f"• Protein: {recipe.protein}g\n"
        f"• Carbs: {recipe.carbs}g\n"
        f"• Fat: {recipe.fat}g\n\n"
        f"Prep Time: {recipe.prep_time} minutes\n"
        f"Cook Time: {recipe.cook_time} minutes\n"
        f"Servings: {recipe.servings}"
    )
    goal_tags = split_tags(recipe.goal_tags)
    return Document(
        id=f"recipe_{recipe.id}",
        content=content,
        metadata=Metadata(
            type=DocumentType.RECIPE,
            title=recipe.name,
            source=INTERNAL_RECIPES_SOURCE,
            tags=frozenset(split_tags(recipe.dietary_tags) + goal_tags),
            calories=recipe.calories,
            macros=Macros(protein=recipe.protein, carbs=recipe.carbs, fat=recipe.fat),
            difficulty=_difficulty(recipe.difficulty, Difficulty.BEGINNER),
            goals=parse_goals(goal_tags),
            last_updated=recipe.updated_at,
            credibility_score=calculate_credibility(INTERNAL_RECIPES_SOURCE, DocumentType.RECIPE),
        ),
    )


def meal_plan_to_document(plan: MealPlanRecord) -> Document:
    meal_lines = "\n".join(
        f"{m.name} ({m.calories} cal) - {m.protein}g protein, {m.carbs}g carbs, {m.fat}g fat"
        for m in plan.meals
    )
    content = (
        f"{plan.name} - {plan.type} Plan\n\n"
        f"Description: {plan.description}\n\n"
        f"Daily Targets:\n"
        f"• Calories: {plan.calories}\n"
        f"• Meals per day: {plan.meals_per_day}\n"
        f"• Duration: {plan.duration} days\n\n"
        f"Sample Meals:\n{meal_lines}"
    )
    return Document(
        id=f"plan_{plan.id}",
        content=content,
        metadata=Metadata(
            type=DocumentType.PLAN,
            title=plan.name,
            source=INTERNAL_PLANS_SOURCE,
            tags=frozenset(split_tags(plan.type.lower().replace("_", " "))),
            calories=plan.calories,
            difficulty=Difficulty.INTERMEDIATE,
            goals=parse_goals([plan.type]),
            last_updated=plan.updated_at,
            credibility_score=calculate_credibility(INTERNAL_PLANS_SOURCE, DocumentType.PLAN),
        ),
    )
